from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import Field, model_validator

from smart_timetable.schemas.base import CamelModel
from smart_timetable.schemas.conflict import Conflict
from smart_timetable.schemas.reference import ReferenceData
from smart_timetable.schemas.schedule import ScheduleEntry

OptimizationLevel = Literal["low", "medium", "high"]
GenerationPhase = Literal["evolution", "conflict_resolution", "completed"]


class FitnessWeights(CamelModel):
    # Hard tier: conflicts the detector reports at HIGH or CRITICAL.
    faculty_conflict: float = Field(default=1000, ge=0, le=100_000)
    room_conflict: float = Field(default=1000, ge=0, le=100_000)
    student_conflict: float = Field(default=800, ge=0, le=100_000)
    capacity_violation: float = Field(default=700, ge=0, le=100_000)
    faculty_unavailable: float = Field(default=600, ge=0, le=100_000)
    # Soft tier: MEDIUM and below.
    faculty_preferences: float = Field(default=100, ge=0, le=10_000)
    workload_balance: float = Field(default=150, ge=0, le=10_000)
    room_suitability: float = Field(default=80, ge=0, le=10_000)
    day_distribution: float = Field(default=90, ge=0, le=10_000)
    faculty_utilization_bonus: float = Field(default=100, ge=0, le=10_000)
    room_utilization_bonus: float = Field(default=50, ge=0, le=10_000)


class GenerationSettings(CamelModel):
    population_size: int = Field(default=100, ge=2, le=2000)
    generations: int = Field(default=500, ge=1, le=10_000)
    mutation_rate: float = Field(default=0.1, ge=0.0, le=1.0)
    crossover_rate: float = Field(default=0.8, ge=0.0, le=1.0)
    elite_size: int = Field(default=10, ge=0, le=200)
    tournament_size: int = Field(default=5, ge=1, le=100)
    stagnation_threshold: int = Field(default=50, ge=1, le=10_000)
    max_placement_attempts: int = Field(default=50, ge=1, le=1000)
    fitness_ceiling: float = Field(default=10_000, gt=0)
    random_seed: int | None = Field(default=None, ge=0, le=2_000_000_000)
    fitness_weights: FitnessWeights = Field(default_factory=FitnessWeights)

    @model_validator(mode="after")
    def validate_relationships(self) -> "GenerationSettings":
        if self.elite_size >= self.population_size:
            raise ValueError("elite_size must be less than population_size")
        return self


_PRESETS: dict[str, dict] = {
    "low": {
        "population_size": 50,
        "generations": 100,
        "mutation_rate": 0.15,
        "crossover_rate": 0.7,
        "elite_size": 5,
        "stagnation_threshold": 30,
    },
    "medium": {
        "population_size": 75,
        "generations": 200,
        "mutation_rate": 0.1,
        "crossover_rate": 0.8,
        "elite_size": 8,
        "stagnation_threshold": 40,
    },
    "high": {
        "population_size": 100,
        "generations": None,
        "mutation_rate": 0.08,
        "crossover_rate": 0.85,
        "elite_size": 10,
        "stagnation_threshold": 50,
    },
}


def settings_for_level(
    level: str,
    max_generations: int,
    *,
    random_seed: int | None = None,
) -> GenerationSettings:
    """Preset for an optimization level; unknown levels fall back to medium."""
    preset = dict(_PRESETS.get(level, _PRESETS["medium"]))
    cap = preset["generations"]
    preset["generations"] = max_generations if cap is None else min(cap, max_generations)
    return GenerationSettings(**preset, random_seed=random_seed)


class GenerateTimetableRequest(CamelModel):
    program: str = Field(min_length=1, max_length=50)
    semester: int = Field(ge=1, le=20)
    optimization_level: OptimizationLevel | None = None
    max_generations: int = Field(default=300, ge=1, le=10_000)
    max_resolution_iterations: int | None = Field(default=None, ge=1, le=1000)
    random_seed: int | None = Field(default=None, ge=0, le=2_000_000_000)
    time_budget_seconds: float | None = Field(default=None, gt=0)
    persist: bool = False
    reference_data: ReferenceData | None = None


class GenerationProgress(CamelModel):
    generation: int = 0
    best_fitness: float = 0.0
    avg_fitness: float = 0.0
    conflicts: int = 0
    stagnation: int = 0
    phase: GenerationPhase = "evolution"
    program: str | None = None
    semester: int | None = None
    message: str | None = None


class ConflictCounts(CamelModel):
    initial: int = 0
    resolved: int = 0
    remaining: int = 0
    details: list[Conflict] = Field(default_factory=list)


class OptimizationInfo(CamelModel):
    generations: int
    final_fitness: float
    runtime_ms: int = 0
    fitness_history: list[float] = Field(default_factory=list)
    conflicts: ConflictCounts = Field(default_factory=ConflictCounts)


class TimetableMetrics(CamelModel):
    hard_constraint_violations: int = 0
    soft_constraint_violations: float = 0.0
    faculty_utilization: float = 0.0
    room_utilization: float = 0.0
    student_satisfaction: float = 0.0
    total_classes: int = 0


class TimetableSummary(CamelModel):
    total_classes: int = 0
    course_distribution: dict[str, int] = Field(default_factory=dict)
    day_distribution: dict[str, int] = Field(default_factory=dict)
    time_slot_distribution: dict[str, int] = Field(default_factory=dict)
    faculty_assignment: dict[str, int] = Field(default_factory=dict)
    room_assignment: dict[str, int] = Field(default_factory=dict)


class TimetableResult(CamelModel):
    id: str
    program: str
    semester: int
    generated_at: datetime
    schedule: list[ScheduleEntry]
    optimization: OptimizationInfo
    metrics: TimetableMetrics
    summary: TimetableSummary
    quality_score: int = Field(ge=0, le=100)
    settings_used: GenerationSettings | None = None


class ProgramSemesters(CamelModel):
    program: str = Field(min_length=1, max_length=50)
    semesters: list[int] = Field(min_length=1)


class MultiProgramRequest(CamelModel):
    programs: list[ProgramSemesters] = Field(min_length=1)
    optimization_level: OptimizationLevel | None = None
    max_generations: int = Field(default=300, ge=1, le=10_000)
    random_seed: int | None = Field(default=None, ge=0, le=2_000_000_000)


class ProgramBreakdown(CamelModel):
    program: str
    semester: int
    classes: int
    quality_score: int


class MultiProgramSummary(CamelModel):
    total_programs: int = 0
    total_classes: int = 0
    average_quality_score: float = 0.0
    total_conflicts: int = 0
    program_breakdown: list[ProgramBreakdown] = Field(default_factory=list)


class MultiProgramResult(CamelModel):
    id: str
    generated_at: datetime
    programs: list[TimetableResult]
    summary: MultiProgramSummary


class SystemCapacity(CamelModel):
    max_simultaneous_classes: int = 0
    total_weekly_slots: int = 0
    max_students_per_slot: int = 0


class SystemStats(CamelModel):
    courses: int = 0
    faculty: int = 0
    rooms: int = 0
    time_slots: int = 0
    students: int = 0
    available_programs: dict[str, list[int]] = Field(default_factory=dict)
    system_capacity: SystemCapacity = Field(default_factory=SystemCapacity)


class StoredTimetableSummary(CamelModel):
    id: str
    program: str
    semester: int
    quality_score: int
    generated_at: datetime | None = None
