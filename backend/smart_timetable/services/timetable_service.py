from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
import logging
from time import perf_counter
import uuid

from smart_timetable.core.config import Settings, get_settings
from smart_timetable.core.exceptions import AppError, NoCoursesFoundError, TimetableGenerationError
from smart_timetable.schemas.conflict import ConflictReport
from smart_timetable.schemas.generator import (
    ConflictCounts,
    GenerateTimetableRequest,
    GenerationProgress,
    GenerationSettings,
    MultiProgramRequest,
    MultiProgramResult,
    OptimizationInfo,
    SystemCapacity,
    SystemStats,
    TimetableMetrics,
    TimetableResult,
    settings_for_level,
)
from smart_timetable.schemas.reference import ReferenceData
from smart_timetable.schemas.resolution import OptimizeExistingResponse, ResolutionOutcome
from smart_timetable.schemas.schedule import ScheduleEntry
from smart_timetable.services import metrics
from smart_timetable.services.cancellation import CancellationToken
from smart_timetable.services.conflict_detector import ConflictDetector, attach_conflict_ids
from smart_timetable.services.conflict_resolver import ConflictResolver
from smart_timetable.services.genetic_optimizer import GeneticOptimizer
from smart_timetable.services.reference_data import ReferenceDataProvider

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[GenerationProgress], None]


@dataclass
class _GenerationRun:
    request: GenerateTimetableRequest
    data: ReferenceData
    settings: GenerationSettings
    optimizer: GeneticOptimizer
    cancel_token: CancellationToken | None
    started_at: float


class TimetableService:
    """Turns reference data into finished weekly timetables.

    Each call works on its own deep copy of the reference data and its own
    optimizer, detector and resolver, so concurrent requests never share
    mutable state.
    """

    def __init__(self, provider: ReferenceDataProvider, settings: Settings | None = None) -> None:
        self.provider = provider
        self.settings = settings or get_settings()
        self.days = list(self.settings.working_days)

    def _reference_data(self, override: ReferenceData | None = None) -> ReferenceData:
        return (override or self.provider.get_reference_data()).snapshot()

    def semester_data(self, program: str, semester: int, reference_data: ReferenceData | None = None) -> ReferenceData:
        data = (reference_data or self.provider.get_reference_data()).for_semester(program, semester)
        if not data.courses:
            raise NoCoursesFoundError(program, semester)
        return data

    def _detector(self, data: ReferenceData) -> ConflictDetector:
        return ConflictDetector(data.courses, data.faculty, data.rooms, data.time_slots, data.students)

    def _resolver(self, data: ReferenceData, detector: ConflictDetector | None = None) -> ConflictResolver:
        return ConflictResolver(
            data.courses,
            data.faculty,
            data.rooms,
            data.time_slots,
            data.students,
            days=self.days,
            detector=detector,
        )

    # Generation

    def _start_run(
        self,
        request: GenerateTimetableRequest,
        cancel_token: CancellationToken | None,
    ) -> _GenerationRun:
        data = self.semester_data(request.program, request.semester, request.reference_data)
        level = request.optimization_level or self.settings.default_optimization_level
        generation_settings = settings_for_level(
            level,
            request.max_generations,
            random_seed=request.random_seed,
        )
        if cancel_token is None and request.time_budget_seconds is not None:
            cancel_token = CancellationToken(request.time_budget_seconds)

        logger.info(
            "Starting timetable generation | program=%s semester=%s level=%s courses=%s students=%s faculty=%s",
            request.program,
            request.semester,
            level,
            len(data.courses),
            len(data.students),
            len(data.faculty),
        )
        optimizer = GeneticOptimizer(
            data.courses,
            data.faculty,
            data.rooms,
            data.time_slots,
            data.students,
            generation_settings,
            days=self.days,
        )
        return _GenerationRun(
            request=request,
            data=data,
            settings=generation_settings,
            optimizer=optimizer,
            cancel_token=cancel_token,
            started_at=perf_counter(),
        )

    @staticmethod
    def _emit(
        on_progress: ProgressCallback | None,
        request: GenerateTimetableRequest,
        progress: GenerationProgress,
    ) -> None:
        if on_progress is not None:
            on_progress(progress.model_copy(update={"program": request.program, "semester": request.semester}))

    def _finish_run(self, run: _GenerationRun, on_progress: ProgressCallback | None) -> TimetableResult:
        request = run.request
        data = run.data
        outcome = run.optimizer.result()

        self._emit(
            on_progress,
            request,
            GenerationProgress(
                generation=outcome.generations,
                best_fitness=outcome.fitness,
                conflicts=outcome.metrics.hard_constraint_violations,
                phase="conflict_resolution",
                message="Resolving remaining conflicts...",
            ),
        )

        detector = self._detector(data)
        initial_conflicts = detector.detect_all_conflicts(outcome.schedule)
        max_iterations = request.max_resolution_iterations or self.settings.max_resolution_iterations
        resolution = self._resolver(data, detector).resolve_conflicts(outcome.schedule, max_iterations)

        schedule = attach_conflict_ids(resolution.timetable, resolution.remaining_conflicts)
        rescored = run.optimizer.evaluate_schedule(schedule)
        remaining = len(resolution.remaining_conflicts)

        result = TimetableResult(
            id=str(uuid.uuid4()),
            program=request.program,
            semester=request.semester,
            generated_at=datetime.now(timezone.utc),
            schedule=schedule,
            optimization=OptimizationInfo(
                generations=outcome.generations,
                final_fitness=outcome.fitness,
                runtime_ms=int((perf_counter() - run.started_at) * 1000),
                fitness_history=outcome.fitness_history,
                conflicts=ConflictCounts(
                    initial=len(initial_conflicts),
                    resolved=len(resolution.resolved_conflicts),
                    remaining=remaining,
                    details=resolution.remaining_conflicts,
                ),
            ),
            metrics=TimetableMetrics(
                hard_constraint_violations=rescored.metrics.hard_constraint_violations,
                soft_constraint_violations=rescored.metrics.soft_constraint_violations,
                faculty_utilization=round(metrics.faculty_utilization(schedule, data.faculty), 2),
                room_utilization=round(
                    metrics.room_utilization(
                        schedule,
                        data.rooms,
                        slot_count=len(data.time_slots),
                        day_count=len(self.days),
                    ),
                    2,
                ),
                student_satisfaction=round(metrics.student_satisfaction(schedule, data.students), 2),
                total_classes=len(schedule),
            ),
            summary=metrics.build_summary(schedule),
            quality_score=metrics.quality_score(
                outcome.fitness,
                remaining,
                fitness_ceiling=run.settings.fitness_ceiling,
            ),
            settings_used=run.settings,
        )

        self._emit(
            on_progress,
            request,
            GenerationProgress(
                generation=outcome.generations,
                best_fitness=outcome.fitness,
                conflicts=remaining,
                phase="completed",
                message=f"Quality score {result.quality_score}/100",
            ),
        )
        logger.info(
            "Timetable generation completed | program=%s semester=%s quality=%s remaining_conflicts=%s cancelled=%s",
            request.program,
            request.semester,
            result.quality_score,
            remaining,
            outcome.cancelled,
        )
        return result

    def generate_timetable(
        self,
        request: GenerateTimetableRequest,
        on_progress: ProgressCallback | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> TimetableResult:
        run = self._start_run(request, cancel_token)
        try:
            for progress in run.optimizer.iter_evolution(run.cancel_token):
                self._emit(on_progress, request, progress)
            return self._finish_run(run, on_progress)
        except AppError:
            raise
        except Exception as exc:
            logger.exception("Timetable generation failed for %s semester %s", request.program, request.semester)
            raise TimetableGenerationError(request.program, request.semester, exc) from exc

    async def agenerate_timetable(
        self,
        request: GenerateTimetableRequest,
        on_progress: ProgressCallback | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> TimetableResult:
        """Same pipeline as ``generate_timetable``, yielding to the event loop between generations."""
        run = self._start_run(request, cancel_token)
        interval = max(1, self.settings.yield_interval)
        try:
            for progress in run.optimizer.iter_evolution(run.cancel_token):
                self._emit(on_progress, request, progress)
                if progress.generation % interval == 0:
                    await asyncio.sleep(0)
            return self._finish_run(run, on_progress)
        except AppError:
            raise
        except Exception as exc:
            logger.exception("Timetable generation failed for %s semester %s", request.program, request.semester)
            raise TimetableGenerationError(request.program, request.semester, exc) from exc

    def generate_multi_program_timetable(
        self,
        request: MultiProgramRequest,
        on_progress: ProgressCallback | None = None,
    ) -> MultiProgramResult:
        results: list[TimetableResult] = []
        for item in request.programs:
            for semester in item.semesters:
                results.append(
                    self.generate_timetable(
                        GenerateTimetableRequest(
                            program=item.program,
                            semester=semester,
                            optimization_level=request.optimization_level,
                            max_generations=request.max_generations,
                            random_seed=request.random_seed,
                        ),
                        on_progress=on_progress,
                    )
                )
        return MultiProgramResult(
            id=str(uuid.uuid4()),
            generated_at=datetime.now(timezone.utc),
            programs=results,
            summary=metrics.multi_program_summary(results),
        )

    # Analysis of existing schedules

    def detect_conflicts(
        self,
        schedule: Sequence[ScheduleEntry],
        reference_data: ReferenceData | None = None,
    ) -> ConflictReport:
        return self._detector(self._reference_data(reference_data)).report(schedule)

    def resolve_conflicts(
        self,
        schedule: Sequence[ScheduleEntry],
        max_iterations: int = 100,
        reference_data: ReferenceData | None = None,
    ) -> ResolutionOutcome:
        data = self._reference_data(reference_data)
        return self._resolver(data).resolve_conflicts(schedule, max_iterations)

    def optimize_existing_timetable(
        self,
        schedule: Sequence[ScheduleEntry],
        max_iterations: int = 100,
        reference_data: ReferenceData | None = None,
    ) -> OptimizeExistingResponse:
        data = self._reference_data(reference_data)
        detector = self._detector(data)
        conflicts = detector.detect_all_conflicts(schedule)
        if not conflicts:
            return OptimizeExistingResponse(
                status="optimal",
                message="Timetable is already conflict-free",
                timetable=list(schedule),
            )

        logger.info("Found %s conflicts in existing timetable, attempting resolution", len(conflicts))
        resolution = self._resolver(data, detector).resolve_conflicts(schedule, max_iterations)
        return OptimizeExistingResponse(
            status="optimized" if not resolution.remaining_conflicts else "partially_optimized",
            message=f"Resolved {len(resolution.resolved_conflicts)} conflicts",
            timetable=resolution.timetable,
            conflicts=resolution.remaining_conflicts,
            resolution_details=resolution.resolved_conflicts,
        )

    # Catalogue

    def available_programs(self) -> dict[str, list[int]]:
        return self.provider.get_reference_data().available_programs()

    def system_stats(self) -> SystemStats:
        data = self.provider.get_reference_data()
        return SystemStats(
            courses=len(data.courses),
            faculty=len(data.faculty),
            rooms=len(data.rooms),
            time_slots=len(data.time_slots),
            students=len(data.students),
            available_programs=data.available_programs(),
            system_capacity=SystemCapacity(
                max_simultaneous_classes=len(data.rooms),
                total_weekly_slots=len(data.time_slots) * len(self.days),
                max_students_per_slot=max((room.capacity for room in data.rooms), default=0),
            ),
        )
