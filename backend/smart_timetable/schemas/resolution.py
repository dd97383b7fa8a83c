from typing import Literal

from pydantic import Field

from smart_timetable.schemas.base import CamelModel
from smart_timetable.schemas.conflict import Conflict
from smart_timetable.schemas.reference import ReferenceData
from smart_timetable.schemas.schedule import ScheduleEntry


class ResolutionRecord(CamelModel):
    conflict: Conflict
    strategy: str
    iteration: int
    details: str = ""


class ResolutionOutcome(CamelModel):
    timetable: list[ScheduleEntry]
    resolved_conflicts: list[ResolutionRecord] = Field(default_factory=list)
    remaining_conflicts: list[Conflict] = Field(default_factory=list)
    iterations: int = 0


class ConflictAnalysisRequest(CamelModel):
    schedule: list[ScheduleEntry]
    reference_data: ReferenceData | None = None


class ResolveConflictsRequest(ConflictAnalysisRequest):
    max_iterations: int = Field(default=100, ge=1, le=1000)


class OptimizeExistingResponse(CamelModel):
    status: Literal["optimal", "optimized", "partially_optimized"]
    message: str
    timetable: list[ScheduleEntry]
    conflicts: list[Conflict] = Field(default_factory=list)
    resolution_details: list[ResolutionRecord] = Field(default_factory=list)
