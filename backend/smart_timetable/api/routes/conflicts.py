from fastapi import APIRouter, Depends

from smart_timetable.api.deps import get_timetable_service
from smart_timetable.schemas.conflict import ConflictReport
from smart_timetable.schemas.resolution import ConflictAnalysisRequest, ResolutionOutcome, ResolveConflictsRequest
from smart_timetable.services.timetable_service import TimetableService

router = APIRouter()


@router.post("/detect", response_model=ConflictReport)
def detect_conflicts(
    payload: ConflictAnalysisRequest,
    service: TimetableService = Depends(get_timetable_service),
) -> ConflictReport:
    return service.detect_conflicts(payload.schedule, reference_data=payload.reference_data)


@router.post("/resolve", response_model=ResolutionOutcome)
def resolve_conflicts(
    payload: ResolveConflictsRequest,
    service: TimetableService = Depends(get_timetable_service),
) -> ResolutionOutcome:
    return service.resolve_conflicts(
        payload.schedule,
        max_iterations=payload.max_iterations,
        reference_data=payload.reference_data,
    )
