from fastapi import APIRouter, Depends

from smart_timetable.api.deps import get_timetable_service, get_timetable_store
from smart_timetable.schemas.generator import (
    GenerateTimetableRequest,
    MultiProgramRequest,
    MultiProgramResult,
    TimetableResult,
)
from smart_timetable.schemas.resolution import OptimizeExistingResponse, ResolveConflictsRequest
from smart_timetable.services.timetable_service import TimetableService
from smart_timetable.services.timetable_store import TimetableStore

router = APIRouter()


@router.post("/generate", response_model=TimetableResult)
def generate_timetable(
    payload: GenerateTimetableRequest,
    service: TimetableService = Depends(get_timetable_service),
    store: TimetableStore = Depends(get_timetable_store),
) -> TimetableResult:
    result = service.generate_timetable(payload)
    if payload.persist:
        store.save(result)
    return result


@router.post("/generate/multi", response_model=MultiProgramResult)
def generate_multi_program_timetable(
    payload: MultiProgramRequest,
    service: TimetableService = Depends(get_timetable_service),
) -> MultiProgramResult:
    return service.generate_multi_program_timetable(payload)


@router.post("/optimize", response_model=OptimizeExistingResponse)
def optimize_existing_timetable(
    payload: ResolveConflictsRequest,
    service: TimetableService = Depends(get_timetable_service),
) -> OptimizeExistingResponse:
    return service.optimize_existing_timetable(
        payload.schedule,
        max_iterations=payload.max_iterations,
        reference_data=payload.reference_data,
    )
