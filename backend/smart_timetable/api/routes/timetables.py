from fastapi import APIRouter, Depends, Query

from smart_timetable.api.deps import get_timetable_service, get_timetable_store
from smart_timetable.schemas.generator import StoredTimetableSummary, TimetableResult
from smart_timetable.services.timetable_service import TimetableService
from smart_timetable.services.timetable_store import TimetableStore

router = APIRouter()


@router.get("", response_model=list[StoredTimetableSummary])
def list_timetables(
    program: str | None = Query(default=None, max_length=50),
    semester: int | None = Query(default=None, ge=1, le=20),
    limit: int = Query(default=50, ge=1, le=500),
    store: TimetableStore = Depends(get_timetable_store),
) -> list[StoredTimetableSummary]:
    return store.list(program=program, semester=semester, limit=limit)


@router.get("/programs", response_model=dict[str, list[int]])
def available_programs(service: TimetableService = Depends(get_timetable_service)) -> dict[str, list[int]]:
    return service.available_programs()


@router.get("/{timetable_id}", response_model=TimetableResult)
def get_timetable(timetable_id: str, store: TimetableStore = Depends(get_timetable_store)) -> TimetableResult:
    return store.get(timetable_id)
