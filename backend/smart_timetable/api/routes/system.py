from fastapi import APIRouter, Depends

from smart_timetable.api.deps import get_timetable_service
from smart_timetable.schemas.generator import SystemStats
from smart_timetable.services.timetable_service import TimetableService

router = APIRouter()


@router.get("/system/stats", response_model=SystemStats)
def system_stats(service: TimetableService = Depends(get_timetable_service)) -> SystemStats:
    return service.system_stats()
