from collections.abc import Generator
from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from smart_timetable.core.config import get_settings
from smart_timetable.db.session import SessionLocal
from smart_timetable.services.reference_data import (
    JsonFileReferenceDataProvider,
    ReferenceDataProvider,
    StaticReferenceDataProvider,
)
from smart_timetable.services.timetable_service import TimetableService
from smart_timetable.services.timetable_store import TimetableStore


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@lru_cache
def get_reference_provider() -> ReferenceDataProvider:
    settings = get_settings()
    if settings.reference_data_file is not None:
        return JsonFileReferenceDataProvider(settings.reference_data_file)
    return StaticReferenceDataProvider()


def get_timetable_service(
    provider: ReferenceDataProvider = Depends(get_reference_provider),
) -> TimetableService:
    return TimetableService(provider, get_settings())


def get_timetable_store(db: Session = Depends(get_db)) -> TimetableStore:
    return TimetableStore(db)
