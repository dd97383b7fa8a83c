from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from smart_timetable.core.exceptions import ResourceNotFoundError
from smart_timetable.models.timetable import GeneratedTimetable
from smart_timetable.schemas.generator import StoredTimetableSummary, TimetableResult

logger = logging.getLogger(__name__)


class TimetableStore:
    """Keeps finished timetables as JSON documents keyed by result id."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def save(self, result: TimetableResult) -> GeneratedTimetable:
        record = GeneratedTimetable(
            id=result.id,
            program=result.program,
            semester=result.semester,
            quality_score=result.quality_score,
            payload=result.model_dump(mode="json", by_alias=True),
            generated_at=result.generated_at,
        )
        self.db.merge(record)
        self.db.commit()
        logger.info("Stored timetable %s for %s semester %s", result.id, result.program, result.semester)
        return record

    def get(self, timetable_id: str) -> TimetableResult:
        record = self.db.get(GeneratedTimetable, timetable_id)
        if record is None:
            raise ResourceNotFoundError("Timetable", timetable_id)
        return TimetableResult.model_validate(record.payload)

    def list(
        self,
        *,
        program: str | None = None,
        semester: int | None = None,
        limit: int = 50,
    ) -> list[StoredTimetableSummary]:
        query = select(GeneratedTimetable)
        if program is not None:
            query = query.where(GeneratedTimetable.program == program)
        if semester is not None:
            query = query.where(GeneratedTimetable.semester == semester)
        query = query.order_by(GeneratedTimetable.generated_at.desc()).limit(limit)
        return [
            StoredTimetableSummary(
                id=record.id,
                program=record.program,
                semester=record.semester,
                quality_score=record.quality_score,
                generated_at=record.generated_at,
            )
            for record in self.db.execute(query).scalars().all()
        ]
