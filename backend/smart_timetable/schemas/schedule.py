from __future__ import annotations

import uuid
from typing import Literal

from pydantic import Field

from smart_timetable.schemas.base import CamelModel

UNASSIGNED = "unassigned"

EntryStatus = Literal["scheduled", "unscheduled", "rescheduled"]


class ScheduleEntry(CamelModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    course_id: str
    course_name: str = ""
    faculty_id: str = UNASSIGNED
    room_id: str = UNASSIGNED
    day: str
    time_slot: str
    start_time: str = ""
    end_time: str = ""
    students: list[str] = Field(default_factory=list)
    session_number: int = Field(default=1, ge=1)
    total_sessions: int = Field(default=1, ge=1)
    status: EntryStatus = "scheduled"
    conflicts: list[str] = Field(default_factory=list)

    @property
    def is_unscheduled(self) -> bool:
        return self.faculty_id == UNASSIGNED or self.room_id == UNASSIGNED

    @property
    def time_key(self) -> tuple[str, str]:
        return (self.day, self.time_slot)

    def clone(self, **changes) -> ScheduleEntry:
        """Value copy; the clone never shares its lists with the original."""
        changes.setdefault("students", list(self.students))
        changes.setdefault("conflicts", list(self.conflicts))
        return self.model_copy(update=changes)
