from __future__ import annotations

from enum import Enum, IntEnum
from typing import Annotated, Literal, Union

from pydantic import Field

from smart_timetable.schemas.base import CamelModel
from smart_timetable.schemas.schedule import ScheduleEntry


class ConflictType(str, Enum):
    FACULTY_DOUBLE_BOOKING = "faculty_double_booking"
    ROOM_DOUBLE_BOOKING = "room_double_booking"
    STUDENT_SCHEDULE_CLASH = "student_schedule_clash"
    CAPACITY_OVERFLOW = "capacity_overflow"
    PREREQUISITE_VIOLATION = "prerequisite_violation"
    WORKLOAD_EXCEEDED = "workload_exceeded"
    UNAVAILABLE_FACULTY = "unavailable_faculty"
    UNSUITABLE_ROOM = "unsuitable_room"
    TEACHING_PRACTICE_CONFLICT = "teaching_practice_conflict"
    UNSCHEDULED_SESSION = "unscheduled_session"


class Severity(IntEnum):
    INFO = 1
    LOW = 2
    MEDIUM = 3
    HIGH = 4
    CRITICAL = 5


class ConflictBase(CamelModel):
    id: str
    severity: Severity
    description: str
    affected_entries: list[ScheduleEntry] = Field(default_factory=list)
    resolution_strategies: list[str] = Field(default_factory=list)


class FacultyDoubleBooking(ConflictBase):
    type: Literal["faculty_double_booking"] = "faculty_double_booking"
    faculty_id: str
    day: str
    time_slot: str


class RoomDoubleBooking(ConflictBase):
    type: Literal["room_double_booking"] = "room_double_booking"
    room_id: str
    day: str
    time_slot: str


class StudentScheduleClash(ConflictBase):
    type: Literal["student_schedule_clash"] = "student_schedule_clash"
    student_id: str
    day: str
    time_slot: str


class CapacityOverflow(ConflictBase):
    type: Literal["capacity_overflow"] = "capacity_overflow"
    room_id: str
    required_capacity: int
    available_capacity: int
    overflow: int


class WorkloadExceeded(ConflictBase):
    type: Literal["workload_exceeded"] = "workload_exceeded"
    faculty_id: str
    metric: Literal["hours", "courses"]
    current: int
    maximum: int
    excess: int


class PrerequisiteViolation(ConflictBase):
    type: Literal["prerequisite_violation"] = "prerequisite_violation"
    student_id: str
    course_id: str


class UnavailableFaculty(ConflictBase):
    type: Literal["unavailable_faculty"] = "unavailable_faculty"
    faculty_id: str
    day: str
    time_slot: str


class UnsuitableRoom(ConflictBase):
    type: Literal["unsuitable_room"] = "unsuitable_room"
    room_id: str
    course_id: str
    reasons: list[str] = Field(default_factory=list)


class TeachingPracticeConflict(ConflictBase):
    type: Literal["teaching_practice_conflict"] = "teaching_practice_conflict"
    practicum_entry_id: str
    day: str
    time_slot: str
    student_ids: list[str] = Field(default_factory=list)


class UnscheduledSession(ConflictBase):
    type: Literal["unscheduled_session"] = "unscheduled_session"
    course_id: str
    missing: list[Literal["faculty", "room"]] = Field(default_factory=list)


Conflict = Annotated[
    Union[
        FacultyDoubleBooking,
        RoomDoubleBooking,
        StudentScheduleClash,
        CapacityOverflow,
        WorkloadExceeded,
        PrerequisiteViolation,
        UnavailableFaculty,
        UnsuitableRoom,
        TeachingPracticeConflict,
        UnscheduledSession,
    ],
    Field(discriminator="type"),
]


class ConflictSummary(CamelModel):
    total: int = 0
    by_type: dict[str, int] = Field(default_factory=dict)
    by_severity: dict[str, int] = Field(default_factory=dict)


class ConflictReport(CamelModel):
    conflicts: list[Conflict] = Field(default_factory=list)
    summary: ConflictSummary = Field(default_factory=ConflictSummary)
