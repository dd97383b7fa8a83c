from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field, field_validator

from smart_timetable.schemas.base import CamelModel

if TYPE_CHECKING:
    from smart_timetable.schemas.course import Course


class FacultyWorkload(CamelModel):
    max_hours_per_week: int = Field(default=18, ge=0, le=80)
    current_hours: int = Field(default=0, ge=0)
    max_courses_per_semester: int = Field(default=4, ge=0, le=40)
    current_courses: int = Field(default=0, ge=0)


class FacultyPreferences(CamelModel):
    preferred_time_slots: list[str] = Field(default_factory=list)
    avoid_back_to_back: bool = True
    max_daily_hours: int = Field(default=6, ge=1, le=24)


class Faculty(CamelModel):
    id: str = Field(min_length=1, max_length=36)
    name: str = Field(min_length=1, max_length=200)
    email: str | None = None
    department: str = Field(default="", max_length=200)
    designation: str | None = None
    expertise: list[str] = Field(default_factory=list)
    programs: list[str] = Field(default_factory=list)
    course_categories: list[str] = Field(default_factory=list)
    # Lower-case weekday -> labels of the time slots the member can teach in.
    availability: dict[str, list[str]] = Field(default_factory=dict)
    workload: FacultyWorkload = Field(default_factory=FacultyWorkload)
    preferences: FacultyPreferences = Field(default_factory=FacultyPreferences)

    @field_validator("availability")
    @classmethod
    def normalize_availability_days(cls, value: dict[str, list[str]]) -> dict[str, list[str]]:
        return {day.strip().lower(): list(labels) for day, labels in value.items()}

    def can_teach(self, course: Course) -> bool:
        if course.subject is not None and course.subject not in self.expertise:
            return False
        return course.program in self.programs and course.category in self.course_categories

    def is_available(self, day: str, time_slot: str) -> bool:
        if not self.availability:
            return True
        return time_slot in self.availability.get(day.lower(), [])

    def workload_percentage(self) -> float:
        if self.workload.max_hours_per_week <= 0:
            return 0.0
        return self.workload.current_hours / self.workload.max_hours_per_week * 100
