from __future__ import annotations

from pydantic import Field

from smart_timetable.schemas.base import CamelModel


class CreditStatus(CamelModel):
    total: int = Field(default=0, ge=0)
    completed: int = Field(default=0, ge=0)
    enrolled: int = Field(default=0, ge=0)
    remaining: int = Field(default=0, ge=0)


class Student(CamelModel):
    id: str = Field(min_length=1, max_length=36)
    name: str = Field(default="", max_length=200)
    email: str | None = None
    program: str = Field(min_length=1, max_length=50)
    year: int = Field(default=1, ge=1, le=6)
    semester: int = Field(ge=1, le=20)
    roll_number: str | None = None
    admission_year: int | None = None
    # Category (major, minor, skillBased, ...) -> selected course ids.
    electives: dict[str, list[str]] = Field(default_factory=dict)
    credit_status: CreditStatus = Field(default_factory=CreditStatus)

    def selected_course_ids(self) -> set[str]:
        return {course_id for selections in self.electives.values() for course_id in selections}
