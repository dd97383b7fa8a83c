from __future__ import annotations

from pydantic import Field, model_validator

from smart_timetable.schemas.base import CamelModel
from smart_timetable.schemas.course import Course
from smart_timetable.schemas.faculty import Faculty
from smart_timetable.schemas.room import Room
from smart_timetable.schemas.student import Student
from smart_timetable.schemas.time_slot import TimeSlot


class ReferenceData(CamelModel):
    courses: list[Course] = Field(default_factory=list)
    faculty: list[Faculty] = Field(default_factory=list)
    rooms: list[Room] = Field(default_factory=list)
    time_slots: list[TimeSlot] = Field(default_factory=list)
    students: list[Student] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_unique_ids(self) -> "ReferenceData":
        def ensure_unique(label: str, keys: list[str]) -> None:
            seen: set[str] = set()
            duplicates: set[str] = set()
            for key in keys:
                if key in seen:
                    duplicates.add(key)
                else:
                    seen.add(key)
            if duplicates:
                raise ValueError(f"Duplicate {label} id(s): {', '.join(sorted(duplicates))}")

        ensure_unique("course", [item.id for item in self.courses])
        ensure_unique("faculty", [item.id for item in self.faculty])
        ensure_unique("room", [item.id for item in self.rooms])
        ensure_unique("student", [item.id for item in self.students])
        ensure_unique("time slot label", [item.label for item in self.time_slots])
        return self

    def for_semester(self, program: str, semester: int) -> ReferenceData:
        """Independent deep copies of the data relevant to one program/semester."""
        return ReferenceData(
            courses=[c.model_copy(deep=True) for c in self.courses if c.program == program and c.semester == semester],
            students=[s.model_copy(deep=True) for s in self.students if s.program == program and s.semester == semester],
            faculty=[f.model_copy(deep=True) for f in self.faculty if program in f.programs],
            rooms=[r.model_copy(deep=True) for r in self.rooms],
            time_slots=[t.model_copy(deep=True) for t in self.time_slots],
        )

    def snapshot(self) -> ReferenceData:
        return self.model_copy(deep=True)

    def available_programs(self) -> dict[str, list[int]]:
        semesters_by_program: dict[str, set[int]] = {}
        for course in self.courses:
            semesters_by_program.setdefault(course.program, set()).add(course.semester)
        return {program: sorted(semesters) for program, semesters in semesters_by_program.items()}
