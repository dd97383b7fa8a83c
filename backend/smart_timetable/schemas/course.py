from __future__ import annotations

import math
from enum import Enum

from pydantic import Field, computed_field

from smart_timetable.schemas.base import CamelModel


class CourseCategory(str, Enum):
    major = "major"
    minor = "minor"
    skill_based = "skillBased"
    ability_enhancement = "abilityEnhancement"
    value_added = "valueAdded"
    multidisciplinary = "multidisciplinary"
    core = "core"
    elective = "elective"
    practicum = "practicum"
    dissertation = "dissertation"


ELECTIVE_CATEGORIES = {
    CourseCategory.elective,
    CourseCategory.minor,
    CourseCategory.multidisciplinary,
    CourseCategory.skill_based,
    CourseCategory.ability_enhancement,
    CourseCategory.value_added,
}


class RoomType(str, Enum):
    regular_classroom = "regular_classroom"
    large_classroom = "large_classroom"
    laboratory = "laboratory"
    seminar_hall = "seminar_hall"
    multipurpose = "multipurpose"


class Course(CamelModel):
    id: str = Field(min_length=1, max_length=36)
    code: str = Field(min_length=1, max_length=50)
    name: str = Field(min_length=1, max_length=200)
    credits: int = Field(ge=0, le=40)
    program: str = Field(min_length=1, max_length=50)
    semester: int = Field(ge=1, le=20)
    category: CourseCategory = CourseCategory.core
    type: str = "theory"
    subject: str | None = None
    prerequisites: list[str] = Field(default_factory=list)
    # Expected head count; rooms smaller than this are unsuitable.
    capacity: int = Field(default=0, ge=0)
    equipment_required: list[str] = Field(default_factory=list)

    @computed_field
    @property
    def hours_per_week(self) -> int:
        return self.credits

    @computed_field
    @property
    def sessions_per_week(self) -> int:
        if self.credits <= 2:
            return 1
        if self.credits <= 4:
            return 2
        return math.ceil(self.credits / 2)

    @computed_field
    @property
    def room_type(self) -> RoomType:
        if self.type in ("lab", "practical"):
            return RoomType.laboratory
        if self.credits >= 4 or "Seminar" in self.name:
            return RoomType.large_classroom
        return RoomType.regular_classroom

    @property
    def is_practicum(self) -> bool:
        return self.category == CourseCategory.practicum or "teaching practice" in self.name.lower()

    @property
    def is_elective(self) -> bool:
        return self.category in ELECTIVE_CATEGORIES
