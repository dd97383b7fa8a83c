from __future__ import annotations

from datetime import datetime, timezone

from pydantic import Field

from smart_timetable.schemas.base import CamelModel
from smart_timetable.schemas.course import Course, RoomType


class RoomBooking(CamelModel):
    course_id: str
    faculty_id: str
    booked_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class Room(CamelModel):
    id: str = Field(min_length=1, max_length=36)
    name: str = Field(min_length=1, max_length=100)
    building: str = Field(default="", max_length=200)
    floor: int = 0
    capacity: int = Field(ge=0, le=5000)
    type: str = RoomType.regular_classroom.value
    equipment: list[str] = Field(default_factory=list)
    # Lower-case weekday -> slot label -> booking.
    bookings: dict[str, dict[str, RoomBooking]] = Field(default_factory=dict)

    def is_available(self, day: str, time_slot: str) -> bool:
        return time_slot not in self.bookings.get(day.lower(), {})

    def book_room(self, day: str, time_slot: str, course_id: str, faculty_id: str) -> bool:
        if not self.is_available(day, time_slot):
            return False
        self.bookings.setdefault(day.lower(), {})[time_slot] = RoomBooking(
            course_id=course_id,
            faculty_id=faculty_id,
        )
        return True

    def booked_slot_count(self) -> int:
        return sum(len(slots) for slots in self.bookings.values())

    def is_suitable_for(self, course: Course) -> bool:
        return (
            self.capacity >= course.capacity
            and (self.type == course.room_type or self.type == RoomType.multipurpose)
            and all(item in self.equipment for item in course.equipment_required)
        )

    def unsuitability_reasons(self, course: Course) -> list[str]:
        reasons: list[str] = []
        if self.capacity < course.capacity:
            reasons.append(
                f"Insufficient capacity: room has {self.capacity}, course needs {course.capacity}"
            )
        if self.type != course.room_type and self.type != RoomType.multipurpose:
            reasons.append(f"Wrong room type: room is {self.type}, course needs {course.room_type.value}")
        missing = [item for item in course.equipment_required if item not in self.equipment]
        if missing:
            reasons.append(f"Missing equipment: {', '.join(missing)}")
        return reasons
