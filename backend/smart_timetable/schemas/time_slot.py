from __future__ import annotations

import re

from pydantic import Field, computed_field, field_validator, model_validator

from smart_timetable.schemas.base import CamelModel

WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def parse_time_to_minutes(value: str) -> int:
    if not TIME_PATTERN.match(value):
        raise ValueError("Time must be in HH:MM 24-hour format")
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


class TimeSlot(CamelModel):
    start_time: str
    end_time: str
    label: str = Field(default="", max_length=50)

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time_format(cls, value: str) -> str:
        if not TIME_PATTERN.match(value):
            raise ValueError("Time must be in HH:MM 24-hour format")
        return value

    @model_validator(mode="after")
    def validate_time_order(self) -> "TimeSlot":
        if parse_time_to_minutes(self.end_time) <= parse_time_to_minutes(self.start_time):
            raise ValueError("End time must be after start time")
        if not self.label:
            self.label = f"{self.start_time} - {self.end_time}"
        return self

    @computed_field
    @property
    def duration(self) -> int:
        """Length of the slot in minutes."""
        return parse_time_to_minutes(self.end_time) - parse_time_to_minutes(self.start_time)

    def overlaps(self, other: TimeSlot) -> bool:
        return (
            parse_time_to_minutes(self.start_time) < parse_time_to_minutes(other.end_time)
            and parse_time_to_minutes(self.end_time) > parse_time_to_minutes(other.start_time)
        )
