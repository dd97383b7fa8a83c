from smart_timetable.models.timetable import GeneratedTimetable

__all__ = ["GeneratedTimetable"]
