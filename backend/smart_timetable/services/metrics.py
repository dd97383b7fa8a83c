from __future__ import annotations

from collections import Counter
from collections.abc import Sequence

from smart_timetable.schemas.faculty import Faculty
from smart_timetable.schemas.generator import (
    MultiProgramSummary,
    ProgramBreakdown,
    TimetableResult,
    TimetableSummary,
)
from smart_timetable.schemas.room import Room
from smart_timetable.schemas.schedule import UNASSIGNED, ScheduleEntry
from smart_timetable.schemas.student import Student

FITNESS_SCORE_WEIGHT = 80
CONFLICT_PENALTY = 5


def faculty_utilization(schedule: Sequence[ScheduleEntry], faculty: Sequence[Faculty]) -> float:
    """Assigned sessions as a percentage of the faculty's combined weekly hours."""
    sessions = Counter(entry.faculty_id for entry in schedule if entry.faculty_id != UNASSIGNED)
    possible = sum(member.workload.max_hours_per_week for member in faculty)
    used = sum(sessions[member.id] for member in faculty)
    return used / possible * 100 if possible > 0 else 0.0


def room_utilization(
    schedule: Sequence[ScheduleEntry],
    rooms: Sequence[Room],
    *,
    slot_count: int,
    day_count: int,
) -> float:
    """Occupied (room, day, slot) cells as a percentage of all cells.

    Occupancy is recorded on ``rooms`` through ``Room.book_room``; callers pass
    their own copies.
    """
    room_map = {room.id: room for room in rooms}
    booked = 0
    for entry in schedule:
        room = room_map.get(entry.room_id)
        if room is not None and room.book_room(entry.day, entry.time_slot, entry.course_id, entry.faculty_id):
            booked += 1
    total = len(rooms) * slot_count * day_count
    return booked / total * 100 if total > 0 else 0.0


def student_satisfaction(schedule: Sequence[ScheduleEntry], students: Sequence[Student]) -> float:
    total_slots = 0
    conflict_free = 0
    for student in students:
        times = Counter(entry.time_key for entry in schedule if student.id in entry.students)
        total_slots += sum(times.values())
        conflict_free += sum(1 for count in times.values() if count == 1)
    return conflict_free / total_slots * 100 if total_slots > 0 else 100.0


def build_summary(schedule: Sequence[ScheduleEntry]) -> TimetableSummary:
    return TimetableSummary(
        total_classes=len(schedule),
        course_distribution=dict(Counter(entry.course_id for entry in schedule)),
        day_distribution=dict(Counter(entry.day for entry in schedule)),
        time_slot_distribution=dict(Counter(entry.time_slot for entry in schedule)),
        faculty_assignment=dict(Counter(e.faculty_id for e in schedule if e.faculty_id != UNASSIGNED)),
        room_assignment=dict(Counter(e.room_id for e in schedule if e.room_id != UNASSIGNED)),
    )


def quality_score(fitness: float, remaining_conflicts: int, *, fitness_ceiling: float = 10_000) -> int:
    fitness_part = min(FITNESS_SCORE_WEIGHT, fitness / fitness_ceiling * FITNESS_SCORE_WEIGHT)
    if fitness > 0.8 * fitness_ceiling:
        bonus = 20
    elif fitness > 0.6 * fitness_ceiling:
        bonus = 10
    else:
        bonus = 0
    score = fitness_part + bonus - remaining_conflicts * CONFLICT_PENALTY
    return round(max(0.0, min(100.0, score)))


def multi_program_summary(results: Sequence[TimetableResult]) -> MultiProgramSummary:
    if not results:
        return MultiProgramSummary()
    return MultiProgramSummary(
        total_programs=len(results),
        total_classes=sum(len(item.schedule) for item in results),
        average_quality_score=sum(item.quality_score for item in results) / len(results),
        total_conflicts=sum(item.optimization.conflicts.remaining for item in results),
        program_breakdown=[
            ProgramBreakdown(
                program=item.program,
                semester=item.semester,
                classes=len(item.schedule),
                quality_score=item.quality_score,
            )
            for item in results
        ],
    )
