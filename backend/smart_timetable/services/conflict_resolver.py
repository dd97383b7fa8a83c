from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
import logging

from smart_timetable.core.exceptions import ResolutionStrategyFailure
from smart_timetable.schemas.conflict import Conflict, Severity
from smart_timetable.schemas.course import Course
from smart_timetable.schemas.faculty import Faculty
from smart_timetable.schemas.resolution import ResolutionOutcome, ResolutionRecord
from smart_timetable.schemas.room import Room
from smart_timetable.schemas.schedule import UNASSIGNED, ScheduleEntry
from smart_timetable.schemas.student import Student
from smart_timetable.schemas.time_slot import WEEKDAYS, TimeSlot
from smart_timetable.services.conflict_detector import ConflictDetector

logger = logging.getLogger(__name__)

CONFLICTS_PER_ITERATION = 3


@dataclass(frozen=True)
class SlotAlternative:
    day: str
    time_slot: str
    start_time: str
    end_time: str


@dataclass
class StrategyResult:
    schedule: list[ScheduleEntry]
    details: str


class ConflictResolver:
    """Bounded local repair of HIGH and CRITICAL conflicts.

    Every strategy works on a copy of the schedule and replaces the entry it
    touches with a clone, so the caller's entries are never modified.
    """

    def __init__(
        self,
        courses: Sequence[Course],
        faculty: Sequence[Faculty],
        rooms: Sequence[Room],
        time_slots: Sequence[TimeSlot],
        students: Sequence[Student],
        *,
        days: Sequence[str] = WEEKDAYS,
        detector: ConflictDetector | None = None,
    ) -> None:
        self.courses = {course.id: course for course in courses}
        self.faculty = list(faculty)
        self.faculty_map = {member.id: member for member in self.faculty}
        self.rooms = list(rooms)
        self.time_slots = list(time_slots)
        self.days = list(days)
        self.detector = detector or ConflictDetector(courses, faculty, rooms, time_slots, students)
        self.strategies: dict[str, Callable[[Conflict, list[ScheduleEntry]], StrategyResult]] = {
            "reschedule": self._reschedule,
            "reassign_faculty": self._reassign_faculty,
            "reassign_room": self._reassign_room,
            "find_alternate_room": self._reassign_room,
            "find_larger_room": self._reassign_room,
            "reschedule_one": self._reschedule_one,
            "split_class": self._split_class,
        }

    def resolve_conflicts(self, schedule: Sequence[ScheduleEntry], max_iterations: int = 100) -> ResolutionOutcome:
        current = list(schedule)
        resolved: list[ResolutionRecord] = []
        iteration = 0

        while iteration < max_iterations:
            conflicts = self.detector.detect_all_conflicts(current)
            if not conflicts:
                logger.info("All conflicts resolved in %s iterations", iteration)
                break

            critical = [item for item in conflicts if item.severity >= Severity.HIGH]
            if not critical:
                logger.info("Only low-severity conflicts remain after %s iterations", iteration)
                break

            progressed = False
            for conflict in critical[:CONFLICTS_PER_ITERATION]:
                outcome = self._resolve_conflict(conflict, current)
                if outcome is None:
                    continue
                strategy, result = outcome
                current = result.schedule
                resolved.append(
                    ResolutionRecord(conflict=conflict, strategy=strategy, iteration=iteration, details=result.details)
                )
                logger.debug("Resolved %s using %s: %s", conflict.id, strategy, result.details)
                progressed = True
                break

            if not progressed:
                logger.info("No further progress possible after %s iterations", iteration)
                break
            iteration += 1

        remaining = self.detector.detect_all_conflicts(current)
        return ResolutionOutcome(
            timetable=current,
            resolved_conflicts=resolved,
            remaining_conflicts=remaining,
            iterations=iteration,
        )

    def _resolve_conflict(
        self,
        conflict: Conflict,
        schedule: list[ScheduleEntry],
    ) -> tuple[str, StrategyResult] | None:
        for strategy in conflict.resolution_strategies:
            try:
                return strategy, self.apply_strategy(strategy, conflict, schedule)
            except ResolutionStrategyFailure as exc:
                logger.warning("Conflict %s: %s", conflict.id, exc.message)
        return None

    def apply_strategy(self, strategy: str, conflict: Conflict, schedule: list[ScheduleEntry]) -> StrategyResult:
        handler = self.strategies.get(strategy)
        if handler is None:
            raise ResolutionStrategyFailure(strategy, "strategy not implemented", conflict.id)
        return handler(conflict, schedule)

    # Strategies

    def _reschedule(self, conflict: Conflict, schedule: list[ScheduleEntry]) -> StrategyResult:
        if not conflict.affected_entries:
            raise ResolutionStrategyFailure("reschedule", "conflict has no affected entries", conflict.id)
        return self._move_entry("reschedule", conflict, conflict.affected_entries[0], schedule)

    def _reschedule_one(self, conflict: Conflict, schedule: list[ScheduleEntry]) -> StrategyResult:
        entries = conflict.affected_entries
        if len(entries) < 2:
            raise ResolutionStrategyFailure("reschedule_one", "needs at least two affected entries", conflict.id)
        for entry in entries[1:]:
            try:
                return self._move_entry("reschedule_one", conflict, entry, schedule)
            except ResolutionStrategyFailure:
                continue
        raise ResolutionStrategyFailure("reschedule_one", "could not reschedule any conflicting entry", conflict.id)

    def _move_entry(
        self,
        strategy: str,
        conflict: Conflict,
        entry: ScheduleEntry,
        schedule: list[ScheduleEntry],
    ) -> StrategyResult:
        alternatives = self.find_alternative_time_slots(entry, schedule, max_alternatives=1)
        if not alternatives:
            raise ResolutionStrategyFailure(strategy, "no alternative time slots found", conflict.id)
        target = alternatives[0]
        moved = entry.clone(
            day=target.day,
            time_slot=target.time_slot,
            start_time=target.start_time,
            end_time=target.end_time,
            status="unscheduled" if entry.is_unscheduled else "rescheduled",
        )
        return StrategyResult(
            schedule=self._replace(schedule, moved, strategy, conflict),
            details=f"Rescheduled {entry.course_name or entry.course_id} to {target.day} {target.time_slot}",
        )

    def _reassign_faculty(self, conflict: Conflict, schedule: list[ScheduleEntry]) -> StrategyResult:
        if not conflict.affected_entries:
            raise ResolutionStrategyFailure("reassign_faculty", "conflict has no affected entries", conflict.id)
        entry = conflict.affected_entries[0]
        course = self.courses.get(entry.course_id)
        if course is None:
            raise ResolutionStrategyFailure("reassign_faculty", f"unknown course {entry.course_id}", conflict.id)

        # Least-loaded first; sorted() keeps reference order among equals.
        for member in sorted(self.faculty, key=lambda item: item.workload_percentage()):
            if member.id == entry.faculty_id or not member.can_teach(course):
                continue
            if not member.is_available(entry.day, entry.time_slot):
                continue
            candidate = self._with_status(entry.clone(faculty_id=member.id))
            if self.would_create_conflict(candidate, schedule):
                continue
            return StrategyResult(
                schedule=self._replace(schedule, candidate, "reassign_faculty", conflict),
                details=f"Reassigned to {member.name}",
            )
        raise ResolutionStrategyFailure("reassign_faculty", "no suitable alternative faculty found", conflict.id)

    def _reassign_room(self, conflict: Conflict, schedule: list[ScheduleEntry]) -> StrategyResult:
        if not conflict.affected_entries:
            raise ResolutionStrategyFailure("reassign_room", "conflict has no affected entries", conflict.id)
        entry = conflict.affected_entries[0]
        course = self.courses.get(entry.course_id)
        if course is None:
            raise ResolutionStrategyFailure("reassign_room", f"unknown course {entry.course_id}", conflict.id)

        for room in self.rooms:
            if room.id == entry.room_id or not room.is_suitable_for(course):
                continue
            if room.capacity < len(entry.students):
                continue
            candidate = self._with_status(entry.clone(room_id=room.id))
            if self.would_create_conflict(candidate, schedule):
                continue
            return StrategyResult(
                schedule=self._replace(schedule, candidate, "reassign_room", conflict),
                details=f"Reassigned to {room.name}",
            )
        raise ResolutionStrategyFailure("reassign_room", "no suitable alternative rooms found", conflict.id)

    def _split_class(self, conflict: Conflict, schedule: list[ScheduleEntry]) -> StrategyResult:
        # Would need independently schedulable sub-groups of the enrolled students.
        raise ResolutionStrategyFailure("split_class", "class splitting is not supported", conflict.id)

    # Helpers

    @staticmethod
    def _with_status(entry: ScheduleEntry) -> ScheduleEntry:
        if entry.status == "unscheduled" and not entry.is_unscheduled:
            entry.status = "scheduled"
        return entry

    @staticmethod
    def _replace(
        schedule: list[ScheduleEntry],
        replacement: ScheduleEntry,
        strategy: str,
        conflict: Conflict,
    ) -> list[ScheduleEntry]:
        for index, existing in enumerate(schedule):
            if existing.id == replacement.id:
                updated = list(schedule)
                updated[index] = replacement
                return updated
        raise ResolutionStrategyFailure(strategy, f"entry {replacement.id} is not part of the schedule", conflict.id)

    def find_alternative_time_slots(
        self,
        entry: ScheduleEntry,
        schedule: Sequence[ScheduleEntry],
        max_alternatives: int = 5,
    ) -> list[SlotAlternative]:
        alternatives: list[SlotAlternative] = []
        for day in self.days:
            for slot in self.time_slots:
                if day == entry.day and slot.label == entry.time_slot:
                    continue
                candidate = entry.clone(
                    day=day,
                    time_slot=slot.label,
                    start_time=slot.start_time,
                    end_time=slot.end_time,
                )
                if not self._faculty_available(candidate) or self.would_create_conflict(candidate, schedule):
                    continue
                alternatives.append(
                    SlotAlternative(day=day, time_slot=slot.label, start_time=slot.start_time, end_time=slot.end_time)
                )
                if len(alternatives) >= max_alternatives:
                    return alternatives
        return alternatives

    def _faculty_available(self, candidate: ScheduleEntry) -> bool:
        member = self.faculty_map.get(candidate.faculty_id)
        return member is None or member.is_available(candidate.day, candidate.time_slot)

    def would_create_conflict(self, candidate: ScheduleEntry, schedule: Sequence[ScheduleEntry]) -> bool:
        """True when ``candidate`` overlaps another entry's faculty, room, course or students at its (day, slot)."""
        students = set(candidate.students)
        for other in schedule:
            if other.id == candidate.id or other.time_key != candidate.time_key:
                continue
            if candidate.faculty_id != UNASSIGNED and other.faculty_id == candidate.faculty_id:
                return True
            if candidate.room_id != UNASSIGNED and other.room_id == candidate.room_id:
                return True
            if other.course_id == candidate.course_id:
                return True
            if students.intersection(other.students):
                return True
        return False
