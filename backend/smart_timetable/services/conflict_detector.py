from __future__ import annotations

from collections import Counter, defaultdict
from collections.abc import Iterable, Sequence

from smart_timetable.schemas.conflict import (
    CapacityOverflow,
    Conflict,
    ConflictReport,
    ConflictSummary,
    ConflictType,
    FacultyDoubleBooking,
    PrerequisiteViolation,
    RoomDoubleBooking,
    Severity,
    StudentScheduleClash,
    TeachingPracticeConflict,
    UnavailableFaculty,
    UnscheduledSession,
    UnsuitableRoom,
    WorkloadExceeded,
)
from smart_timetable.schemas.course import Course
from smart_timetable.schemas.faculty import Faculty
from smart_timetable.schemas.room import Room
from smart_timetable.schemas.schedule import UNASSIGNED, ScheduleEntry
from smart_timetable.schemas.student import Student
from smart_timetable.schemas.time_slot import TimeSlot

FACULTY_STRATEGIES = ["reschedule", "reassign_faculty", "split_class"]
ROOM_STRATEGIES = ["reschedule", "reassign_room", "find_alternate_room"]
STUDENT_STRATEGIES = ["reschedule_one", "allow_choice", "priority_based"]
CAPACITY_STRATEGIES = ["find_larger_room", "split_class", "reduce_enrollment"]
WORKLOAD_HOURS_STRATEGIES = ["redistribute_classes", "hire_additional_faculty", "increase_limit"]
WORKLOAD_COURSES_STRATEGIES = ["reassign_courses", "team_teaching", "increase_limit"]
PREREQUISITE_STRATEGIES = ["verify_prerequisites", "allow_conditional", "remove_student"]
AVAILABILITY_STRATEGIES = ["reschedule", "reassign_faculty", "update_availability"]
SUITABILITY_STRATEGIES = ["find_suitable_room", "upgrade_room", "modify_course_requirements"]
TEACHING_PRACTICE_STRATEGIES = ["reschedule_practice", "reschedule_classes", "stagger_students"]


class ConflictDetector:
    """Rule-based scanner producing typed, severity-ranked conflicts.

    The detector never mutates the schedule or the reference data. Entries that
    reference unknown courses, faculty, rooms or students are skipped by the
    checks that need the missing record.
    """

    def __init__(
        self,
        courses: Sequence[Course],
        faculty: Sequence[Faculty],
        rooms: Sequence[Room],
        time_slots: Sequence[TimeSlot],
        students: Sequence[Student],
    ) -> None:
        self.courses = {course.id: course for course in courses}
        self.faculty = {member.id: member for member in faculty}
        self.rooms = {room.id: room for room in rooms}
        self.time_slots = list(time_slots)
        self.students = {student.id: student for student in students}

    def detect_all_conflicts(self, schedule: Sequence[ScheduleEntry]) -> list[Conflict]:
        conflicts: list[Conflict] = []

        for (day, time_slot), entries in self._group_by_time(schedule).items():
            if len(entries) > 1:
                conflicts.extend(self._detect_time_slot_conflicts(day, time_slot, entries))

        conflicts.extend(self._detect_capacity_conflicts(schedule))
        conflicts.extend(self._detect_workload_conflicts(schedule))
        conflicts.extend(self._detect_prerequisite_conflicts(schedule))
        conflicts.extend(self._detect_availability_conflicts(schedule))
        conflicts.extend(self._detect_room_suitability_conflicts(schedule))
        conflicts.extend(self._detect_teaching_practice_conflicts(schedule))
        conflicts.extend(self._detect_unscheduled_sessions(schedule))

        # sorted() is stable, so equal severities keep detection order.
        return sorted(conflicts, key=lambda item: item.severity, reverse=True)

    def detect_high_severity(self, schedule: Sequence[ScheduleEntry]) -> list[Conflict]:
        return [item for item in self.detect_all_conflicts(schedule) if item.severity >= Severity.HIGH]

    def report(self, schedule: Sequence[ScheduleEntry]) -> ConflictReport:
        conflicts = self.detect_all_conflicts(schedule)
        return ConflictReport(conflicts=conflicts, summary=summarize(conflicts))

    @staticmethod
    def _group_by_time(schedule: Iterable[ScheduleEntry]) -> dict[tuple[str, str], list[ScheduleEntry]]:
        groups: dict[tuple[str, str], list[ScheduleEntry]] = defaultdict(list)
        for entry in schedule:
            groups[entry.time_key].append(entry)
        return groups

    def _faculty_name(self, faculty_id: str) -> str:
        member = self.faculty.get(faculty_id)
        return member.name if member else f"Faculty {faculty_id}"

    def _room_name(self, room_id: str) -> str:
        room = self.rooms.get(room_id)
        return room.name if room else f"Room {room_id}"

    def _detect_time_slot_conflicts(
        self,
        day: str,
        time_slot: str,
        entries: list[ScheduleEntry],
    ) -> list[Conflict]:
        conflicts: list[Conflict] = []

        by_faculty: dict[str, list[ScheduleEntry]] = defaultdict(list)
        by_room: dict[str, list[ScheduleEntry]] = defaultdict(list)
        for entry in entries:
            by_faculty[entry.faculty_id].append(entry)
            by_room[entry.room_id].append(entry)

        for faculty_id, faculty_entries in by_faculty.items():
            if faculty_id == UNASSIGNED or len(faculty_entries) < 2:
                continue
            conflicts.append(
                FacultyDoubleBooking(
                    id=f"faculty-{faculty_id}-{day}-{time_slot}",
                    severity=Severity.CRITICAL,
                    description=(
                        f"Faculty {self._faculty_name(faculty_id)} is scheduled for multiple classes "
                        f"at {time_slot} on {day}"
                    ),
                    affected_entries=faculty_entries,
                    resolution_strategies=list(FACULTY_STRATEGIES),
                    faculty_id=faculty_id,
                    day=day,
                    time_slot=time_slot,
                )
            )

        for room_id, room_entries in by_room.items():
            if room_id == UNASSIGNED or len(room_entries) < 2:
                continue
            conflicts.append(
                RoomDoubleBooking(
                    id=f"room-{room_id}-{day}-{time_slot}",
                    severity=Severity.CRITICAL,
                    description=(
                        f"Room {self._room_name(room_id)} is booked for multiple classes at {time_slot} on {day}"
                    ),
                    affected_entries=room_entries,
                    resolution_strategies=list(ROOM_STRATEGIES),
                    room_id=room_id,
                    day=day,
                    time_slot=time_slot,
                )
            )

        first_seen: dict[str, ScheduleEntry] = {}
        for entry in entries:
            for student_id in entry.students:
                earlier = first_seen.get(student_id)
                if earlier is None:
                    first_seen[student_id] = entry
                    continue
                conflicts.append(
                    StudentScheduleClash(
                        id=f"student-{student_id}-{day}-{time_slot}",
                        severity=Severity.HIGH,
                        description=f"Student {student_id} has multiple classes scheduled at the same time",
                        affected_entries=[earlier, entry],
                        resolution_strategies=list(STUDENT_STRATEGIES),
                        student_id=student_id,
                        day=day,
                        time_slot=time_slot,
                    )
                )
        return conflicts

    def _detect_capacity_conflicts(self, schedule: Sequence[ScheduleEntry]) -> list[Conflict]:
        conflicts: list[Conflict] = []
        for entry in schedule:
            if entry.room_id == UNASSIGNED:
                continue
            room = self.rooms.get(entry.room_id)
            student_count = len(entry.students)
            if room is None or student_count <= room.capacity:
                continue
            overflow = student_count - room.capacity
            conflicts.append(
                CapacityOverflow(
                    id=f"capacity-{entry.id}",
                    severity=Severity.HIGH,
                    description=f"Room {room.name} capacity ({room.capacity}) exceeded by {overflow} students",
                    affected_entries=[entry],
                    resolution_strategies=list(CAPACITY_STRATEGIES),
                    room_id=room.id,
                    required_capacity=student_count,
                    available_capacity=room.capacity,
                    overflow=overflow,
                )
            )
        return conflicts

    def _detect_workload_conflicts(self, schedule: Sequence[ScheduleEntry]) -> list[Conflict]:
        sessions_by_faculty: dict[str, list[ScheduleEntry]] = defaultdict(list)
        for entry in schedule:
            if entry.faculty_id != UNASSIGNED:
                sessions_by_faculty[entry.faculty_id].append(entry)

        conflicts: list[Conflict] = []
        for faculty_id, entries in sessions_by_faculty.items():
            member = self.faculty.get(faculty_id)
            if member is None:
                continue
            # One session counts as one teaching hour.
            hours = len(entries)
            course_count = len({entry.course_id for entry in entries})
            limits = member.workload

            if hours > limits.max_hours_per_week:
                conflicts.append(
                    WorkloadExceeded(
                        id=f"workload-hours-{faculty_id}",
                        severity=Severity.MEDIUM,
                        description=(
                            f"Faculty {member.name} assigned {hours} hours, "
                            f"exceeds limit of {limits.max_hours_per_week}"
                        ),
                        affected_entries=entries,
                        resolution_strategies=list(WORKLOAD_HOURS_STRATEGIES),
                        faculty_id=faculty_id,
                        metric="hours",
                        current=hours,
                        maximum=limits.max_hours_per_week,
                        excess=hours - limits.max_hours_per_week,
                    )
                )
            if course_count > limits.max_courses_per_semester:
                conflicts.append(
                    WorkloadExceeded(
                        id=f"workload-courses-{faculty_id}",
                        severity=Severity.MEDIUM,
                        description=(
                            f"Faculty {member.name} assigned {course_count} courses, "
                            f"exceeds limit of {limits.max_courses_per_semester}"
                        ),
                        affected_entries=entries,
                        resolution_strategies=list(WORKLOAD_COURSES_STRATEGIES),
                        faculty_id=faculty_id,
                        metric="courses",
                        current=course_count,
                        maximum=limits.max_courses_per_semester,
                        excess=course_count - limits.max_courses_per_semester,
                    )
                )
        return conflicts

    def _detect_prerequisite_conflicts(self, schedule: Sequence[ScheduleEntry]) -> list[Conflict]:
        conflicts: list[Conflict] = []
        for entry in schedule:
            course = self.courses.get(entry.course_id)
            if course is None or not course.prerequisites:
                continue
            for student_id in entry.students:
                student = self.students.get(student_id)
                if student is None or student.semester >= course.semester:
                    continue
                conflicts.append(
                    PrerequisiteViolation(
                        id=f"prerequisite-{student_id}-{course.id}",
                        severity=Severity.HIGH,
                        description=(
                            f"Student {student_id} enrolled in {course.name} "
                            "but may not have completed prerequisites"
                        ),
                        affected_entries=[entry],
                        resolution_strategies=list(PREREQUISITE_STRATEGIES),
                        student_id=student_id,
                        course_id=course.id,
                    )
                )
        return conflicts

    def _detect_availability_conflicts(self, schedule: Sequence[ScheduleEntry]) -> list[Conflict]:
        conflicts: list[Conflict] = []
        for entry in schedule:
            if entry.faculty_id == UNASSIGNED:
                continue
            member = self.faculty.get(entry.faculty_id)
            if member is None or member.is_available(entry.day, entry.time_slot):
                continue
            conflicts.append(
                UnavailableFaculty(
                    id=f"availability-{member.id}-{entry.day}-{entry.time_slot}",
                    severity=Severity.HIGH,
                    description=f"Faculty {member.name} is not available at {entry.time_slot} on {entry.day}",
                    affected_entries=[entry],
                    resolution_strategies=list(AVAILABILITY_STRATEGIES),
                    faculty_id=member.id,
                    day=entry.day,
                    time_slot=entry.time_slot,
                )
            )
        return conflicts

    def _detect_room_suitability_conflicts(self, schedule: Sequence[ScheduleEntry]) -> list[Conflict]:
        conflicts: list[Conflict] = []
        for entry in schedule:
            if entry.room_id == UNASSIGNED:
                continue
            room = self.rooms.get(entry.room_id)
            course = self.courses.get(entry.course_id)
            if room is None or course is None or room.is_suitable_for(course):
                continue
            conflicts.append(
                UnsuitableRoom(
                    id=f"suitability-{room.id}-{course.id}",
                    severity=Severity.MEDIUM,
                    description=f"Room {room.name} is not suitable for course {course.name}",
                    affected_entries=[entry],
                    resolution_strategies=list(SUITABILITY_STRATEGIES),
                    room_id=room.id,
                    course_id=course.id,
                    reasons=room.unsuitability_reasons(course),
                )
            )
        return conflicts

    def _detect_teaching_practice_conflicts(self, schedule: Sequence[ScheduleEntry]) -> list[Conflict]:
        conflicts: list[Conflict] = []
        for session in schedule:
            course = self.courses.get(session.course_id)
            if course is None or not course.is_practicum:
                continue
            practice_students = set(session.students)
            clashing = [
                entry
                for entry in schedule
                if entry.id != session.id
                and entry.time_key == session.time_key
                and practice_students.intersection(entry.students)
            ]
            if not clashing:
                continue
            shared = sorted(
                practice_students.intersection(student_id for entry in clashing for student_id in entry.students)
            )
            conflicts.append(
                TeachingPracticeConflict(
                    id=f"teaching-practice-{session.id}",
                    severity=Severity.HIGH,
                    description="Teaching practice session conflicts with regular classes for some students",
                    affected_entries=[session, *clashing],
                    resolution_strategies=list(TEACHING_PRACTICE_STRATEGIES),
                    practicum_entry_id=session.id,
                    day=session.day,
                    time_slot=session.time_slot,
                    student_ids=shared,
                )
            )
        return conflicts

    def _detect_unscheduled_sessions(self, schedule: Sequence[ScheduleEntry]) -> list[Conflict]:
        conflicts: list[Conflict] = []
        for entry in schedule:
            if not entry.is_unscheduled:
                continue
            missing = []
            strategies = []
            if entry.faculty_id == UNASSIGNED:
                missing.append("faculty")
                strategies.append("reassign_faculty")
            if entry.room_id == UNASSIGNED:
                missing.append("room")
                strategies.append("reassign_room")
            conflicts.append(
                UnscheduledSession(
                    id=f"unscheduled-{entry.id}",
                    severity=Severity.HIGH,
                    description=(
                        f"Session {entry.session_number} of {entry.course_name or entry.course_id} "
                        f"has no {' or '.join(missing)} assigned"
                    ),
                    affected_entries=[entry],
                    resolution_strategies=strategies,
                    course_id=entry.course_id,
                    missing=missing,
                )
            )
        return conflicts


def summarize(conflicts: Iterable[Conflict]) -> ConflictSummary:
    items = list(conflicts)
    by_type = Counter(ConflictType(item.type).value for item in items)
    by_severity = Counter(Severity(item.severity).name for item in items)
    return ConflictSummary(total=len(items), by_type=dict(by_type), by_severity=dict(by_severity))


def attach_conflict_ids(schedule: Sequence[ScheduleEntry], conflicts: Iterable[Conflict]) -> list[ScheduleEntry]:
    """Copies of ``schedule`` with each entry's ``conflicts`` set to the ids that affect it."""
    ids_by_entry: dict[str, list[str]] = defaultdict(list)
    for conflict in conflicts:
        for entry in conflict.affected_entries:
            if conflict.id not in ids_by_entry[entry.id]:
                ids_by_entry[entry.id].append(conflict.id)
    return [entry.clone(conflicts=list(ids_by_entry.get(entry.id, []))) for entry in schedule]
