import pytest

from smart_timetable.schemas.conflict import ConflictType, Severity
from smart_timetable.schemas.faculty import FacultyWorkload
from smart_timetable.services.conflict_detector import ConflictDetector, attach_conflict_ids, summarize


@pytest.fixture
def detector_for(make_course, make_faculty, make_room, time_slots):
    def factory(courses=None, faculty=None, rooms=None, students=None):
        return ConflictDetector(
            courses if courses is not None else [make_course("c1"), make_course("c2")],
            faculty if faculty is not None else [make_faculty("f1"), make_faculty("f2")],
            rooms if rooms is not None else [make_room("r1"), make_room("r2")],
            time_slots,
            students or [],
        )

    return factory


def of_type(conflicts, conflict_type):
    return [item for item in conflicts if item.type == conflict_type]


def test_clean_schedule_has_no_conflicts(detector_for, make_entry):
    schedule = [
        make_entry("e1", course_id="c1", faculty_id="f1", room_id="r1"),
        make_entry("e2", course_id="c2", faculty_id="f2", room_id="r2"),
    ]
    assert detector_for().detect_all_conflicts(schedule) == []


def test_faculty_double_booking_is_critical(detector_for, make_entry):
    schedule = [
        make_entry("e1", course_id="c1", faculty_id="f1", room_id="r1"),
        make_entry("e2", course_id="c2", faculty_id="f1", room_id="r2"),
    ]
    conflicts = detector_for().detect_all_conflicts(schedule)

    assert len(conflicts) == 1
    conflict = conflicts[0]
    assert conflict.type == ConflictType.FACULTY_DOUBLE_BOOKING
    assert conflict.severity == Severity.CRITICAL
    assert conflict.id == "faculty-f1-Monday-09:00 - 10:00"
    assert {entry.id for entry in conflict.affected_entries} == {"e1", "e2"}
    assert conflict.resolution_strategies[0] == "reschedule"


def test_room_double_booking_and_student_clash(detector_for, make_entry):
    # Two courses sharing ten students in the only room at the same time.
    students = [f"s{index}" for index in range(10)]
    schedule = [
        make_entry("e1", course_id="c1", faculty_id="f1", students=students),
        make_entry("e2", course_id="c2", faculty_id="f2", students=students),
    ]
    conflicts = detector_for().detect_all_conflicts(schedule)

    rooms = of_type(conflicts, ConflictType.ROOM_DOUBLE_BOOKING)
    clashes = of_type(conflicts, ConflictType.STUDENT_SCHEDULE_CLASH)
    assert len(rooms) == 1
    assert rooms[0].severity == Severity.CRITICAL
    assert len(clashes) == 10
    assert all(item.severity == Severity.HIGH for item in clashes)
    assert [entry.id for entry in clashes[0].affected_entries] == ["e1", "e2"]


def test_capacity_overflow_reports_overflow(detector_for, make_room, make_entry):
    detector = detector_for(rooms=[make_room("r1", capacity=20)])
    schedule = [make_entry("e1", students=[f"s{index}" for index in range(25)])]

    conflicts = of_type(detector.detect_all_conflicts(schedule), ConflictType.CAPACITY_OVERFLOW)

    assert len(conflicts) == 1
    assert conflicts[0].overflow == 5
    assert conflicts[0].required_capacity == 25
    assert conflicts[0].available_capacity == 20
    assert conflicts[0].severity == Severity.HIGH


def test_workload_exceeded_counts_sessions_as_hours(detector_for, make_course, make_faculty, make_entry):
    member = make_faculty("f1", workload=FacultyWorkload(max_hours_per_week=10, max_courses_per_semester=4))
    detector = detector_for(
        courses=[make_course("c1"), make_course("c2"), make_course("c3")],
        faculty=[member],
        rooms=[],
    )
    days = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]
    slots = ["09:00 - 10:00", "10:00 - 11:00"]
    cells = [(day, slot) for day in days for slot in slots]
    schedule = [
        make_entry(f"e{index}", course_id=f"c{index % 3 + 1}", room_id=f"room-{index}", day=day, time_slot=slot)
        for index, (day, slot) in enumerate(cells)
    ]

    conflicts = detector.detect_all_conflicts(schedule)
    workload = of_type(conflicts, ConflictType.WORKLOAD_EXCEEDED)

    assert len(workload) == 1
    assert workload[0].metric == "hours"
    assert workload[0].current == 12
    assert workload[0].excess == 2
    assert workload[0].severity == Severity.MEDIUM


def test_unavailable_faculty(detector_for, make_faculty, make_entry):
    member = make_faculty("f1", availability={"Monday": ["10:00 - 11:00"]})
    detector = detector_for(faculty=[member])

    conflicts = detector.detect_all_conflicts([make_entry("e1")])

    assert [item.type for item in conflicts] == [ConflictType.UNAVAILABLE_FACULTY]
    assert conflicts[0].severity == Severity.HIGH


def test_unsuitable_room_lists_reasons(detector_for, make_course, make_entry):
    detector = detector_for(courses=[make_course("c1", type="lab")])

    conflicts = detector.detect_all_conflicts([make_entry("e1")])

    assert len(conflicts) == 1
    assert conflicts[0].type == ConflictType.UNSUITABLE_ROOM
    assert conflicts[0].severity == Severity.MEDIUM
    assert any(reason.startswith("Wrong room type") for reason in conflicts[0].reasons)


def test_prerequisite_violation_for_junior_student(detector_for, make_course, make_student, make_entry):
    detector = detector_for(
        courses=[make_course("c1", semester=3, prerequisites=["c0"])],
        students=[make_student("s1", semester=2), make_student("s2", semester=3)],
    )

    conflicts = detector.detect_all_conflicts([make_entry("e1", students=["s1", "s2"])])

    violations = of_type(conflicts, ConflictType.PREREQUISITE_VIOLATION)
    assert [item.student_id for item in violations] == ["s1"]


def test_teaching_practice_conflict(detector_for, make_course, make_entry):
    detector = detector_for(
        courses=[make_course("c1", category="practicum", name="Teaching Practice I"), make_course("c2")]
    )
    schedule = [
        make_entry("e1", course_id="c1", faculty_id="f1", room_id="r1", students=["s1", "s2"]),
        make_entry("e2", course_id="c2", faculty_id="f2", room_id="r2", students=["s2", "s3"]),
    ]

    conflicts = detector.detect_all_conflicts(schedule)
    practice = of_type(conflicts, ConflictType.TEACHING_PRACTICE_CONFLICT)

    assert len(practice) == 1
    assert practice[0].practicum_entry_id == "e1"
    assert practice[0].student_ids == ["s2"]
    assert len(of_type(conflicts, ConflictType.STUDENT_SCHEDULE_CLASH)) == 1


def test_unscheduled_session_names_missing_resources(detector_for, make_entry):
    entry = make_entry("e1", faculty_id="unassigned", room_id="unassigned", status="unscheduled")

    conflicts = detector_for().detect_all_conflicts([entry])

    assert len(conflicts) == 1
    assert conflicts[0].type == ConflictType.UNSCHEDULED_SESSION
    assert conflicts[0].missing == ["faculty", "room"]
    assert conflicts[0].resolution_strategies == ["reassign_faculty", "reassign_room"]


def test_unknown_references_are_skipped(detector_for, make_entry):
    schedule = [make_entry("e1", course_id="ghost", faculty_id="nobody", room_id="nowhere", students=["s1", "s2"])]
    assert detector_for().detect_all_conflicts(schedule) == []


def test_conflicts_are_sorted_by_severity(detector_for, make_course, make_room, make_entry):
    detector = detector_for(
        courses=[make_course("c1", type="lab"), make_course("c2")],
        rooms=[make_room("r1", capacity=1), make_room("r2")],
    )
    schedule = [
        make_entry("e1", course_id="c1", faculty_id="f1", room_id="r1", students=["s1", "s2"]),
        make_entry("e2", course_id="c2", faculty_id="f1", room_id="r2"),
    ]

    conflicts = detector.detect_all_conflicts(schedule)
    severities = [item.severity for item in conflicts]

    assert severities == sorted(severities, reverse=True)
    assert conflicts[0].type == ConflictType.FACULTY_DOUBLE_BOOKING
    assert conflicts[-1].type == ConflictType.UNSUITABLE_ROOM


def test_detection_is_idempotent_and_read_only(detector_for, make_entry):
    schedule = [
        make_entry("e1", course_id="c1", faculty_id="f1", students=["s1"]),
        make_entry("e2", course_id="c2", faculty_id="f1", students=["s1"]),
    ]
    before = [entry.model_dump() for entry in schedule]
    detector = detector_for()

    first = detector.detect_all_conflicts(schedule)
    second = detector.detect_all_conflicts(schedule)

    assert [item.model_dump() for item in first] == [item.model_dump() for item in second]
    assert [entry.model_dump() for entry in schedule] == before


def test_detect_high_severity_filters_medium(detector_for, make_course, make_entry):
    detector = detector_for(courses=[make_course("c1", type="lab")])
    assert detector.detect_high_severity([make_entry("e1")]) == []


def test_summarize_and_attach_conflict_ids(detector_for, make_entry):
    schedule = [
        make_entry("e1", course_id="c1", faculty_id="f1", room_id="r1"),
        make_entry("e2", course_id="c2", faculty_id="f1", room_id="r1"),
        make_entry("e3", course_id="c1", faculty_id="f2", room_id="r2", day="Tuesday"),
    ]
    conflicts = detector_for().detect_all_conflicts(schedule)

    summary = summarize(conflicts)
    assert summary.total == 2
    assert summary.by_type == {"faculty_double_booking": 1, "room_double_booking": 1}
    assert summary.by_severity == {"CRITICAL": 2}

    tagged = attach_conflict_ids(schedule, conflicts)
    assert len(tagged[0].conflicts) == 2
    assert tagged[2].conflicts == []
    assert schedule[0].conflicts == []
