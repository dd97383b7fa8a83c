import os

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from smart_timetable.api.deps import get_db, get_reference_provider
from smart_timetable.db.base import Base
from smart_timetable.main import app
from smart_timetable.schemas.course import Course
from smart_timetable.schemas.faculty import Faculty
from smart_timetable.schemas.reference import ReferenceData
from smart_timetable.schemas.room import Room
from smart_timetable.schemas.schedule import ScheduleEntry
from smart_timetable.schemas.student import Student
from smart_timetable.schemas.time_slot import TimeSlot
from smart_timetable.services.reference_data import StaticReferenceDataProvider


@pytest.fixture
def make_course():
    def factory(course_id="c1", **overrides):
        values = {
            "id": course_id,
            "code": course_id.upper(),
            "name": f"Course {course_id}",
            "credits": 3,
            "program": "B.Ed",
            "semester": 1,
            "category": "core",
        }
        values.update(overrides)
        return Course(**values)

    return factory


@pytest.fixture
def make_faculty():
    def factory(faculty_id="f1", **overrides):
        values = {
            "id": faculty_id,
            "name": f"Prof {faculty_id}",
            "department": "Education",
            "programs": ["B.Ed"],
            "course_categories": ["core", "elective", "practicum"],
        }
        values.update(overrides)
        return Faculty(**values)

    return factory


@pytest.fixture
def make_room():
    def factory(room_id="r1", **overrides):
        values = {"id": room_id, "name": f"Room {room_id}", "capacity": 40, "type": "regular_classroom"}
        values.update(overrides)
        return Room(**values)

    return factory


@pytest.fixture
def make_student():
    def factory(student_id="s1", **overrides):
        values = {"id": student_id, "name": f"Student {student_id}", "program": "B.Ed", "semester": 1}
        values.update(overrides)
        return Student(**values)

    return factory


@pytest.fixture
def make_entry():
    def factory(entry_id, **overrides):
        values = {
            "id": entry_id,
            "course_id": "c1",
            "faculty_id": "f1",
            "room_id": "r1",
            "day": "Monday",
            "time_slot": "09:00 - 10:00",
            "start_time": "09:00",
            "end_time": "10:00",
        }
        values.update(overrides)
        return ScheduleEntry(**values)

    return factory


@pytest.fixture
def time_slots():
    return [
        TimeSlot(start_time="09:00", end_time="10:00"),
        TimeSlot(start_time="10:00", end_time="11:00"),
        TimeSlot(start_time="11:00", end_time="12:00"),
    ]


@pytest.fixture
def reference_data(make_course, make_faculty, make_room, make_student, time_slots):
    return ReferenceData(
        courses=[
            make_course("c1", name="Educational Psychology", credits=3),
            make_course("c2", name="Pedagogy of Science", credits=2),
            make_course("c3", name="Research Methods", credits=3, semester=2),
        ],
        faculty=[make_faculty("f1"), make_faculty("f2")],
        rooms=[make_room("r1"), make_room("r2")],
        time_slots=time_slots,
        students=[make_student(f"s{index}") for index in range(1, 6)] + [make_student("s6", semester=2)],
    )


@pytest.fixture()
def client(reference_data):
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_reference_provider] = lambda: StaticReferenceDataProvider(reference_data)

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
