from collections import Counter

import pytest

from smart_timetable.core.exceptions import SchedulerError, UnscheduledSessionWarning
from smart_timetable.schemas.generator import GenerationSettings
from smart_timetable.services import cancellation
from smart_timetable.services.cancellation import CancellationToken
from smart_timetable.services.genetic_optimizer import GeneticOptimizer


def small_settings(**overrides):
    values = {"population_size": 20, "generations": 30, "elite_size": 2, "random_seed": 7}
    values.update(overrides)
    return GenerationSettings(**values)


def signature(schedule):
    return [
        (entry.course_id, entry.session_number, entry.day, entry.time_slot, entry.faculty_id, entry.room_id)
        for entry in schedule
    ]


@pytest.fixture
def optimizer_inputs(make_course, make_faculty, make_room, make_student, time_slots):
    return {
        "courses": [
            make_course("c1", credits=3),
            make_course("c2", credits=2),
            make_course("c3", credits=6),
        ],
        "faculty": [make_faculty("f1"), make_faculty("f2")],
        "rooms": [make_room("r1"), make_room("r2", type="large_classroom", capacity=60)],
        "time_slots": time_slots,
        "students": [make_student(f"s{index}") for index in range(1, 4)],
    }


def test_single_course_sessions_land_in_distinct_slots(make_course, make_faculty, make_room, time_slots):
    course = make_course("c1", credits=5)
    assert course.sessions_per_week == 3

    optimizer = GeneticOptimizer(
        [course],
        [make_faculty("f1"), make_faculty("f2")],
        [make_room("r1", type="large_classroom", capacity=50), make_room("r2", type="large_classroom", capacity=50)],
        time_slots,
        [],
        small_settings(),
        days=["Monday", "Tuesday"],
    )
    outcome = optimizer.evolve()

    assert len(outcome.schedule) == 3
    assert sorted(entry.session_number for entry in outcome.schedule) == [1, 2, 3]
    assert all(entry.total_sessions == 3 for entry in outcome.schedule)
    assert not any(entry.is_unscheduled for entry in outcome.schedule)
    assert len({entry.time_key for entry in outcome.schedule}) == 3
    assert outcome.metrics.hard_constraint_violations == 0


def test_every_session_appears_exactly_once(optimizer_inputs):
    optimizer = GeneticOptimizer(**optimizer_inputs, settings=small_settings())
    outcome = optimizer.evolve()

    expected = sum(course.sessions_per_week for course in optimizer_inputs["courses"])
    sessions = Counter((entry.course_id, entry.session_number) for entry in outcome.schedule)
    assert len(outcome.schedule) == expected == 6
    assert set(sessions.values()) == {1}


def test_best_fitness_never_decreases(optimizer_inputs):
    optimizer = GeneticOptimizer(**optimizer_inputs, settings=small_settings())
    seen = []

    outcome = optimizer.evolve(on_progress=lambda progress: seen.append(progress.best_fitness))

    assert seen
    assert all(later >= earlier for earlier, later in zip(seen, seen[1:]))
    assert outcome.fitness_history == seen
    assert outcome.fitness == seen[-1]


def test_same_seed_reproduces_schedule(optimizer_inputs):
    first = GeneticOptimizer(**optimizer_inputs, settings=small_settings(random_seed=42)).evolve()
    second = GeneticOptimizer(**optimizer_inputs, settings=small_settings(random_seed=42)).evolve()

    assert signature(first.schedule) == signature(second.schedule)
    assert first.fitness == second.fitness
    assert first.generations == second.generations


def test_cancelled_before_start_returns_initial_best(optimizer_inputs):
    token = CancellationToken()
    token.cancel()

    outcome = GeneticOptimizer(**optimizer_inputs, settings=small_settings()).evolve(cancel_token=token)

    assert outcome.cancelled is True
    assert outcome.generations == 0
    assert len(outcome.schedule) == 6


def test_cancel_during_evolution_stops_at_generation_boundary(optimizer_inputs):
    token = CancellationToken()

    def stop_after_third(progress):
        if progress.generation == 3:
            token.cancel()

    outcome = GeneticOptimizer(**optimizer_inputs, settings=small_settings(stagnation_threshold=100)).evolve(
        on_progress=stop_after_third,
        cancel_token=token,
    )

    assert outcome.cancelled is True
    assert outcome.generations == 3
    assert len(outcome.fitness_history) == 3


def test_time_budget_stops_like_cancel(monkeypatch):
    token = CancellationToken(time_budget_seconds=5)
    assert token.should_stop() is False

    started = token._started_at
    monkeypatch.setattr(cancellation, "perf_counter", lambda: started + 10)

    assert token.budget_exhausted() is True
    assert token.should_stop() is True
    assert token.cancelled is False


def test_stagnation_ends_evolution_early(optimizer_inputs):
    settings = small_settings(generations=200, stagnation_threshold=5)
    outcome = GeneticOptimizer(**optimizer_inputs, settings=settings).evolve()

    assert outcome.generations < 200


def test_unplaceable_sessions_stay_unassigned_with_warning(make_course, make_faculty, make_room, time_slots):
    # Nobody can teach the course, so no placement is ever valid.
    optimizer = GeneticOptimizer(
        [make_course("c1", credits=3)],
        [make_faculty("f1", course_categories=["elective"])],
        [make_room("r1")],
        time_slots,
        [],
        small_settings(generations=3),
        days=["Monday"],
    )

    with pytest.warns(UnscheduledSessionWarning):
        outcome = optimizer.evolve()

    assert len(outcome.schedule) == 2
    assert all(entry.faculty_id == "unassigned" for entry in outcome.schedule)
    assert all(entry.status == "unscheduled" for entry in outcome.schedule)
    assert outcome.metrics.hard_constraint_violations > 0


def test_operators_never_modify_parents(optimizer_inputs):
    optimizer = GeneticOptimizer(**optimizer_inputs, settings=small_settings(mutation_rate=1.0))
    parent_a = optimizer._random_individual()
    parent_b = optimizer._random_individual()
    before_a = [entry.model_dump() for entry in parent_a.schedule]
    before_b = [entry.model_dump() for entry in parent_b.schedule]

    for child in optimizer._crossover(parent_a, parent_b):
        optimizer._mutate(child)
        optimizer._evaluate(child)
        assert len(child.schedule) == len(parent_a.schedule)

    assert [entry.model_dump() for entry in parent_a.schedule] == before_a
    assert [entry.model_dump() for entry in parent_b.schedule] == before_b


def test_faculty_clash_costs_one_hard_penalty(make_course, make_faculty, make_room, make_entry, time_slots):
    optimizer = GeneticOptimizer(
        [make_course("c1"), make_course("c2")],
        [make_faculty("f1"), make_faculty("f2")],
        [make_room("r1"), make_room("r2")],
        time_slots,
        [],
        small_settings(),
    )
    clean = optimizer.evaluate_schedule(
        [
            make_entry("e1", course_id="c1", room_id="r1"),
            make_entry("e2", course_id="c2", room_id="r2", day="Tuesday"),
        ]
    )
    clash = optimizer.evaluate_schedule(
        [
            make_entry("e1", course_id="c1", room_id="r1"),
            make_entry("e2", course_id="c2", room_id="r2"),
        ]
    )

    assert clean.fitness == 10_000
    assert clash.fitness == 9_000
    assert [item.category for item in clash.violations] == ["faculty_conflict"]
    assert clash.hard_violation_count == 1


def test_enrollment_follows_program_semester_and_electives(make_course, make_faculty, make_room, make_student, time_slots):
    optimizer = GeneticOptimizer(
        [
            make_course("c1"),
            make_course("c2", category="elective"),
            make_course("c3", category="elective"),
        ],
        [make_faculty("f1")],
        [make_room("r1")],
        time_slots,
        [
            make_student("s1", electives={"elective": ["c2"]}),
            make_student("s2"),
            make_student("s3", semester=2),
            make_student("s4", semester=3),
            make_student("s5", program="M.Ed"),
        ],
        small_settings(),
    )

    assert optimizer.enrolled_students["c1"] == ["s1", "s2", "s3"]
    assert optimizer.enrolled_students["c2"] == ["s1", "s2", "s3"]
    assert optimizer.enrolled_students["c3"] == ["s2", "s3"]


def test_no_time_slots_is_a_scheduler_error(make_course, make_faculty, make_room):
    with pytest.raises(SchedulerError):
        GeneticOptimizer([make_course("c1")], [make_faculty("f1")], [make_room("r1")], [], [])


def test_daily_hours_limit_is_a_soft_penalty(make_course, make_faculty, make_room, make_entry, time_slots):
    optimizer = GeneticOptimizer(
        [make_course("c1"), make_course("c2")],
        [make_faculty("f1", preferences={"max_daily_hours": 1, "avoid_back_to_back": False})],
        [make_room("r1"), make_room("r2")],
        time_slots,
        [],
        small_settings(),
    )

    scored = optimizer.evaluate_schedule(
        [
            make_entry("e1", course_id="c1", room_id="r1"),
            make_entry("e2", course_id="c2", room_id="r2", time_slot="11:00 - 12:00"),
        ]
    )

    assert [item.category for item in scored.violations] == ["faculty_preferences"]
    assert scored.fitness == 9_900
    assert scored.hard_violation_count == 0
