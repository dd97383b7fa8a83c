from __future__ import annotations

from collections import Counter, defaultdict
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass, field
import logging
import random
import warnings

from smart_timetable.core.exceptions import SchedulerError, UnscheduledSessionWarning
from smart_timetable.schemas.course import Course
from smart_timetable.schemas.faculty import Faculty
from smart_timetable.schemas.generator import GenerationProgress, GenerationSettings
from smart_timetable.schemas.room import Room
from smart_timetable.schemas.schedule import UNASSIGNED, ScheduleEntry
from smart_timetable.schemas.student import Student
from smart_timetable.schemas.time_slot import WEEKDAYS, TimeSlot
from smart_timetable.services.cancellation import CancellationToken

logger = logging.getLogger(__name__)

HARD = "hard"
SOFT = "soft"


@dataclass(frozen=True)
class Violation:
    category: str
    tier: str
    count: float
    penalty: float


@dataclass
class ChromosomeMetrics:
    hard_constraint_violations: int = 0
    soft_constraint_violations: float = 0.0
    faculty_utilization: float = 0.0
    room_utilization: float = 0.0


@dataclass
class TimetableChromosome:
    schedule: list[ScheduleEntry]
    fitness: float = 0.0
    violations: list[Violation] = field(default_factory=list)
    metrics: ChromosomeMetrics = field(default_factory=ChromosomeMetrics)

    def clone(self) -> TimetableChromosome:
        return TimetableChromosome(
            schedule=[entry.clone() for entry in self.schedule],
            fitness=self.fitness,
            violations=list(self.violations),
            metrics=ChromosomeMetrics(**vars(self.metrics)),
        )

    @property
    def hard_violation_count(self) -> int:
        return self.metrics.hard_constraint_violations

    @property
    def unscheduled_count(self) -> int:
        return sum(1 for entry in self.schedule if entry.is_unscheduled)


@dataclass
class OptimizationOutcome:
    best: TimetableChromosome
    fitness: float
    generations: int
    violations: list[Violation]
    metrics: ChromosomeMetrics
    fitness_history: list[float]
    cancelled: bool = False

    @property
    def schedule(self) -> list[ScheduleEntry]:
        return self.best.schedule


class GeneticOptimizer:
    """Evolves a population of candidate weekly schedules.

    Every chromosome lists one entry per (course, session) in a fixed order, so
    single-point crossover always yields complete schedules. Operators work on
    cloned entries: a parent is never changed by what happens to its children.
    """

    def __init__(
        self,
        courses: Sequence[Course],
        faculty: Sequence[Faculty],
        rooms: Sequence[Room],
        time_slots: Sequence[TimeSlot],
        students: Sequence[Student],
        settings: GenerationSettings | None = None,
        *,
        days: Sequence[str] = WEEKDAYS,
        rng: random.Random | None = None,
    ) -> None:
        self.settings = settings or GenerationSettings()
        self.weights = self.settings.fitness_weights
        self.random = rng or random.Random(self.settings.random_seed)

        self.courses = list(courses)
        self.course_map = {course.id: course for course in self.courses}
        self.faculty = list(faculty)
        self.faculty_map = {member.id: member for member in self.faculty}
        self.rooms = list(rooms)
        self.room_map = {room.id: room for room in self.rooms}
        self.time_slots = list(time_slots)
        self.slot_index = {slot.label: index for index, slot in enumerate(self.time_slots)}
        self.students = list(students)
        self.days = list(days)

        if not self.time_slots:
            raise SchedulerError("No time slots available for timetable generation")
        if not self.days:
            raise SchedulerError("No working days configured for timetable generation")

        self.enrolled_students = {course.id: self._enrolled_students(course) for course in self.courses}
        self.room_candidates = {course.id: self._suitable_rooms(course) for course in self.courses}
        self.faculty_candidates = {
            course.id: [member for member in self.faculty if member.can_teach(course)] for course in self.courses
        }

        self.population: list[TimetableChromosome] = []
        self.best: TimetableChromosome | None = None
        self.generation = 0
        self.stagnation = 0
        self.fitness_history: list[float] = []
        self.cancelled = False

    def _enrolled_students(self, course: Course) -> list[str]:
        enrolled: list[str] = []
        for student in self.students:
            if student.program != course.program:
                continue
            # Students take their own semester's courses or the previous one's.
            if not 0 <= student.semester - course.semester <= 1:
                continue
            if course.is_elective:
                selections = student.selected_course_ids()
                if selections and course.id not in selections:
                    continue
            enrolled.append(student.id)
        return enrolled

    def _suitable_rooms(self, course: Course) -> list[Room]:
        suitable = [room for room in self.rooms if room.is_suitable_for(course)]
        head_count = len(self.enrolled_students[course.id])
        large_enough = [room for room in suitable if room.capacity >= head_count]
        return large_enough or suitable

    def _pick(self, items: Sequence):
        return self.random.choice(items) if items else None

    def _random_individual(self) -> TimetableChromosome:
        schedule: list[ScheduleEntry] = []
        faculty_busy: set[tuple[str, str, str]] = set()
        room_busy: set[tuple[str, str, str]] = set()
        student_busy: set[tuple[str, str, str]] = set()
        course_busy: set[tuple[str, str, str]] = set()

        for course in self.courses:
            sessions = course.sessions_per_week
            students = self.enrolled_students[course.id]
            rooms = self.room_candidates[course.id]
            teachers = self.faculty_candidates[course.id]

            for session in range(1, sessions + 1):
                placed: ScheduleEntry | None = None
                for _attempt in range(self.settings.max_placement_attempts):
                    day = self._pick(self.days)
                    slot = self._pick(self.time_slots)
                    room = self._pick(rooms)
                    member = self._pick(teachers)
                    if room is None or member is None:
                        continue
                    label = slot.label
                    if (
                        (member.id, day, label) in faculty_busy
                        or (room.id, day, label) in room_busy
                        or (course.id, day, label) in course_busy
                        or any((student_id, day, label) in student_busy for student_id in students)
                        or not member.is_available(day, label)
                    ):
                        continue
                    placed = ScheduleEntry(
                        course_id=course.id,
                        course_name=course.name,
                        faculty_id=member.id,
                        room_id=room.id,
                        day=day,
                        time_slot=label,
                        start_time=slot.start_time,
                        end_time=slot.end_time,
                        students=list(students),
                        session_number=session,
                        total_sessions=sessions,
                    )
                    break

                if placed is None:
                    slot = self._pick(self.time_slots)
                    placed = ScheduleEntry(
                        course_id=course.id,
                        course_name=course.name,
                        day=self._pick(self.days),
                        time_slot=slot.label,
                        start_time=slot.start_time,
                        end_time=slot.end_time,
                        students=list(students),
                        session_number=session,
                        total_sessions=sessions,
                        status="unscheduled",
                    )

                schedule.append(placed)
                day, label = placed.time_key
                course_busy.add((course.id, day, label))
                if placed.faculty_id != UNASSIGNED:
                    faculty_busy.add((placed.faculty_id, day, label))
                if placed.room_id != UNASSIGNED:
                    room_busy.add((placed.room_id, day, label))
                student_busy.update((student_id, day, label) for student_id in students)

        return TimetableChromosome(schedule=schedule)

    def evaluate_schedule(self, schedule: Sequence[ScheduleEntry]) -> TimetableChromosome:
        """Score a schedule without touching it; the entries are cloned first."""
        chromosome = TimetableChromosome(schedule=[entry.clone() for entry in schedule])
        self._evaluate(chromosome)
        return chromosome

    def _evaluate(self, chromosome: TimetableChromosome) -> float:
        weights = self.weights
        schedule = chromosome.schedule
        violations: list[Violation] = []

        def add(category: str, tier: str, count: float, weight: float) -> None:
            if count:
                violations.append(Violation(category=category, tier=tier, count=count, penalty=count * weight))

        faculty_seen: set[tuple[str, str, str]] = set()
        room_seen: set[tuple[str, str, str]] = set()
        student_seen: set[tuple[str, str, str]] = set()
        course_seen: set[tuple[str, str, str]] = set()
        faculty_clashes = room_clashes = student_clashes = 0
        capacity_overflows = unavailable = unsuitable = 0
        preference_misses = 0.0
        sessions_by_faculty: Counter[str] = Counter()
        faculty_day_slots: dict[tuple[str, str], set[int]] = defaultdict(set)
        daily_sessions: Counter[tuple[str, str]] = Counter()
        day_counts: Counter[str] = Counter()
        used_room_slots: set[tuple[str, str, str]] = set()

        for entry in schedule:
            day, label = entry.time_key
            day_counts[day] += 1

            course_key = (entry.course_id, day, label)
            if course_key in course_seen:
                # Two sessions of one course in the same slot behave like a student clash.
                student_clashes += 1
            course_seen.add(course_key)

            if entry.faculty_id == UNASSIGNED:
                faculty_clashes += 1
            else:
                key = (entry.faculty_id, day, label)
                if key in faculty_seen:
                    faculty_clashes += 1
                faculty_seen.add(key)
                sessions_by_faculty[entry.faculty_id] += 1
                daily_sessions[(entry.faculty_id, day)] += 1
                if entry.time_slot in self.slot_index:
                    faculty_day_slots[(entry.faculty_id, day)].add(self.slot_index[entry.time_slot])

            if entry.room_id == UNASSIGNED:
                room_clashes += 1
            else:
                key = (entry.room_id, day, label)
                if key in room_seen:
                    room_clashes += 1
                room_seen.add(key)
                used_room_slots.add(key)

            for student_id in entry.students:
                key = (student_id, day, label)
                if key in student_seen:
                    student_clashes += 1
                student_seen.add(key)

            room = self.room_map.get(entry.room_id)
            course = self.course_map.get(entry.course_id)
            if room is not None:
                if len(entry.students) > room.capacity:
                    capacity_overflows += 1
                if course is not None and not room.is_suitable_for(course):
                    unsuitable += 1

            member = self.faculty_map.get(entry.faculty_id)
            if member is not None:
                if not member.is_available(day, label):
                    unavailable += 1
                preferred = member.preferences.preferred_time_slots
                if preferred and label not in preferred:
                    preference_misses += 1

        for entry in schedule:
            member = self.faculty_map.get(entry.faculty_id)
            if member is None or not member.preferences.avoid_back_to_back:
                continue
            index = self.slot_index.get(entry.time_slot)
            if index is None:
                continue
            taken = faculty_day_slots[(member.id, entry.day)]
            if index - 1 in taken or index + 1 in taken:
                preference_misses += 0.5

        for (faculty_id, day), count in daily_sessions.items():
            member = self.faculty_map.get(faculty_id)
            if member is not None:
                preference_misses += max(0, count - member.preferences.max_daily_hours)

        excess_sessions = 0
        for member in self.faculty:
            excess_sessions += max(0, sessions_by_faculty[member.id] - member.workload.max_hours_per_week)

        day_imbalance = 0.0
        if day_counts:
            average = len(schedule) / len(day_counts)
            day_imbalance = sum(abs(count - average) * 0.1 for count in day_counts.values())

        add("faculty_conflict", HARD, faculty_clashes, weights.faculty_conflict)
        add("room_conflict", HARD, room_clashes, weights.room_conflict)
        add("student_conflict", HARD, student_clashes, weights.student_conflict)
        add("capacity_violation", HARD, capacity_overflows, weights.capacity_violation)
        add("faculty_unavailable", HARD, unavailable, weights.faculty_unavailable)
        add("faculty_preferences", SOFT, preference_misses, weights.faculty_preferences)
        add("workload_balance", SOFT, excess_sessions, weights.workload_balance)
        add("room_suitability", SOFT, unsuitable, weights.room_suitability)
        add("day_distribution", SOFT, day_imbalance, weights.day_distribution)

        capacity_hours = sum(member.workload.max_hours_per_week for member in self.faculty)
        used_hours = sum(sessions_by_faculty[member.id] for member in self.faculty)
        faculty_utilization = used_hours / capacity_hours if capacity_hours > 0 else 0.0
        room_capacity_slots = len(self.rooms) * len(self.time_slots) * len(self.days)
        room_utilization = len(used_room_slots) / room_capacity_slots if room_capacity_slots > 0 else 0.0

        bonus = 0.0
        if 0.7 < faculty_utilization < 0.9:
            bonus += weights.faculty_utilization_bonus
        if 0.6 < room_utilization < 0.8:
            bonus += weights.room_utilization_bonus

        fitness = self.settings.fitness_ceiling - sum(item.penalty for item in violations) + bonus
        chromosome.fitness = max(0.0, fitness)
        chromosome.violations = violations
        chromosome.metrics = ChromosomeMetrics(
            hard_constraint_violations=int(sum(item.count for item in violations if item.tier == HARD)),
            soft_constraint_violations=round(sum(item.count for item in violations if item.tier == SOFT), 2),
            faculty_utilization=faculty_utilization,
            room_utilization=room_utilization,
        )
        return chromosome.fitness

    def _crossover(
        self,
        parent_a: TimetableChromosome,
        parent_b: TimetableChromosome,
    ) -> tuple[TimetableChromosome, TimetableChromosome]:
        length = len(parent_a.schedule)
        point = self.random.randrange(length) if length else 0
        child_a = [entry.clone() for entry in parent_a.schedule[:point]] + [
            entry.clone() for entry in parent_b.schedule[point:]
        ]
        child_b = [entry.clone() for entry in parent_b.schedule[:point]] + [
            entry.clone() for entry in parent_a.schedule[point:]
        ]
        return TimetableChromosome(schedule=child_a), TimetableChromosome(schedule=child_b)

    def _mutate(self, chromosome: TimetableChromosome) -> bool:
        if not chromosome.schedule or self.random.random() >= self.settings.mutation_rate:
            return False

        index = self.random.randrange(len(chromosome.schedule))
        entry = chromosome.schedule[index]
        roll = self.random.random()
        changes: dict = {}

        if roll < 0.25:
            changes["day"] = self._pick(self.days)
        elif roll < 0.5:
            slot = self._pick(self.time_slots)
            changes.update(time_slot=slot.label, start_time=slot.start_time, end_time=slot.end_time)
        elif roll < 0.75:
            room = self._pick(self.room_candidates.get(entry.course_id, []))
            if room is not None:
                changes["room_id"] = room.id
        else:
            member = self._pick(self.faculty_candidates.get(entry.course_id, []))
            if member is not None:
                changes["faculty_id"] = member.id

        if not changes:
            return False
        mutated = entry.clone(**changes)
        mutated.status = "unscheduled" if mutated.is_unscheduled else "scheduled"
        chromosome.schedule[index] = mutated
        return True

    def _select(self, population: list[TimetableChromosome]) -> TimetableChromosome:
        size = min(self.settings.tournament_size, len(population))
        contenders = self.random.sample(range(len(population)), size)
        return population[max(contenders, key=lambda idx: population[idx].fitness)]

    def _initialize_population(self) -> None:
        self.population = []
        for _ in range(self.settings.population_size):
            chromosome = self._random_individual()
            self._evaluate(chromosome)
            self.population.append(chromosome)
        self.population.sort(key=lambda item: item.fitness, reverse=True)
        self.best = self.population[0].clone()
        logger.info(
            "Initial population ready | size=%s sessions=%s best_fitness=%.2f",
            len(self.population),
            len(self.best.schedule),
            self.best.fitness,
        )

    def _next_generation(self) -> list[TimetableChromosome]:
        size = self.settings.population_size
        next_population = [item.clone() for item in self.population[: self.settings.elite_size]]
        while len(next_population) < size:
            parent_a = self._select(self.population)
            parent_b = self._select(self.population)
            if self.random.random() < self.settings.crossover_rate:
                offspring = list(self._crossover(parent_a, parent_b))
            else:
                offspring = [parent_a.clone()]
            for child in offspring:
                if len(next_population) >= size:
                    break
                self._mutate(child)
                self._evaluate(child)
                next_population.append(child)
        next_population.sort(key=lambda item: item.fitness, reverse=True)
        return next_population

    def iter_evolution(self, cancel_token: CancellationToken | None = None) -> Iterator[GenerationProgress]:
        """Run the evolution loop, yielding one progress record per generation.

        Each yield is a cooperative checkpoint. The cancellation token is
        consulted before every generation; stopping keeps the best-so-far
        chromosome available through ``result()``.
        """
        self._initialize_population()
        self.generation = 0
        self.stagnation = 0
        self.fitness_history = []
        self.cancelled = False

        for generation in range(1, self.settings.generations + 1):
            if cancel_token is not None and cancel_token.should_stop():
                self.cancelled = True
                logger.info("Evolution cancelled before generation %s", generation)
                break

            self.population = self._next_generation()
            self.generation = generation

            leader = self.population[0]
            if leader.fitness > self.best.fitness:
                self.best = leader.clone()
                self.stagnation = 0
                logger.debug("Generation %s: new best fitness %.2f", generation, self.best.fitness)
            else:
                self.stagnation += 1
            self.fitness_history.append(self.best.fitness)

            yield GenerationProgress(
                generation=generation,
                best_fitness=self.best.fitness,
                avg_fitness=sum(item.fitness for item in self.population) / len(self.population),
                conflicts=self.best.hard_violation_count,
                stagnation=self.stagnation,
                phase="evolution",
            )

            if self.stagnation >= self.settings.stagnation_threshold:
                logger.info(
                    "Converged at generation %s after %s generations without improvement",
                    generation,
                    self.stagnation,
                )
                break

    def result(self) -> OptimizationOutcome:
        if self.best is None:
            raise SchedulerError("Evolution has not been run")
        unscheduled = self.best.unscheduled_count
        if unscheduled:
            message = f"{unscheduled} session(s) could not be placed and remain unassigned"
            logger.warning(message)
            warnings.warn(message, UnscheduledSessionWarning, stacklevel=2)
        logger.info(
            "Evolution completed | generations=%s best_fitness=%.2f hard_violations=%s",
            self.generation,
            self.best.fitness,
            self.best.hard_violation_count,
        )
        return OptimizationOutcome(
            best=self.best.clone(),
            fitness=self.best.fitness,
            generations=self.generation,
            violations=list(self.best.violations),
            metrics=ChromosomeMetrics(**vars(self.best.metrics)),
            fitness_history=list(self.fitness_history),
            cancelled=self.cancelled,
        )

    def evolve(
        self,
        on_progress: Callable[[GenerationProgress], None] | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> OptimizationOutcome:
        for progress in self.iter_evolution(cancel_token):
            if on_progress is not None:
                on_progress(progress)
        return self.result()
