"""
planner_logic.py: The Rotation Studio Brain
Exercise catalog, workout models, routine rotation and calendar projection.
"""

import json
import logging
import uuid
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Iterator, Optional

log = logging.getLogger(__name__)


class InvalidArgument(ValueError):
    """Raised when a caller breaks an operation's precondition."""


# ─────────────────────────────────────────────
# Data Models
# ─────────────────────────────────────────────

class RepsOrTime(Enum):
    REPS = "reps"
    TIME = "time"


@dataclass(frozen=True)
class MuscleAttribution:
    categories: tuple = ()
    weights: tuple = ()

    def __post_init__(self):
        object.__setattr__(self, "categories", tuple(self.categories))
        object.__setattr__(self, "weights", tuple(self.weights))
        if len(self.categories) != len(self.weights):
            raise InvalidArgument(
                f"attribution has {len(self.categories)} categories "
                f"but {len(self.weights)} weights"
            )
        if any(w < 0 for w in self.weights):
            raise InvalidArgument("attribution weights must be non-negative")

    def pairs(self):
        return zip(self.categories, self.weights)

    def to_dict(self):
        return {"muscle_groups": list(self.categories),
                "muscle_weights": list(self.weights)}

    @classmethod
    def from_dict(cls, data: dict) -> "MuscleAttribution":
        return cls(data.get("muscle_groups", []), data.get("muscle_weights", []))


@dataclass
class SetResult:
    weight: Optional[float] = None
    value: Optional[int] = None      # reps done, or seconds held
    completed: bool = False

    def to_dict(self):
        return {"weight": self.weight, "value": self.value, "completed": self.completed}

    @classmethod
    def from_dict(cls, data: dict) -> "SetResult":
        _require_dict(data, "set result")
        return cls(_optional_float(data.get("weight")),
                   _optional_int(data.get("value", data.get("reps"))),
                   bool(data.get("completed", False)))


@dataclass
class Exercise:
    name: str
    sets: int = 3
    mode: RepsOrTime = RepsOrTime.REPS
    target: int = 10                 # reps for REPS, seconds for TIME
    rest_seconds: int = 90
    attribution: MuscleAttribution = field(default_factory=MuscleAttribution)
    set_results: list[SetResult] = field(default_factory=list)

    def __post_init__(self):
        if self.sets < 1:
            raise InvalidArgument(f"{self.name}: sets must be at least 1")
        if self.target < 1:
            raise InvalidArgument(f"{self.name}: target must be at least 1")
        if self.rest_seconds < 0:
            raise InvalidArgument(f"{self.name}: rest cannot be negative")
        self.set_results = self._fit_results(self.set_results, self.sets)

    def _fit_results(self, results: list[SetResult], n: int) -> list[SetResult]:
        results = list(results[:n])
        while len(results) < n:
            results.append(SetResult(value=self.target))
        return results

    @property
    def unit(self) -> str:
        return "sec" if self.mode is RepsOrTime.TIME else "reps"

    def with_sets(self, n: int) -> "Exercise":
        """Copy with `n` sets (at least one), keeping logged results that still fit."""
        n = max(1, n)
        return replace(self, sets=n, set_results=self._fit_results(self.set_results, n))

    def to_dict(self):
        return {
            "name": self.name,
            "sets": self.sets,
            "reps_or_time": self.mode.value,
            "target": self.target,
            "rest_seconds": self.rest_seconds,
            **self.attribution.to_dict(),
            "set_results": [r.to_dict() for r in self.set_results],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Exercise":
        _require_dict(data, "exercise")
        mode = RepsOrTime(data.get("reps_or_time", "reps"))
        if "target" in data:
            target = data["target"]
        elif mode is RepsOrTime.TIME:
            target = data.get("time_value", 30)
        else:
            target = data.get("reps_value", 10)
        return cls(
            name=data["name"],
            sets=int(data.get("sets", 3)),
            mode=mode,
            target=int(target),
            rest_seconds=int(data.get("rest_seconds", data.get("rest", 90))),
            attribution=MuscleAttribution.from_dict(data),
            set_results=[SetResult.from_dict(r) for r in data.get("set_results") or []],
        )


@dataclass
class Workout:
    id: str
    name: str
    type: str = "mixed"
    exercises: list[Exercise] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def total_sets(self) -> int:
        return sum(e.sets for e in self.exercises)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "created_at": self.created_at.isoformat(timespec="seconds"),
            "exercises": [e.to_dict() for e in self.exercises],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Workout":
        _require_dict(data, "workout")
        created = data.get("created_at")
        return cls(
            id=str(data["id"]),
            name=data["name"],
            type=data.get("type") or "mixed",
            exercises=[Exercise.from_dict(e) for e in data.get("exercises") or []],
            created_at=datetime.fromisoformat(created) if created else datetime.now(),
        )


def new_id() -> str:
    return uuid.uuid4().hex[:12]


def new_workout(name: str, workout_type: str = "mixed") -> Workout:
    return Workout(id=new_id(), name=name, type=workout_type)


def _require_dict(data, what: str):
    if not isinstance(data, dict):
        raise InvalidArgument(f"{what} must be a JSON object, got {type(data).__name__}")


def _optional_float(value):
    if value in (None, ""):
        return None
    return float(value)


def _optional_int(value):
    if value in (None, ""):
        return None
    return int(float(value))


# ─────────────────────────────────────────────
# Exercise Library
# ─────────────────────────────────────────────

@dataclass(frozen=True)
class LibraryExercise:
    slug: str
    name: str
    primary_group: str
    attribution: MuscleAttribution

    def to_exercise(self, sets: int = 3, target: int = 10) -> Exercise:
        return Exercise(self.name, sets=sets, target=target, attribution=self.attribution)


def _lib(slug, name, groups, weights):
    return LibraryExercise(slug, name, groups[0], MuscleAttribution(groups, weights))


EXERCISE_LIBRARY: list[LibraryExercise] = [
    # --- Back ---
    _lib("lat_pull_around", "Cross-Body Lat Pull-Around", ["Back"], [100]),
    _lib("db_shoulder_press", "Seated DB Shoulder Press", ["Back", "Shoulders"], [60, 40]),
    _lib("paused_rdl", "Paused Barbell RDL", ["Back", "Legs"], [60, 40]),
    _lib("machine_row", "Chest-Supported Machine Row", ["Back"], [100]),
    _lib("assisted_pull_up", "Superset A1: Assisted Pull-Up", ["Back"], [100]),
    _lib("neutral_pulldown", "Neutral-Grip Lat Pulldown", ["Back"], [100]),

    # --- Chest ---
    _lib("smith_incline_press", "Low Incline Smith Machine Press", ["Chest"], [100]),
    _lib("cable_pec_flye", "Bent-Over Cable Pec Flye", ["Chest"], [100]),

    # --- Legs ---
    _lib("hip_adduction", "Machine Hip Adduction", ["Legs"], [100]),
    _lib("leg_press", "Leg Press", ["Legs"], [100]),
    _lib("seated_leg_curl", "Superset B1: Seated Leg Curl", ["Legs"], [100]),
    _lib("leg_extension", "Superset B2: Leg Extension", ["Legs"], [100]),
    _lib("lying_leg_curl", "Lying Leg Curl", ["Legs"], [100]),
    _lib("hack_squat", "Hack Squat", ["Legs"], [100]),
    _lib("leg_press_calf", "Leg Press Calf Press", ["Legs"], [100]),
    _lib("standing_calf", "Standing Calf Raise", ["Legs"], [100]),

    # --- Shoulders ---
    _lib("cuffed_lateral_raise", "Cuffed Behind-The-Back Lateral Raise", ["Shoulders"], [100]),
    _lib("cable_shrug_in", "Cable Paused Shrug-In", ["Shoulders"], [100]),
    _lib("cable_reverse_flye", "Cable Reverse Flye (Mechanical Dropset)", ["Shoulders"], [100]),

    # --- Triceps ---
    _lib("overhead_triceps", "Overhead Cable Triceps Extension (Bar)", ["Triceps"], [100]),
    _lib("assisted_dip", "Superset A2: Paused Assisted Dip", ["Triceps"], [100]),
    _lib("triceps_pressdown", "Triceps Pressdown (Bar)", ["Triceps"], [100]),
    _lib("triceps_kickback", "Cable Triceps Kickback", ["Triceps"], [100]),

    # --- Abs ---
    _lib("rope_face_pull", "Lying Paused Rope Face Pull", ["Abs"], [100]),
    _lib("cable_crunch", "Cable Crunch", ["Abs"], [100]),
    _lib("roman_chair_raise", "Roman Chair Leg Raise", ["Abs"], [100]),

    # --- Biceps ---
    _lib("hammer_preacher", "Hammer Preacher Curl", ["Biceps"], [100]),
    _lib("bayesian_curl", "Bayesian Cable Curl", ["Biceps"], [100]),
    _lib("partial_preacher", "Bottom-2/3 Constant Tension Preacher Curl", ["Biceps"], [100]),

    # --- Custom ---
    _lib("weak_point_1", "Weak Point Exercise 1", ["Custom"], [100]),
    _lib("weak_point_2", "Weak Point Exercise 2 (optional)", ["Custom"], [100]),
]


def library_by_group() -> dict[str, list[LibraryExercise]]:
    """Library grouped by primary muscle group, in catalog order."""
    groups: dict[str, list[LibraryExercise]] = {}
    for e in EXERCISE_LIBRARY:
        groups.setdefault(e.primary_group, []).append(e)
    return groups


def find_library_exercise(name: str) -> Optional[LibraryExercise]:
    for e in EXERCISE_LIBRARY:
        if e.name == name:
            return e
    return None


def search_library(query: str, group: Optional[str] = None) -> list[LibraryExercise]:
    q = query.strip().lower()
    return [
        e for e in EXERCISE_LIBRARY
        if (not q or q in e.name.lower())
        and (group is None or group in e.attribution.categories)
    ]


# ─────────────────────────────────────────────
# Routine Model
# ─────────────────────────────────────────────

DEFAULT_CYCLE_COUNT = 4
CYCLE_CHOICES = (1, 2, 3, 4, 5, 6, 8, 10, 12)
REST_LABEL = "Rest"
MISSING_WORKOUT_LABEL = "Missing workout"


class ItemKind(Enum):
    WORKOUT = "workout"
    REST = "rest"


@dataclass(frozen=True)
class RoutineItem:
    id: str
    kind: ItemKind
    label: str
    workout_ref: Optional[str] = None

    @property
    def is_rest(self) -> bool:
        return self.kind is ItemKind.REST

    def to_dict(self):
        return {"id": self.id, "kind": self.kind.value,
                "workout_id": self.workout_ref, "label": self.label}

    @classmethod
    def from_dict(cls, data: dict) -> "RoutineItem":
        _require_dict(data, "routine item")
        kind = ItemKind(data.get("kind") or data.get("type") or "workout")
        if kind is ItemKind.REST:
            return cls(str(data.get("id") or new_id()), kind, REST_LABEL)
        if "kind" in data:
            ref = data.get("workout_id")
        else:
            # Older rows: {"type": "workout", "id": <workout id>}
            ref = data.get("workout_id", data.get("id"))
        item_id = data.get("id") if "kind" in data else None
        return cls(str(item_id or new_id()), kind, data.get("label") or "",
                   None if ref is None else str(ref))


def workout_item(workout_id: str, label: str) -> RoutineItem:
    return RoutineItem(new_id(), ItemKind.WORKOUT, label, workout_id)


def rest_item() -> RoutineItem:
    return RoutineItem(new_id(), ItemKind.REST, REST_LABEL)


@dataclass(frozen=True)
class Routine:
    items: tuple = ()
    cycle_count: int = DEFAULT_CYCLE_COUNT
    name: str = "My Workout Routine"
    description: str = ""
    start_date: Optional[date] = None    # day 0 of the rotation on the calendar

    def __post_init__(self):
        object.__setattr__(self, "items", tuple(self.items))
        _check_cycle_count(self.cycle_count)

    @property
    def selected_workout_ids(self) -> tuple:
        """Workout refs in first-appearance order, derived from `items`."""
        seen = []
        for item in self.items:
            if item.workout_ref is not None and item.workout_ref not in seen:
                seen.append(item.workout_ref)
        return tuple(seen)

    @property
    def total_days(self) -> int:
        return self.cycle_count * len(self.items)


def _check_cycle_count(n):
    if isinstance(n, bool) or not isinstance(n, int) or n < 1:
        raise InvalidArgument(f"cycle count must be a positive integer, got {n!r}")


def _check_index(routine: Routine, index: int, what: str):
    if not 0 <= index < len(routine.items):
        raise InvalidArgument(
            f"{what} {index} out of range for routine of {len(routine.items)} items"
        )


def new_routine(cycle_count: int = DEFAULT_CYCLE_COUNT,
                name: str = "My Workout Routine") -> Routine:
    return Routine(cycle_count=cycle_count, name=name)


def add_workout(routine: Routine, workout_id: str, workout_label: str) -> Routine:
    """Append a workout slot. Re-adding a selected workout changes nothing."""
    if workout_id in routine.selected_workout_ids:
        return routine
    return replace(routine, items=routine.items + (workout_item(workout_id, workout_label),))


def remove_workout(routine: Routine, workout_id: str) -> Routine:
    return replace(routine, items=tuple(
        i for i in routine.items if i.workout_ref != workout_id
    ))


def add_rest_day(routine: Routine) -> Routine:
    return replace(routine, items=routine.items + (rest_item(),))


def remove_item(routine: Routine, item_id: str) -> Routine:
    kept = tuple(i for i in routine.items if i.id != item_id)
    if len(kept) == len(routine.items):
        return routine
    return replace(routine, items=kept)


def reorder_items(routine: Routine, from_index: int, to_index: int) -> Routine:
    """
    Move the item at `from_index` so it ends up at `to_index`.
    Splice semantics: [A,B,C,D] moving 0 -> 2 gives [B,C,A,D].
    """
    _check_index(routine, from_index, "from_index")
    _check_index(routine, to_index, "to_index")
    if from_index == to_index:
        return routine
    items = list(routine.items)
    moved = items.pop(from_index)
    items.insert(to_index, moved)
    return replace(routine, items=tuple(items))


def duplicate_item(routine: Routine, index: int) -> Routine:
    """Insert a copy of the item at `index` directly after it."""
    _check_index(routine, index, "index")
    copy = replace(routine.items[index], id=new_id())
    items = routine.items[:index + 1] + (copy,) + routine.items[index + 1:]
    return replace(routine, items=items)


def set_cycle_count(routine: Routine, n: int) -> Routine:
    _check_cycle_count(n)
    return replace(routine, cycle_count=n)


def rename_routine(routine: Routine, name: str, description: str = "") -> Routine:
    return replace(routine, name=name.strip() or routine.name, description=description)


def set_start_date(routine: Routine, start: Optional[date]) -> Routine:
    return replace(routine, start_date=start)


def resolve_label(item: RoutineItem, workouts: dict[str, Workout]) -> str:
    """Display name for a slot; a deleted workout gets a placeholder."""
    if item.is_rest:
        return REST_LABEL
    workout = workouts.get(item.workout_ref)
    if workout is None:
        log.debug("routine item %s points at missing workout %s", item.id, item.workout_ref)
        return MISSING_WORKOUT_LABEL
    return workout.name


@dataclass(frozen=True)
class RoutineStats:
    days_per_cycle: int
    workout_days: int
    rest_days: int
    total_days: int
    workout_types: dict


def routine_stats(routine: Routine, workouts: Optional[dict[str, Workout]] = None) -> RoutineStats:
    workouts = workouts or {}
    rest = sum(1 for i in routine.items if i.is_rest)
    types: dict[str, int] = {}
    for item in routine.items:
        if item.is_rest:
            continue
        w = workouts.get(item.workout_ref)
        if w is not None:
            types[w.type] = types.get(w.type, 0) + 1
    return RoutineStats(
        days_per_cycle=len(routine.items),
        workout_days=len(routine.items) - rest,
        rest_days=rest,
        total_days=routine.total_days,
        workout_types=types,
    )


# ─────────────────────────────────────────────
# Schedule Projection
# ─────────────────────────────────────────────

@dataclass(frozen=True)
class ScheduledDay:
    cycle_index: int
    item_index: int
    absolute_day_index: int
    item: RoutineItem


class Schedule:
    """Row-major enumeration of a routine over its cycles. Iterable more than once."""

    def __init__(self, routine: Routine):
        self.routine = routine

    def __len__(self):
        return self.routine.total_days

    def __iter__(self) -> Iterator[ScheduledDay]:
        items = self.routine.items
        for cycle in range(self.routine.cycle_count if items else 0):
            for idx, item in enumerate(items):
                yield ScheduledDay(cycle, idx, cycle * len(items) + idx, item)

    def __getitem__(self, day: int) -> ScheduledDay:
        if not 0 <= day < len(self):
            raise InvalidArgument(f"day {day} is outside a {len(self)}-day schedule")
        cycle, idx = divmod(day, len(self.routine.items))
        return ScheduledDay(cycle, idx, day, self.routine.items[idx])

    def cycle(self, cycle_index: int) -> list[ScheduledDay]:
        n = len(self.routine.items)
        return [self[cycle_index * n + i] for i in range(n)]


def project_to_days(routine: Routine) -> Schedule:
    return Schedule(routine)


def date_for_day(start_date: date, absolute_day_index: int) -> date:
    return start_date + timedelta(days=absolute_day_index)


def schedule_dates(routine: Routine, start_date: date) -> Iterator[tuple[date, ScheduledDay]]:
    for day in project_to_days(routine):
        yield date_for_day(start_date, day.absolute_day_index), day


def day_on_date(routine: Routine, start_date: date, on: date) -> Optional[ScheduledDay]:
    """The scheduled slot falling on `on`, or None outside the routine's horizon."""
    offset = (on - start_date).days
    schedule = project_to_days(routine)
    if 0 <= offset < len(schedule):
        return schedule[offset]
    return None


def week_dates(anchor: date) -> list[date]:
    """Sunday-first week containing `anchor`."""
    sunday = anchor - timedelta(days=(anchor.weekday() + 1) % 7)
    return [sunday + timedelta(days=i) for i in range(7)]


def month_grid(anchor: date) -> list[list[date]]:
    """Six Sunday-first weeks covering the month of `anchor`."""
    first = week_dates(anchor.replace(day=1))[0]
    return [[first + timedelta(days=w * 7 + d) for d in range(7)] for w in range(6)]


def shift_month(anchor: date, months: int) -> date:
    """First day of the month `months` away from the month of `anchor`."""
    index = anchor.year * 12 + anchor.month - 1 + months
    return date(index // 12, index % 12 + 1, 1)


# ─────────────────────────────────────────────
# Routine Templates
# ─────────────────────────────────────────────

ROUTINE_TEMPLATES = [
    {
        "name": "Push/Pull/Legs",
        "description": "3-day split focusing on different muscle groups",
        "pattern": ["Push Day", "Pull Day", "Leg Day", "Rest"],
        "level": "Intermediate",
    },
    {
        "name": "Upper/Lower Split",
        "description": "4-day split alternating upper and lower body",
        "pattern": ["Upper Body", "Lower Body", "Rest", "Upper Body", "Lower Body", "Rest", "Rest"],
        "level": "Beginner",
    },
    {
        "name": "Full Body 3x",
        "description": "Full body workouts 3 times per week",
        "pattern": ["Full Body", "Rest", "Full Body", "Rest", "Full Body", "Rest", "Rest"],
        "level": "Beginner",
    },
    {
        "name": "Arnold Split",
        "description": "6-day split popularized by Arnold Schwarzenegger",
        "pattern": ["Chest/Back", "Shoulders/Arms", "Legs", "Chest/Back", "Shoulders/Arms", "Legs", "Rest"],
        "level": "Advanced",
    },
]


def routine_from_template(
    template: dict,
    workouts: list[Workout],
    cycle_count: int = DEFAULT_CYCLE_COUNT,
) -> tuple[Routine, list[str]]:
    """
    Build a routine from a template pattern, matching names to the user's workouts.
    Returns the routine and the pattern names that had no matching workout.
    A workout may fill several slots (e.g. Upper Body twice a week).
    """
    by_name = {w.name.strip().lower(): w for w in workouts}
    items = []
    missing = []
    for slot in template["pattern"]:
        if slot.lower() == REST_LABEL.lower():
            items.append(rest_item())
            continue
        w = by_name.get(slot.strip().lower())
        if w is None:
            if slot not in missing:
                missing.append(slot)
            continue
        items.append(workout_item(w.id, w.name))
    if missing:
        log.info("template %s: no workouts named %s", template["name"], missing)
    routine = Routine(items=tuple(items), cycle_count=cycle_count,
                      name=template["name"], description=template.get("description", ""))
    return routine, missing


# ─────────────────────────────────────────────
# Snapshot Codec
# ─────────────────────────────────────────────

def routine_to_dict(routine: Routine) -> dict:
    return {
        "name": routine.name,
        "description": routine.description,
        "selected_workout_ids": list(routine.selected_workout_ids),
        "ordered_routine_items": [i.to_dict() for i in routine.items],
        "rotation_cycles": routine.cycle_count,
        "start_date": routine.start_date.isoformat() if routine.start_date else None,
    }


def routine_from_dict(data: dict) -> Routine:
    _require_dict(data, "routine snapshot")
    start = data.get("start_date")
    return Routine(
        items=tuple(RoutineItem.from_dict(i) for i in data.get("ordered_routine_items") or []),
        cycle_count=int(data.get("rotation_cycles") or DEFAULT_CYCLE_COUNT),
        name=data.get("name") or "My Workout Routine",
        description=data.get("description") or "",
        start_date=date.fromisoformat(start) if start else None,
    )


def routine_to_json(routine: Routine) -> str:
    """Serialize a routine snapshot for Google Sheets storage."""
    return json.dumps(routine_to_dict(routine))


def json_to_routine(json_str: str) -> Routine:
    """Deserialize a routine snapshot from Google Sheets."""
    return routine_from_dict(json.loads(json_str))
