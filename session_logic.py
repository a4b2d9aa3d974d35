"""
session_logic.py: Guided workout execution.
Walks a workout set by set, records results, and tracks rest between sets.
"""

import copy
import logging
from datetime import datetime
from typing import Optional

from analytics_logic import round_half_up
from planner_logic import Exercise, InvalidArgument, SetResult, Workout

log = logging.getLogger(__name__)


class WorkoutSession:
    """
    Cursor over (exercise, set) positions with a terminal complete state.

    The session works on its own copy of the workout, so logging sets never
    touches the workout held by the caller until `workout` is read back.
    """

    def __init__(self, workout: Workout):
        self.workout = copy.deepcopy(workout)
        self.exercise_index = 0
        self.set_index = 0
        self.complete = not self.workout.exercises

    @property
    def exercises(self) -> list[Exercise]:
        return self.workout.exercises

    @property
    def current_exercise(self) -> Optional[Exercise]:
        if self.complete:
            return None
        return self.exercises[self.exercise_index]

    @property
    def current_result(self) -> Optional[SetResult]:
        ex = self.current_exercise
        return None if ex is None else ex.set_results[self.set_index]

    @property
    def total_sets(self) -> int:
        return self.workout.total_sets

    @property
    def completed_sets(self) -> int:
        if self.complete:
            return self.total_sets
        done = sum(e.sets for e in self.exercises[:self.exercise_index])
        return done + self.set_index

    @property
    def progress(self) -> float:
        if self.total_sets == 0:
            return 0.0
        return self.completed_sets / self.total_sets

    @property
    def is_first(self) -> bool:
        return self.exercise_index == 0 and self.set_index == 0

    def advance(self) -> int:
        """
        Step to the next set. Returns the rest, in seconds, to take before it:
        the exercise's rest between its own sets, nothing across exercises.
        """
        if self.complete:
            return 0
        ex = self.exercises[self.exercise_index]
        last_set = self.set_index == ex.sets - 1
        last_exercise = self.exercise_index == len(self.exercises) - 1
        if last_set and last_exercise:
            self.complete = True
            log.debug("session for %s complete", self.workout.name)
            return 0
        if last_set:
            self.exercise_index += 1
            self.set_index = 0
            return 0
        self.set_index += 1
        return ex.rest_seconds

    def retreat(self):
        if self.complete or self.is_first:
            return
        if self.set_index > 0:
            self.set_index -= 1
        else:
            self.exercise_index -= 1
            self.set_index = self.exercises[self.exercise_index].sets - 1

    def log_set(self, weight: Optional[float] = None, value: Optional[int] = None) -> int:
        """Record the current set as done and move on. Returns the rest to take."""
        if self.complete:
            raise InvalidArgument("workout is already complete")
        if value is not None and value < 0:
            raise InvalidArgument("set value cannot be negative")
        result = self.current_result
        if weight is not None:
            result.weight = weight
        if value is not None:
            result.value = value
        result.completed = True
        return self.advance()

    def summary(self, started_at: datetime, finished_at: datetime) -> dict:
        total = self.total_sets
        done = sum(1 for e in self.exercises for r in e.set_results if r.completed)
        return {
            "workout_id": self.workout.id,
            "workout_name": self.workout.name,
            "date": finished_at.strftime("%Y-%m-%d %H:%M"),
            "sets_completed": done,
            "total_sets": total,
            "completion_rate": round_half_up(done / total * 100) if total else 0,
            "duration_min": round_half_up((finished_at - started_at).total_seconds() / 60),
            "exercises": [e.to_dict() for e in self.exercises],
        }
