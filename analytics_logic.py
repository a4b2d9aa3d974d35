"""
analytics_logic.py: Muscle distribution and training history analytics.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Hashable, Iterable, Optional

import pandas as pd

from planner_logic import MuscleAttribution, Workout

log = logging.getLogger(__name__)

TOP_K = 3
OTHER_LABEL = "Other"
WEEKLY_TARGET = 5

UPPER_GROUPS = ("Chest", "Triceps", "Back", "Biceps", "Shoulders")
LOWER_GROUPS = ("Legs",)
CORE_GROUPS = ("Abs",)


def round_half_up(x: float) -> int:
    """Nearest integer, halves rounded up (2.5 -> 3). Python's round() rounds halves to even."""
    return int(math.floor(x + 0.5))


def _correct_remainder(values: list[int]) -> list[int]:
    """Push whatever rounding lost or gained onto the first largest value."""
    if not values:
        return values
    diff = 100 - sum(values)
    if diff:
        biggest = values.index(max(values))
        values[biggest] += diff
    return values


# ─────────────────────────────────────────────
# Muscle Distribution
# ─────────────────────────────────────────────

@dataclass(frozen=True)
class DistributionSummary:
    top_categories: tuple = ()
    top_weights: tuple = ()
    other_label: Optional[str] = None
    other_weight: Optional[int] = None

    @property
    def is_empty(self) -> bool:
        return not self.top_categories

    def items(self) -> list[tuple[str, int]]:
        pairs = list(zip(self.top_categories, self.top_weights))
        if self.other_label is not None:
            pairs.append((self.other_label, self.other_weight))
        return pairs


def _attribution_of(entry) -> MuscleAttribution:
    if isinstance(entry, MuscleAttribution):
        return entry
    return entry.attribution


def aggregate(exercises: Iterable, top_k: int = TOP_K,
              other_label: str = OTHER_LABEL) -> DistributionSummary:
    """
    Summarize weighted muscle attributions as whole percentages summing to 100.

    Accepts MuscleAttribution values or anything carrying an `.attribution`
    (an Exercise, a LibraryExercise). The `top_k` heaviest categories are kept,
    the rest fold into a single `other_label` bucket. Each bucket is rounded
    half-up on its own, then the leftover is added to the largest bucket.
    """
    totals: dict[str, float] = {}
    grand_total = 0
    for entry in exercises:
        for category, weight in _attribution_of(entry).pairs():
            totals[category] = totals.get(category, 0) + weight
            grand_total += weight

    if grand_total == 0:
        return DistributionSummary()

    # sorted() is stable, so equal shares keep first-seen order
    ranked = sorted(
        ((cat, w / grand_total * 100) for cat, w in totals.items()),
        key=lambda pair: pair[1],
        reverse=True,
    )
    top, rest = ranked[:top_k], ranked[top_k:]

    raw = [pct for _, pct in top]
    if rest:
        raw.append(sum(pct for _, pct in rest))
    rounded = _correct_remainder([round_half_up(pct) for pct in raw])

    if rest:
        return DistributionSummary(
            tuple(cat for cat, _ in top), tuple(rounded[:-1]), other_label, rounded[-1]
        )
    return DistributionSummary(tuple(cat for cat, _ in top), tuple(rounded))


def body_split(exercises: Iterable) -> dict[str, int]:
    """Upper / lower / core percentages. Unlisted groups count toward the total only."""
    buckets = {"upper": 0.0, "lower": 0.0, "core": 0.0}
    total = 0
    for entry in exercises:
        for muscle, weight in _attribution_of(entry).pairs():
            total += weight
            if muscle in UPPER_GROUPS:
                buckets["upper"] += weight
            elif muscle in LOWER_GROUPS:
                buckets["lower"] += weight
            elif muscle in CORE_GROUPS:
                buckets["core"] += weight

    if total == 0:
        return {"upper": 0, "lower": 0, "core": 0}

    keys = list(buckets)
    rounded = [round_half_up(buckets[k] / total * 100) for k in keys]
    if sum(rounded) > 0:
        rounded = _correct_remainder(rounded)
    return dict(zip(keys, rounded))


# ─────────────────────────────────────────────
# Frequency Rankings
# ─────────────────────────────────────────────

def aggregate_by_frequency(items: Iterable, key_fn: Callable[[object], Hashable],
                           limit: Optional[int] = 5) -> list[tuple[Hashable, int]]:
    """Count keys, most frequent first; ties keep first-seen order. `limit=None` keeps all."""
    counts: dict = {}
    for item in items:
        key = key_fn(item)
        counts[key] = counts.get(key, 0) + 1
    ranked = sorted(counts.items(), key=lambda kv: kv[1], reverse=True)
    return ranked if limit is None else ranked[:limit]


def top_exercises(workouts: Iterable[Workout], limit: int = 5) -> list[tuple[str, int]]:
    return aggregate_by_frequency(
        (e for w in workouts for e in w.exercises), lambda e: e.name, limit
    )


def type_distribution(workouts: Iterable[Workout]) -> dict[str, int]:
    return dict(aggregate_by_frequency(workouts, lambda w: w.type or "mixed", limit=None))


# ─────────────────────────────────────────────
# Session History
# ─────────────────────────────────────────────

SESSION_COLUMNS = ["date", "workout_name", "sets_completed", "total_sets", "duration_min"]


def sessions_frame(records: Iterable[dict]) -> pd.DataFrame:
    """Completed-session records as a DataFrame with a parsed `date` column."""
    df = pd.DataFrame(list(records), columns=SESSION_COLUMNS)
    if df.empty:
        return df
    df["date"] = pd.to_datetime(df["date"], errors="coerce")
    dropped = df["date"].isna().sum()
    if dropped:
        log.warning("ignoring %d session rows with unreadable dates", dropped)
        df = df[df["date"].notna()].copy()
    for col in ("sets_completed", "total_sets", "duration_min"):
        df[col] = pd.to_numeric(df[col], errors="coerce").fillna(0)
    return df.sort_values("date").reset_index(drop=True)


@dataclass
class WeekBucket:
    label: str
    start: datetime
    end: datetime
    sessions: int = 0
    sets_completed: int = 0
    workouts: list[str] = field(default_factory=list)


def weekly_consistency(df: pd.DataFrame, now: datetime, weeks: int = 4) -> list[WeekBucket]:
    """Sessions per trailing 7-day window, oldest window first."""
    buckets = []
    for i in range(weeks - 1, -1, -1):
        start = now - timedelta(days=7 * (i + 1))
        end = now - timedelta(days=7 * i)
        bucket = WeekBucket(f"Week {weeks - i}", start, end)
        if not df.empty:
            in_week = df[(df["date"] >= start) & (df["date"] < end)]
            bucket.sessions = len(in_week)
            bucket.sets_completed = int(in_week["sets_completed"].sum())
            bucket.workouts = in_week["workout_name"].tolist()
        buckets.append(bucket)
    return buckets


def weekly_trend(weekly: list[WeekBucket]) -> float:
    """Average sessions of the later half minus the earlier half."""
    if len(weekly) < 2:
        return 0.0
    half = len(weekly) // 2
    first = sum(b.sessions for b in weekly[:half]) / half
    last = sum(b.sessions for b in weekly[-half:]) / half
    return last - first


def consistency_score(df: pd.DataFrame, now: datetime, target: int = WEEKLY_TARGET) -> int:
    if df.empty or target <= 0:
        return 0
    this_week = len(df[df["date"] >= now - timedelta(days=7)])
    return min(100, round_half_up(this_week / target * 100))
