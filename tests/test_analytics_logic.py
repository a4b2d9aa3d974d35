"""Tests for muscle distribution, frequency rankings and history analytics."""
from datetime import datetime

import pytest

from analytics_logic import (
    DistributionSummary,
    aggregate,
    aggregate_by_frequency,
    body_split,
    consistency_score,
    round_half_up,
    sessions_frame,
    top_exercises,
    type_distribution,
    weekly_consistency,
    weekly_trend,
)
from planner_logic import Exercise, MuscleAttribution as MA, Workout, find_library_exercise


def total(summary: DistributionSummary) -> int:
    return sum(pct for _, pct in summary.items())


class TestRounding:

    def test_halves_round_up(self):
        assert round_half_up(0.5) == 1
        assert round_half_up(2.5) == 3
        assert round_half_up(16.666) == 17
        assert round_half_up(53.333) == 53
        assert round_half_up(2.49) == 2


class TestAggregate:

    def test_worked_example(self):
        s = aggregate([MA(["Back", "Legs"], [60, 40]), MA(["Back"], [100]),
                       MA(["Chest", "Shoulders"], [50, 50])])
        assert s.top_categories == ("Back", "Chest", "Shoulders")
        assert s.top_weights == (53, 17, 17)
        assert s.other_label == "Other"
        assert s.other_weight == 13
        assert total(s) == 100

    def test_empty_input(self):
        assert aggregate([]) == DistributionSummary()
        assert aggregate([]).is_empty

    def test_all_zero_weights(self):
        s = aggregate([MA(["Back", "Legs"], [0, 0]), MA([], [])])
        assert s.is_empty
        assert s.other_label is None
        assert s.items() == []

    def test_three_categories_no_other(self):
        s = aggregate([MA(["A", "B", "C"], [1, 1, 1])])
        assert s.other_label is None and s.other_weight is None
        assert len(s.top_categories) == 3

    def test_three_equal_thirds_correction(self):
        s = aggregate([MA(["A", "B", "C"], [1, 1, 1])])
        # 33 + 33 + 33 = 99, the stray point goes to the first largest bucket
        assert s.top_weights == (34, 33, 33)

    def test_four_categories_one_other(self):
        s = aggregate([MA(["A", "B", "C", "D", "E"], [40, 30, 20, 5, 5])])
        assert s.top_categories == ("A", "B", "C")
        assert s.other_weight == 10
        assert total(s) == 100

    def test_correction_subtracts_when_over(self):
        s = aggregate([MA(list("ABCDEFGH"), [1] * 8)])
        # top three 12.5 -> 13 each, Other 62.5 -> 63; 39 + 63 = 102
        assert s.top_weights == (13, 13, 13)
        assert s.other_weight == 61
        assert total(s) == 100

    def test_ties_keep_first_seen_order(self):
        s = aggregate([MA(["Legs", "Chest"], [10, 10]), MA(["Back", "Arms"], [10, 10])])
        assert s.top_categories == ("Legs", "Chest", "Back")
        assert s.other_weight == 25

    def test_accepts_exercises(self):
        exercises = [find_library_exercise("Paused Barbell RDL").to_exercise(),
                     find_library_exercise("Leg Press").to_exercise()]
        s = aggregate(exercises)
        assert s.items() == [("Legs", 70), ("Back", 30)]

    def test_configurable_top_k_and_label(self):
        s = aggregate([MA(["A", "B", "C"], [50, 30, 20])], top_k=1, other_label="Rest of body")
        assert s.items() == [("A", 50), ("Rest of body", 50)]

    @pytest.mark.parametrize("weights", [[1, 1, 1, 1, 1, 1, 1], [7, 3, 3, 3], [1, 2, 3, 4, 5, 6], [99, 0.5, 0.5]])
    def test_always_sums_to_100(self, weights):
        cats = [f"m{i}" for i in range(len(weights))]
        assert total(aggregate([MA(cats, weights)])) == 100


class TestBodySplit:

    def test_split(self):
        exercises = [MA(["Chest"], [100]), MA(["Legs"], [100]), MA(["Abs"], [100])]
        assert body_split(exercises) == {"upper": 34, "lower": 33, "core": 33}

    def test_unlisted_groups_fold_into_largest(self):
        assert body_split([MA(["Back", "Custom"], [50, 50])]) == {"upper": 100, "lower": 0, "core": 0}

    def test_no_weight(self):
        assert body_split([]) == {"upper": 0, "lower": 0, "core": 0}


class TestFrequency:

    def test_counts_with_first_seen_ties(self):
        ranked = aggregate_by_frequency(["b", "a", "c", "a", "b", "d"], lambda x: x)
        assert ranked == [("b", 2), ("a", 2), ("c", 1), ("d", 1)]

    def test_limit(self):
        assert aggregate_by_frequency("aabbbc", str, limit=2) == [("b", 3), ("a", 2)]

    def test_default_limit_is_five(self):
        ranked = aggregate_by_frequency("abcdefgg", str)
        assert ranked == [("g", 2), ("a", 1), ("b", 1), ("c", 1), ("d", 1)]
        assert len(aggregate_by_frequency("abcdefgg", str, limit=None)) == 7

    def test_top_exercises(self):
        w1 = Workout("1", "Push", "push", [Exercise("Dip"), Exercise("Press")])
        w2 = Workout("2", "Push B", "push", [Exercise("Press"), Exercise("Fly")])
        w3 = Workout("3", "Legs", "", [Exercise("Squat")])
        assert top_exercises([w1, w2, w3], limit=2) == [("Press", 2), ("Dip", 1)]
        assert type_distribution([w1, w2, w3]) == {"push": 2, "mixed": 1}

    def test_type_distribution_keeps_every_type(self):
        types = ["push", "pull", "legs", "upper", "lower", "full", ""]
        mine = [Workout(str(i), f"W{i}", t) for i, t in enumerate(types)]
        assert len(type_distribution(mine)) == 7


class TestHistory:

    NOW = datetime(2024, 6, 29, 12, 0)

    @pytest.fixture
    def sessions(self):
        return sessions_frame([
            {"date": "2024-06-28 18:00", "workout_name": "Push", "sets_completed": 12,
             "total_sets": 12, "duration_min": 55},
            {"date": "2024-06-26 18:00", "workout_name": "Pull", "sets_completed": 10,
             "total_sets": 12, "duration_min": 50},
            {"date": "2024-06-10 18:00", "workout_name": "Legs", "sets_completed": 9,
             "total_sets": 9, "duration_min": 40},
            {"date": "not a date", "workout_name": "Broken", "sets_completed": 1,
             "total_sets": 1, "duration_min": 1},
        ])

    def test_frame_drops_bad_dates(self, sessions):
        assert len(sessions) == 3
        assert sessions["workout_name"].tolist() == ["Legs", "Pull", "Push"]

    def test_weekly_consistency(self, sessions):
        weekly = weekly_consistency(sessions, self.NOW)
        assert [b.label for b in weekly] == ["Week 1", "Week 2", "Week 3", "Week 4"]
        assert [b.sessions for b in weekly] == [0, 1, 0, 2]
        assert weekly[3].sets_completed == 22
        assert weekly[3].workouts == ["Pull", "Push"]

    def test_weekly_trend(self, sessions):
        assert weekly_trend(weekly_consistency(sessions, self.NOW)) == pytest.approx(0.5)

    def test_consistency_score(self, sessions):
        assert consistency_score(sessions, self.NOW) == 40
        assert consistency_score(sessions, self.NOW, target=1) == 100
        assert consistency_score(sessions_frame([]), self.NOW) == 0

    def test_empty_history(self):
        weekly = weekly_consistency(sessions_frame([]), self.NOW)
        assert [b.sessions for b in weekly] == [0, 0, 0, 0]
