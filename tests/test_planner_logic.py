"""Tests for the routine model, schedule projection and snapshot codec."""
from datetime import date

import pytest

from planner_logic import (
    DEFAULT_CYCLE_COUNT,
    EXERCISE_LIBRARY,
    MISSING_WORKOUT_LABEL,
    ROUTINE_TEMPLATES,
    Exercise,
    InvalidArgument,
    ItemKind,
    MuscleAttribution,
    RepsOrTime,
    Routine,
    SetResult,
    Workout,
    add_rest_day,
    add_workout,
    date_for_day,
    day_on_date,
    duplicate_item,
    find_library_exercise,
    json_to_routine,
    library_by_group,
    month_grid,
    new_routine,
    project_to_days,
    remove_item,
    remove_workout,
    rename_routine,
    reorder_items,
    resolve_label,
    routine_from_dict,
    routine_from_template,
    routine_stats,
    routine_to_json,
    schedule_dates,
    search_library,
    set_cycle_count,
    set_start_date,
    shift_month,
    week_dates,
)


def labels(routine):
    return [i.label for i in routine.items]


@pytest.fixture
def abcd():
    r = new_routine()
    for name in "ABCD":
        r = add_workout(r, name.lower(), name)
    return r


@pytest.fixture
def workouts():
    return {
        "push": Workout("push", "Push", "push"),
        "pull": Workout("pull", "Pull", "pull"),
    }


class TestRoutineEdits:

    def test_new_routine_defaults(self):
        r = new_routine()
        assert r.items == ()
        assert r.cycle_count == DEFAULT_CYCLE_COUNT == 4
        assert new_routine(cycle_count=1).cycle_count == 1

    def test_add_workout_appends_and_selects(self):
        r = add_workout(new_routine(), "w1", "Leg Day")
        assert labels(r) == ["Leg Day"]
        assert r.items[0].kind is ItemKind.WORKOUT
        assert r.items[0].workout_ref == "w1"
        assert r.selected_workout_ids == ("w1",)

    def test_add_workout_twice_is_noop(self):
        once = add_workout(new_routine(), "w1", "Leg Day")
        twice = add_workout(once, "w1", "Leg Day")
        assert len(twice.items) == len(once.items) == 1
        assert twice is once

    def test_add_keeps_existing_items(self, abcd):
        before = abcd.items
        after = add_workout(abcd, "e", "E")
        assert after.items[:4] == before
        assert abcd.items == before  # original untouched

    def test_remove_workout_drops_every_occurrence(self, abcd):
        r = duplicate_item(abcd, 1)
        r = add_rest_day(r)
        assert labels(r).count("B") == 2
        r = remove_workout(r, "b")
        assert labels(r) == ["A", "C", "D", "Rest"]
        assert "b" not in r.selected_workout_ids

    def test_add_rest_day_unique_ids(self):
        r = new_routine()
        for _ in range(50):
            r = add_rest_day(r)
        assert len({i.id for i in r.items}) == 50
        assert all(i.kind is ItemKind.REST and i.label == "Rest" for i in r.items)
        assert r.selected_workout_ids == ()

    def test_remove_item(self, abcd):
        target = abcd.items[2]
        r = remove_item(abcd, target.id)
        assert labels(r) == ["A", "B", "D"]
        assert r.selected_workout_ids == ("a", "b", "d")

    def test_remove_item_unknown_id_is_noop(self, abcd):
        assert remove_item(abcd, "nope") is abcd

    def test_reorder_is_splice_not_swap(self, abcd):
        assert labels(reorder_items(abcd, 0, 2)) == ["B", "C", "A", "D"]
        assert labels(reorder_items(abcd, 3, 0)) == ["D", "A", "B", "C"]

    def test_reorder_keeps_ids(self, abcd):
        moved = reorder_items(abcd, 0, 3)
        assert sorted(i.id for i in moved.items) == sorted(i.id for i in abcd.items)

    def test_reorder_same_index_is_noop(self, abcd):
        assert reorder_items(abcd, 2, 2) is abcd

    @pytest.mark.parametrize("src,dst", [(-1, 0), (0, 4), (4, 0), (0, -1)])
    def test_reorder_out_of_range(self, abcd, src, dst):
        with pytest.raises(InvalidArgument):
            reorder_items(abcd, src, dst)

    def test_duplicate_inserts_after(self, abcd):
        r = duplicate_item(abcd, 0)
        assert labels(r) == ["A", "A", "B", "C", "D"]
        assert r.items[0].id != r.items[1].id

    def test_set_cycle_count(self, abcd):
        r = set_cycle_count(abcd, 7)
        assert r.cycle_count == 7
        assert r.items == abcd.items

    @pytest.mark.parametrize("n", [0, -3, 2.5, True])
    def test_bad_cycle_count(self, abcd, n):
        with pytest.raises(InvalidArgument):
            set_cycle_count(abcd, n)

    def test_rename_with_blank_name_keeps_old_name(self, abcd):
        r = rename_routine(abcd, "PPL", "three on, one off")
        assert (r.name, r.description) == ("PPL", "three on, one off")
        assert rename_routine(r, "   ", r.description) == r

    def test_set_start_date(self, abcd):
        r = set_start_date(abcd, date(2024, 3, 4))
        assert r.start_date == date(2024, 3, 4)
        assert r.items == abcd.items
        assert abcd.start_date is None
        assert set_start_date(r, None).start_date is None


class TestProjection:

    def test_sizes_and_order(self):
        r = new_routine()
        for name in ("x", "y", "z"):
            r = add_workout(r, name, name)
        days = list(project_to_days(r))
        assert len(days) == len(project_to_days(r)) == 12
        assert [d.absolute_day_index for d in days] == list(range(12))
        assert [(d.cycle_index, d.item_index) for d in days[:4]] == [(0, 0), (0, 1), (0, 2), (1, 0)]
        assert (days[-1].cycle_index, days[-1].item_index) == (3, 2)

    def test_empty_routine_has_no_days(self):
        schedule = project_to_days(new_routine(cycle_count=10))
        assert list(schedule) == []
        assert len(schedule) == 0

    def test_restartable(self, abcd):
        schedule = project_to_days(abcd)
        assert list(schedule) == list(schedule)

    def test_index_lookup(self, abcd):
        schedule = project_to_days(abcd)
        day = schedule[6]
        assert (day.cycle_index, day.item_index) == (1, 2)
        assert day.item.label == "C"
        with pytest.raises(InvalidArgument):
            schedule[16]

    def test_push_pull_rest_scenario(self, workouts):
        r = new_routine(cycle_count=4)
        r = add_workout(r, "push", "Push")
        r = add_workout(r, "pull", "Pull")
        r = add_rest_day(r)
        r = reorder_items(r, 2, 0)
        assert labels(r) == ["Rest", "Push", "Pull"]

        schedule = project_to_days(r)
        assert len(list(schedule)) == 12
        day = schedule[4]
        assert (day.cycle_index, day.item_index) == (1, 1)
        assert resolve_label(day.item, workouts) == "Push"

    def test_dangling_reference_gets_placeholder(self, workouts):
        r = add_workout(new_routine(), "gone", "Old Workout")
        days = list(project_to_days(r))
        assert len(days) == 4
        assert resolve_label(days[0].item, workouts) == MISSING_WORKOUT_LABEL


class TestCalendar:

    def test_date_for_day_rolls_over_month_and_year(self):
        assert date_for_day(date(2024, 1, 31), 1) == date(2024, 2, 1)
        assert date_for_day(date(2024, 2, 28), 1) == date(2024, 2, 29)
        assert date_for_day(date(2023, 12, 30), 3) == date(2024, 1, 2)

    def test_schedule_dates(self, abcd):
        pairs = list(schedule_dates(set_cycle_count(abcd, 1), date(2024, 3, 30)))
        assert [d for d, _ in pairs] == [date(2024, 3, 30), date(2024, 3, 31),
                                         date(2024, 4, 1), date(2024, 4, 2)]

    def test_day_on_date(self, abcd):
        start = date(2024, 1, 1)
        assert day_on_date(abcd, start, date(2024, 1, 6)).item.label == "B"
        assert day_on_date(abcd, start, date(2023, 12, 31)) is None
        assert day_on_date(abcd, start, date(2024, 1, 17)) is None

    def test_week_dates_start_sunday(self):
        week = week_dates(date(2024, 5, 15))  # a Wednesday
        assert week[0] == date(2024, 5, 12)
        assert week[0].weekday() == 6
        assert len(week) == 7
        assert week_dates(date(2024, 5, 12))[0] == date(2024, 5, 12)

    def test_month_grid(self):
        grid = month_grid(date(2024, 2, 20))
        assert len(grid) == 6 and all(len(w) == 7 for w in grid)
        assert grid[0][0] == date(2024, 1, 28)
        assert date(2024, 2, 1) in grid[0]

    def test_shift_month_lands_on_first_day(self):
        assert shift_month(date(2026, 1, 31), 1) == date(2026, 2, 1)
        assert shift_month(date(2026, 3, 1), -1) == date(2026, 2, 1)
        assert shift_month(date(2024, 5, 15), 0) == date(2024, 5, 1)

    def test_shift_month_crosses_years(self):
        assert shift_month(date(2024, 12, 15), 1) == date(2025, 1, 1)
        assert shift_month(date(2024, 1, 10), -1) == date(2023, 12, 1)
        assert shift_month(date(2024, 11, 30), 14) == date(2026, 1, 1)

    def test_month_steps_never_skip_a_month(self):
        anchor, seen = date(2024, 1, 31), []
        for _ in range(12):
            anchor = shift_month(anchor, 1)
            seen.append(anchor.month)
        assert seen == [2, 3, 4, 5, 6, 7, 8, 9, 10, 11, 12, 1]


class TestStatsAndTemplates:

    def test_routine_stats(self, workouts):
        r = new_routine(cycle_count=3)
        r = add_workout(r, "push", "Push")
        r = add_rest_day(r)
        r = add_workout(r, "pull", "Pull")
        r = add_workout(r, "ghost", "Ghost")
        stats = routine_stats(r, workouts)
        assert stats.days_per_cycle == 4
        assert stats.workout_days == 3
        assert stats.rest_days == 1
        assert stats.total_days == 12
        assert stats.workout_types == {"push": 1, "pull": 1}

    def test_template_matches_names(self):
        mine = [Workout("1", "Push Day"), Workout("2", "pull day"), Workout("3", "Leg Day")]
        r, missing = routine_from_template(ROUTINE_TEMPLATES[0], mine, cycle_count=2)
        assert missing == []
        assert [i.label for i in r.items] == ["Push Day", "pull day", "Leg Day", "Rest"]
        assert r.selected_workout_ids == ("1", "2", "3")
        assert r.cycle_count == 2
        assert r.name == "Push/Pull/Legs"

    def test_template_reports_missing(self):
        r, missing = routine_from_template(ROUTINE_TEMPLATES[1], [Workout("u", "Upper Body")])
        assert missing == ["Lower Body"]
        assert [i.label for i in r.items] == ["Upper Body", "Rest", "Upper Body", "Rest", "Rest"]
        assert r.selected_workout_ids == ("u",)


class TestModels:

    def test_attribution_length_mismatch(self):
        with pytest.raises(InvalidArgument):
            MuscleAttribution(["Back", "Legs"], [100])

    def test_attribution_negative_weight(self):
        with pytest.raises(InvalidArgument):
            MuscleAttribution(["Back"], [-1])

    def test_exercise_fills_set_results(self):
        ex = Exercise("Plank", sets=3, mode=RepsOrTime.TIME, target=45)
        assert [r.value for r in ex.set_results] == [45, 45, 45]
        assert ex.unit == "sec"

    def test_with_sets_keeps_logged_results(self):
        ex = Exercise("Row", sets=2, set_results=[SetResult(40.0, 8, True)])
        grown = ex.with_sets(4)
        assert grown.sets == 4
        assert grown.set_results[0] == SetResult(40.0, 8, True)
        assert len(grown.set_results) == 4
        assert ex.with_sets(0).sets == 1
        assert len(ex.set_results) == 2

    def test_exercise_rejects_zero_sets(self):
        with pytest.raises(InvalidArgument):
            Exercise("Row", sets=0)

    def test_exercise_from_legacy_dict(self):
        ex = Exercise.from_dict({
            "name": "Plank", "sets": 2, "reps_or_time": "time", "time_value": 60,
            "muscle_groups": ["Abs"], "muscle_weights": [100],
            "set_results": [{"weight": "", "reps": "55"}],
        })
        assert ex.mode is RepsOrTime.TIME
        assert ex.target == 60
        assert ex.set_results[0].value == 55
        assert ex.set_results[0].weight is None
        assert ex.set_results[1].value == 60

    def test_workout_round_trip(self):
        w = Workout("w1", "Push", "push", [find_library_exercise("Leg Press").to_exercise(sets=4)])
        back = Workout.from_dict(w.to_dict())
        assert back.exercises[0].attribution.categories == ("Legs",)
        assert back.total_sets == 4

    def test_large_sets_and_targets_survive_round_trip(self):
        ex = Exercise("Farmer Carry", sets=12, mode=RepsOrTime.TIME, target=900)
        back = Exercise.from_dict(ex.to_dict())
        assert (back.sets, back.target) == (12, 900)
        assert len(back.set_results) == 12

    @pytest.mark.parametrize("data", [[], "push", None, 3])
    def test_non_object_payloads_rejected(self, data):
        with pytest.raises(InvalidArgument):
            Workout.from_dict(data)
        with pytest.raises(InvalidArgument):
            Exercise.from_dict(data)


class TestLibrary:

    def test_groups(self):
        groups = library_by_group()
        assert list(groups)[:3] == ["Back", "Chest", "Legs"]
        assert sum(len(v) for v in groups.values()) == len(EXERCISE_LIBRARY)

    def test_search(self):
        assert [e.name for e in search_library("hack")] == ["Hack Squat"]
        shoulders = search_library("", group="Shoulders")
        assert "Seated DB Shoulder Press" in [e.name for e in shoulders]

    def test_find_missing(self):
        assert find_library_exercise("Nope") is None


class TestSnapshot:

    def test_json_round_trip(self, abcd):
        r = add_rest_day(set_cycle_count(abcd, 6))
        back = json_to_routine(routine_to_json(r))
        assert back == r
        assert back.selected_workout_ids == ("a", "b", "c", "d")

    def test_legacy_items(self):
        r = routine_from_dict({
            "selected_workout_ids": ["w1"],
            "ordered_routine_items": [{"type": "workout", "id": "w1"}, {"type": "rest", "id": 17}],
        })
        assert r.cycle_count == DEFAULT_CYCLE_COUNT
        assert r.items[0].workout_ref == "w1"
        assert r.items[1].kind is ItemKind.REST
        assert r.selected_workout_ids == ("w1",)

    def test_routine_rejects_bad_cycles(self):
        with pytest.raises(InvalidArgument):
            Routine(cycle_count=0)

    def test_start_date_round_trip(self, abcd):
        r = set_start_date(abcd, date(2024, 2, 29))
        back = json_to_routine(routine_to_json(r))
        assert back.start_date == date(2024, 2, 29)
        assert back == r

    def test_snapshot_without_start_date(self, abcd):
        assert json_to_routine(routine_to_json(abcd)).start_date is None
        assert routine_from_dict({"ordered_routine_items": []}).start_date is None

    @pytest.mark.parametrize("data", [[], None, "routine", {"ordered_routine_items": ["x"]}])
    def test_non_object_snapshot_rejected(self, data):
        with pytest.raises(InvalidArgument):
            routine_from_dict(data)
