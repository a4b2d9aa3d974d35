"""
app.py: Rotation Studio
Main Streamlit application with Google Sheets persistence, workout builder,
rotating routine planner, calendar, guided player and analytics.
"""

import logging
import time as time_module
from datetime import date, datetime

import pandas as pd
import streamlit as st

import sheets_store
from analytics_logic import (
    aggregate, body_split, consistency_score, sessions_frame, top_exercises,
    type_distribution, weekly_consistency, weekly_trend,
)
from planner_logic import (
    CYCLE_CHOICES, EXERCISE_LIBRARY, REST_LABEL, ROUTINE_TEMPLATES, RepsOrTime,
    add_rest_day, add_workout, date_for_day, day_on_date, duplicate_item,
    find_library_exercise, library_by_group, month_grid, new_routine, new_workout,
    project_to_days, remove_item, remove_workout, rename_routine, reorder_items,
    resolve_label, routine_from_template, routine_stats, search_library,
    set_cycle_count, set_start_date, shift_month, week_dates,
)
from session_logic import WorkoutSession
from sheets_store import StoreUnavailable

log = logging.getLogger(__name__)

# ─────────────────────────────────────────────
# Page Config
# ─────────────────────────────────────────────

st.set_page_config(
    page_title="Rotation Studio",
    page_icon="🏋️",
    layout="wide",
    initial_sidebar_state="expanded",
)

# ─────────────────────────────────────────────
# Custom Styling
# ─────────────────────────────────────────────

st.markdown("""
<style>
    .slot-workout { color: #1d4ed8; font-weight: 700; }
    .slot-rest { color: #a16207; font-weight: 700; }
    .slot-missing { color: #b91c1c; font-style: italic; }

    /* Routine / calendar card */
    .day-card {
        background: white;
        border-radius: 10px;
        padding: 0.6rem 0.8rem;
        margin-bottom: 0.5rem;
        box-shadow: 0 1px 4px rgba(0,0,0,0.06);
        border-left: 4px solid #3b82f6;
    }
    .day-card.rest { border-left-color: #eab308; background: #fefce8; }
    .day-card.today { outline: 2px solid #10b981; }
    .day-card .meta { color: #6b7280; font-size: 0.8rem; }

    .timer-display {
        font-size: 2.5rem;
        font-weight: 300;
        text-align: center;
        font-family: 'Courier New', monospace;
        padding: 0.5rem;
    }

    .studio-header { text-align: center; padding: 1rem 0 0.5rem 0; }
    .studio-header h1 { font-weight: 300; font-size: 2.2rem; letter-spacing: 0.05em; }
    .studio-header p { color: #6b7280; font-style: italic; }
</style>
""", unsafe_allow_html=True)


# ─────────────────────────────────────────────
# Google Sheets Connection
# ─────────────────────────────────────────────

@st.cache_resource
def get_spreadsheet():
    """Open the spreadsheet once per process; None keeps the app local-only."""
    try:
        return sheets_store.open_spreadsheet(st.secrets)
    except (StoreUnavailable, FileNotFoundError) as e:
        log.warning("Google Sheets unavailable: %s", e)
        st.error(f"Could not connect to Google Sheets: {e}")
        return None


def store_call(fn, *args, quiet=False, **kwargs):
    """Run a sheets_store function; failures leave the session state as the source of truth."""
    spreadsheet = get_spreadsheet()
    if spreadsheet is None:
        return None
    try:
        return fn(spreadsheet, *args, **kwargs)
    except StoreUnavailable as e:
        log.warning("%s failed: %s", fn.__name__, e)
        if not quiet:
            st.warning(f"Could not sync with Google Sheets: {e}. Changes are kept for this session.")
        return None


# ─────────────────────────────────────────────
# Session State Initialization
# ─────────────────────────────────────────────

DEFAULTS = {
    "workouts": {},            # workout id -> Workout
    "routine": new_routine(),
    "loaded_user": None,
    "view": "workouts",        # workouts, routine, calendar, player, finish, analytics, history
    "editing_workout": None,
    "session": None,
    "session_started": None,
    "rest_until": None,
    "session_logged": False,
    "calendar_anchor": date.today(),
}
for key, val in DEFAULTS.items():
    if key not in st.session_state:
        st.session_state[key] = val


def load_user_data(user: str):
    workouts = store_call(sheets_store.list_workouts, user, quiet=True) or []
    st.session_state.workouts = {w.id: w for w in workouts}
    st.session_state.routine = store_call(sheets_store.load_routine, user, quiet=True) or new_routine()
    st.session_state.loaded_user = user


def update_routine(routine):
    st.session_state.routine = routine
    store_call(sheets_store.save_routine, user, routine)


def update_workout(workout):
    st.session_state.workouts[workout.id] = workout
    store_call(sheets_store.save_workout, user, workout)


# ─────────────────────────────────────────────
# Sidebar
# ─────────────────────────────────────────────

VIEWS = {
    "🏋️ Workouts": "workouts",
    "🔁 Routine": "routine",
    "📅 Calendar": "calendar",
    "📊 Analytics": "analytics",
    "📖 History": "history",
}

with st.sidebar:
    st.markdown("## 🏋️ Rotation Studio")
    st.markdown("---")

    user = st.selectbox(
        "Select User Profile",
        ["Alex", "Sam (Test)"],
        help="Choose your profile. Workouts and routines are saved separately per user.",
    )
    if st.session_state.loaded_user != user:
        load_user_data(user)

    st.markdown("---")
    nav = st.radio("Navigate", list(VIEWS), label_visibility="collapsed")
    if st.session_state.view not in ("player", "finish") or st.session_state.session is None:
        st.session_state.view = VIEWS[nav]

    st.markdown("---")
    st.caption("Rotation Studio v1.0")
    st.caption(f"Logged in as: **{user}**")


# ─────────────────────────────────────────────
# Header
# ─────────────────────────────────────────────

st.markdown("""
<div class="studio-header">
    <h1>Rotation Studio</h1>
    <p>Plan the rotation, show up, log the sets</p>
</div>
""", unsafe_allow_html=True)

workouts = st.session_state.workouts
routine = st.session_state.routine


def start_session(workout):
    st.session_state.session = WorkoutSession(workout)
    st.session_state.session_started = datetime.now()
    st.session_state.rest_until = None
    st.session_state.session_logged = False
    st.session_state.view = "player"


def distribution_bar(exercises):
    summary = aggregate(exercises)
    if summary.is_empty:
        st.caption("No muscle data yet.")
        return
    st.caption(" · ".join(f"{label} {pct}%" for label, pct in summary.items()))


# ─────────────────────────────────────────────
# View: Workouts
# ─────────────────────────────────────────────

if st.session_state.view == "workouts":
    st.markdown("### Your Workouts")

    c1, c2, c3 = st.columns([4, 2, 1])
    with c1:
        new_name = st.text_input("Workout name", placeholder="e.g. Push Day")
    with c2:
        new_type = st.selectbox("Type", ["push", "pull", "legs", "upper", "lower", "full", "mixed"])
    with c3:
        st.write("")
        if st.button("➕ Create", type="primary", use_container_width=True) and new_name.strip():
            w = new_workout(new_name.strip(), new_type)
            update_workout(w)
            st.session_state.editing_workout = w.id
            st.rerun()

    if not workouts:
        st.info("No workouts yet. Create your first one above.")

    for w in sorted(workouts.values(), key=lambda w: w.created_at, reverse=True):
        selected = w.id in routine.selected_workout_ids
        with st.expander(f"{w.name} · {len(w.exercises)} exercises · {w.type}"
                         + (" · in routine" if selected else ""),
                         expanded=st.session_state.editing_workout == w.id):
            distribution_bar(w.exercises)

            for i, ex in enumerate(w.exercises):
                e1, e2, e3, e4, e5 = st.columns([4, 2, 2, 2, 1])
                with e1:
                    st.markdown(f"**{i+1}. {ex.name}**")
                    st.caption(", ".join(f"{c} {wt}%" for c, wt in ex.attribution.pairs()))
                with e2:
                    sets = st.number_input("Sets", 1, max(10, ex.sets), ex.sets, key=f"sets_{w.id}_{i}")
                with e3:
                    mode = st.selectbox("Mode", ["reps", "time"], index=0 if ex.mode is RepsOrTime.REPS else 1,
                                        key=f"mode_{w.id}_{i}")
                with e4:
                    target = st.number_input(f"Target ({'sec' if mode == 'time' else 'reps'})",
                                             1, max(600, ex.target), ex.target, key=f"target_{w.id}_{i}")
                with e5:
                    if st.button("🗑", key=f"del_ex_{w.id}_{i}", help="Remove exercise"):
                        w.exercises.pop(i)
                        update_workout(w)
                        st.rerun()
                if sets != ex.sets or mode != ex.mode.value or target != ex.target:
                    changed = ex.with_sets(sets)
                    changed.mode = RepsOrTime(mode)
                    changed.target = int(target)
                    w.exercises[i] = changed
                    update_workout(w)

            st.markdown("**Add from library**")
            groups = ["All"] + list(library_by_group())
            l1, l2, l3 = st.columns([2, 3, 1])
            with l1:
                group = st.selectbox("Muscle group", groups, key=f"grp_{w.id}")
            with l2:
                query = st.text_input("Search", key=f"q_{w.id}", placeholder="Search exercises...")
            matches = search_library(query, None if group == "All" else group)
            with l3:
                st.caption(f"{len(matches)} of {len(EXERCISE_LIBRARY)}")
            pick = st.selectbox("Exercise", [m.name for m in matches], key=f"pick_{w.id}")
            b1, b2 = st.columns(2)
            with b1:
                if st.button("➕ Add Exercise", key=f"add_ex_{w.id}", disabled=not pick):
                    w.exercises.append(find_library_exercise(pick).to_exercise())
                    update_workout(w)
                    st.rerun()
            with b2:
                if st.button("▶️ Start Workout", key=f"start_{w.id}", disabled=not w.exercises):
                    start_session(w)
                    st.rerun()

            if st.button("Delete workout", key=f"del_{w.id}"):
                del st.session_state.workouts[w.id]
                store_call(sheets_store.delete_workout, user, w.id)
                update_routine(remove_workout(routine, w.id))
                st.rerun()


# ─────────────────────────────────────────────
# View: Routine
# ─────────────────────────────────────────────

elif st.session_state.view == "routine":
    st.markdown("### Build Your Rotation")

    h1, h2 = st.columns([3, 1])
    with h1:
        name = st.text_input("Routine name", routine.name)
        description = st.text_area("Description", routine.description,
                                   placeholder="Describe your routine goals and notes...")
        if (name.strip() or routine.name) != routine.name or description != routine.description:
            update_routine(rename_routine(routine, name, description))
            routine = st.session_state.routine
    with h2:
        cycles = st.selectbox("Number of Cycles", CYCLE_CHOICES,
                              index=CYCLE_CHOICES.index(routine.cycle_count)
                              if routine.cycle_count in CYCLE_CHOICES else 0,
                              format_func=lambda n: f"{n} cycle{'s' if n > 1 else ''}")
        if cycles != routine.cycle_count:
            update_routine(set_cycle_count(routine, cycles))
            st.rerun()

    left, right = st.columns([1, 2])

    with left:
        st.markdown("#### Available Workouts")
        for w in workouts.values():
            added = w.id in routine.selected_workout_ids
            a1, a2 = st.columns([3, 1])
            with a1:
                st.markdown(f"**{w.name}**  \n{len(w.exercises)} exercises · {w.type}")
            with a2:
                if added:
                    if st.button("Remove", key=f"rm_{w.id}"):
                        update_routine(remove_workout(routine, w.id))
                        st.rerun()
                elif st.button("Add", key=f"add_{w.id}"):
                    update_routine(add_workout(routine, w.id, w.name))
                    st.rerun()
        if st.button("☕ Add Rest Day", use_container_width=True):
            update_routine(add_rest_day(routine))
            st.rerun()

        st.markdown("#### Templates")
        tpl_name = st.selectbox("Template", [t["name"] for t in ROUTINE_TEMPLATES])
        tpl = next(t for t in ROUTINE_TEMPLATES if t["name"] == tpl_name)
        st.caption(f"{tpl['description']} · {tpl['level']}  \n{' → '.join(tpl['pattern'])}")
        if st.button("Apply Template"):
            built, missing = routine_from_template(tpl, list(workouts.values()), routine.cycle_count)
            update_routine(built)
            if missing:
                st.toast(f"No workout named: {', '.join(missing)}")
            st.rerun()

    with right:
        st.markdown("#### Cycle Order")
        if not routine.items:
            st.info("Add workouts or rest days to start your rotation.")
        last = len(routine.items) - 1
        for i, item in enumerate(routine.items):
            label = resolve_label(item, workouts)
            css = "rest" if item.is_rest else ""
            r1, r2, r3, r4, r5 = st.columns([5, 1, 1, 1, 1])
            with r1:
                st.markdown(f'<div class="day-card {css}">Day {i+1} · {label}</div>',
                            unsafe_allow_html=True)
            with r2:
                if st.button("↑", key=f"up_{item.id}", disabled=i == 0):
                    update_routine(reorder_items(routine, i, i - 1))
                    st.rerun()
            with r3:
                if st.button("↓", key=f"down_{item.id}", disabled=i == last):
                    update_routine(reorder_items(routine, i, i + 1))
                    st.rerun()
            with r4:
                if st.button("⧉", key=f"dup_{item.id}", help="Duplicate"):
                    update_routine(duplicate_item(routine, i))
                    st.rerun()
            with r5:
                if st.button("✕", key=f"x_{item.id}", help="Remove"):
                    update_routine(remove_item(routine, item.id))
                    st.rerun()

        if len(routine.items) > 1:
            m1, m2, m3 = st.columns([2, 2, 1])
            with m1:
                src = st.number_input("Move day", 1, len(routine.items), 1)
            with m2:
                dst = st.number_input("to position", 1, len(routine.items), 1)
            with m3:
                st.write("")
                if st.button("Move"):
                    update_routine(reorder_items(routine, src - 1, dst - 1))
                    st.rerun()

        stats = routine_stats(routine, workouts)
        st.markdown(
            f"{stats.days_per_cycle} days per cycle × {routine.cycle_count} "
            f"cycle{'s' if routine.cycle_count != 1 else ''} = **{stats.total_days} total days**  \n"
            f"Workouts: {stats.workout_days} per cycle, Rest days: {stats.rest_days} per cycle"
        )

        schedule = project_to_days(routine)
        for cycle in range(routine.cycle_count if routine.items else 0):
            with st.expander(f"Cycle {cycle + 1}", expanded=cycle == 0):
                for day in schedule.cycle(cycle):
                    st.markdown(f"Day {day.absolute_day_index + 1}: {resolve_label(day.item, workouts)}")


# ─────────────────────────────────────────────
# View: Calendar
# ─────────────────────────────────────────────

elif st.session_state.view == "calendar":
    st.markdown("### Calendar")

    c1, c2, c3, c4 = st.columns([2, 2, 1, 1])
    with c1:
        shown = routine.start_date or date.today()
        start = st.date_input("Rotation starts", shown)
        if start != shown:
            update_routine(set_start_date(routine, start))
            routine = st.session_state.routine
    with c2:
        mode = st.radio("View", ["Week", "Month"], horizontal=True)
    anchor = st.session_state.calendar_anchor
    with c3:
        if st.button("← Prev"):
            st.session_state.calendar_anchor = (date_for_day(anchor, -7) if mode == "Week"
                                                else shift_month(anchor, -1))
            st.rerun()
    with c4:
        if st.button("Next →"):
            st.session_state.calendar_anchor = (date_for_day(anchor, 7) if mode == "Week"
                                                else shift_month(anchor, 1))
            st.rerun()

    end = date_for_day(start, routine.total_days - 1) if routine.items else start
    st.caption(f"{anchor.strftime('%B %Y')} · rotation runs {start:%b %d} to {end:%b %d, %Y}")

    weeks = [week_dates(anchor)] if mode == "Week" else month_grid(anchor)
    for header_col, name in zip(st.columns(7), ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]):
        header_col.markdown(f"**{name}**")
    for week in weeks:
        for col, d in zip(st.columns(7), week):
            day = day_on_date(routine, start, d)
            classes = ["day-card"]
            if d == date.today():
                classes.append("today")
            if day is None:
                body = '<span class="meta">·</span>'
            elif day.item.is_rest:
                classes.append("rest")
                body = REST_LABEL
            else:
                body = resolve_label(day.item, workouts)
            if mode == "Month" and d.month != anchor.month:
                body = f'<span class="meta">{body}</span>'
            col.markdown(f'<div class="{" ".join(classes)}"><div class="meta">{d.day}</div>{body}</div>',
                         unsafe_allow_html=True)

    today_slot = day_on_date(routine, start, date.today())
    if today_slot is not None and not today_slot.item.is_rest:
        w = workouts.get(today_slot.item.workout_ref)
        if w is not None and st.button(f"▶️ Start today's workout: {w.name}", type="primary"):
            start_session(w)
            st.rerun()


# ─────────────────────────────────────────────
# View: Player
# ─────────────────────────────────────────────

elif st.session_state.view == "player" and st.session_state.session:
    session = st.session_state.session
    if session.complete:
        st.session_state.view = "finish"
        st.rerun()

    ex = session.current_exercise
    result = session.current_result

    nav_col1, nav_col2, nav_col3 = st.columns([1, 3, 1])
    with nav_col1:
        if st.button("← Prev", disabled=session.is_first):
            session.retreat()
            st.session_state.rest_until = None
            st.rerun()
    with nav_col2:
        st.progress(session.progress,
                    text=f"{session.completed_sets} of {session.total_sets} sets done")
    with nav_col3:
        if st.button("Skip →"):
            session.advance()
            st.session_state.rest_until = None
            st.rerun()

    st.markdown("---")
    main_col, side_col = st.columns([3, 2])

    with main_col:
        st.markdown(f"## {ex.name}")
        info = st.columns(3)
        info[0].metric("Set", f"{session.set_index + 1} / {ex.sets}")
        info[1].metric("Target", f"{ex.target} {ex.unit}")
        info[2].metric("Rest", f"{ex.rest_seconds}s")

        w_col, v_col = st.columns(2)
        with w_col:
            weight = st.number_input("Weight (kg)", 0.0, 500.0, float(result.weight or 0.0), step=2.5,
                                     key=f"w_{session.exercise_index}_{session.set_index}")
        with v_col:
            value = st.number_input(f"{ex.unit.capitalize()} done", 0, max(1000, ex.target),
                                    int(result.value if result.value is not None else ex.target),
                                    key=f"v_{session.exercise_index}_{session.set_index}")
        if st.button("✅ Complete Set", type="primary", use_container_width=True):
            rest = session.log_set(weight=weight or None, value=int(value))
            st.session_state.rest_until = time_module.time() + rest if rest else None
            st.rerun()

    with side_col:
        st.markdown("#### ⏱ Rest")
        rest_until = st.session_state.rest_until
        remaining = max(0, int(rest_until - time_module.time())) if rest_until else 0
        mins, secs = divmod(remaining, 60)
        st.markdown(f'<div class="timer-display">{mins}:{secs:02d}</div>', unsafe_allow_html=True)
        r1, r2 = st.columns(2)
        with r1:
            if st.button("+30s", use_container_width=True, disabled=not remaining):
                st.session_state.rest_until += 30
                st.rerun()
        with r2:
            if st.button("Skip rest", use_container_width=True, disabled=not remaining):
                st.session_state.rest_until = None
                st.rerun()

        st.markdown("#### Up next")
        for j, other in enumerate(session.exercises[session.exercise_index:], start=session.exercise_index):
            marker = "▸ " if j == session.exercise_index else ""
            st.caption(f"{marker}{other.name} · {other.sets} × {other.target} {other.unit}")

    if st.button("← Exit Workout"):
        st.session_state.session = None
        st.session_state.view = "workouts"
        st.rerun()


# ─────────────────────────────────────────────
# View: Finish / Rate
# ─────────────────────────────────────────────

elif st.session_state.view == "finish" and st.session_state.session:
    session = st.session_state.session
    summary = session.summary(st.session_state.session_started, datetime.now())

    st.markdown("## 🎉 Workout Complete!")
    st.balloons()
    st.markdown(f"You logged **{summary['sets_completed']} of {summary['total_sets']} sets** "
                f"({summary['completion_rate']}%) in ~{summary['duration_min']} min.")

    if not st.session_state.session_logged:
        st.markdown("### Rate Your Session")
        rating = st.slider("How did it feel?", 1, 5, 3, format="%d ⭐",
                           help="1 = Too easy, 3 = Just right, 5 = Very challenging")
        notes = st.text_area("Any notes? (optional)")
        if st.button("💾 Save & Rate", type="primary"):
            update_workout(session.workout)
            store_call(sheets_store.log_session, user, summary, rating=rating, notes=notes)
            st.session_state.session_logged = True
            st.toast("Saved with rating! ⭐")
            st.rerun()
    else:
        st.success("Session saved and rated!")

    if st.button("Back to Workouts"):
        st.session_state.session = None
        st.session_state.view = "workouts"
        st.rerun()


# ─────────────────────────────────────────────
# View: Analytics
# ─────────────────────────────────────────────

elif st.session_state.view == "analytics":
    st.markdown("### Analytics")

    history = store_call(sheets_store.load_sessions, user, quiet=True)
    records = sheets_store.session_records(history) if history is not None else []
    sessions = sessions_frame(records)
    now = datetime.now()
    weekly = weekly_consistency(sessions, now)

    k1, k2, k3, k4 = st.columns(4)
    k1.metric("Workouts", len(workouts))
    k2.metric("Exercises", sum(len(w.exercises) for w in workouts.values()))
    k3.metric("Sessions (4 wks)", sum(b.sessions for b in weekly),
              delta=f"{weekly_trend(weekly):+.1f}/wk")
    k4.metric("Consistency", f"{consistency_score(sessions, now)}%")

    st.markdown("#### Weekly Consistency")
    st.bar_chart(pd.DataFrame({"Sessions": [b.sessions for b in weekly]},
                              index=[b.label for b in weekly]))

    a1, a2 = st.columns(2)
    with a1:
        st.markdown("#### Routine Muscle Focus")
        routine_exercises = [
            e for day in project_to_days(routine) if not day.item.is_rest
            for e in getattr(workouts.get(day.item.workout_ref), "exercises", [])
        ]
        summary = aggregate(routine_exercises)
        if summary.is_empty:
            st.caption("Add workouts with exercises to your routine.")
        else:
            st.bar_chart(pd.DataFrame(summary.items(), columns=["Muscle", "Percent"]).set_index("Muscle"))
            split = body_split(routine_exercises)
            st.caption(f"Upper {split['upper']}% · Lower {split['lower']}% · Core {split['core']}%")
    with a2:
        st.markdown("#### Top Exercises")
        top = top_exercises(workouts.values())
        if top:
            st.dataframe(pd.DataFrame(top, columns=["Exercise", "Workouts"]),
                         use_container_width=True, hide_index=True)
        else:
            st.caption("No exercise data available.")
        st.markdown("#### Workout Types")
        types = type_distribution(workouts.values())
        if types:
            st.bar_chart(pd.Series(types, name="Workouts"))

    st.markdown("#### Per Workout")
    for w in workouts.values():
        st.markdown(f"**{w.name}**")
        distribution_bar(w.exercises)


# ─────────────────────────────────────────────
# View: History
# ─────────────────────────────────────────────

elif st.session_state.view == "history":
    st.markdown(f"### 📖 Workout History · {user}")

    df = store_call(sheets_store.load_sessions, user)

    if df is None or df.empty:
        st.info("No sessions logged yet. Start a workout from your routine! 🏋️")
    else:
        stat1, stat2, stat3, stat4 = st.columns(4)
        with stat1:
            st.metric("Total Sessions", len(df))
        with stat2:
            total_mins = pd.to_numeric(df["Duration"], errors="coerce").sum()
            st.metric("Total Minutes", f"{total_mins:.0f}")
        with stat3:
            avg_rating = pd.to_numeric(df["Rating"], errors="coerce").mean()
            st.metric("Avg Rating", f"{avg_rating:.1f} ⭐" if pd.notna(avg_rating) else "—")
        with stat4:
            st.metric("Latest", df.iloc[0]["Date"])

        st.markdown("---")
        display_df = df[["Date", "Workout", "Sets_Completed", "Total_Sets", "Duration", "Rating", "Notes"]].copy()
        display_df.columns = ["Date", "Workout", "Sets Done", "Total Sets", "Duration (min)", "Rating ⭐", "Notes"]
        st.dataframe(display_df, use_container_width=True, hide_index=True)
