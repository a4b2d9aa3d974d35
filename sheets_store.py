"""
sheets_store.py: Google Sheets persistence for workouts, routines and sessions.

Every read/write takes an opened spreadsheet, so the app owns the connection
(cached per Streamlit process) and tests can pass an in-memory stand-in.
"""

import json
import logging
from datetime import datetime
from typing import Optional

import gspread
import pandas as pd
from google.oauth2.service_account import Credentials

from planner_logic import Routine, Workout, json_to_routine, routine_to_json

log = logging.getLogger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive",
]
DEFAULT_SPREADSHEET = "Rotation Studio"

WORKOUTS_TAB = "workouts"
ROUTINES_TAB = "routines"
SESSIONS_TAB = "sessions_log"

HEADERS = {
    WORKOUTS_TAB: ["Workout_ID", "User", "Name", "Type", "Created", "Exercises_JSON"],
    ROUTINES_TAB: ["User", "Updated", "Routine_JSON"],
    SESSIONS_TAB: ["Date", "User", "Workout", "Sets_Completed", "Total_Sets",
                   "Duration", "Full_JSON_Data", "Rating", "Notes"],
}


class StoreUnavailable(RuntimeError):
    """Google Sheets could not be reached or rejected the request."""


# ─────────────────────────────────────────────
# Connection
# ─────────────────────────────────────────────

def credentials_from_secrets(secrets) -> dict:
    """
    Service account info from Streamlit secrets. Two formats are accepted:
    1. Simple: gcp_service_account_json = '{...entire JSON key...}'
    2. Traditional: [gcp_service_account] section with individual fields
    """
    if "gcp_service_account_json" in secrets:
        try:
            return json.loads(secrets["gcp_service_account_json"])
        except json.JSONDecodeError as e:
            raise StoreUnavailable(f"Invalid JSON in gcp_service_account_json: {e}") from e
    if "gcp_service_account" in secrets:
        return dict(secrets["gcp_service_account"])
    raise StoreUnavailable(
        "No Google credentials found in secrets. "
        "Add gcp_service_account_json or [gcp_service_account]."
    )


def open_spreadsheet(secrets):
    try:
        creds = Credentials.from_service_account_info(credentials_from_secrets(secrets), scopes=SCOPES)
    except ValueError as e:
        raise StoreUnavailable(f"Service account key rejected: {e}") from e
    try:
        client = gspread.authorize(creds)
        if secrets.get("sheet_url", ""):
            return client.open_by_url(secrets["sheet_url"])
        if secrets.get("sheet_id", ""):
            return client.open_by_key(secrets["sheet_id"])
        return client.open(DEFAULT_SPREADSHEET)
    except gspread.exceptions.GSpreadException as e:
        raise StoreUnavailable(f"Could not open spreadsheet: {e}") from e


def ensure_worksheets(spreadsheet):
    """Make sure every tab exists with its header row."""
    existing = [ws.title for ws in spreadsheet.worksheets()]
    for title, header in HEADERS.items():
        if title not in existing:
            ws = spreadsheet.add_worksheet(title=title, rows=1000, cols=len(header))
            ws.append_row(header)
            log.info("created worksheet %s", title)


def _tab(spreadsheet, title):
    try:
        ensure_worksheets(spreadsheet)
        return spreadsheet.worksheet(title)
    except gspread.exceptions.GSpreadException as e:
        raise StoreUnavailable(f"Could not open worksheet {title}: {e}") from e


def _records(ws) -> list[dict]:
    # Keep ids and JSON as text; gspread would otherwise turn "12e4" into a number
    try:
        return ws.get_all_records(numericise_ignore=["all"])
    except gspread.exceptions.GSpreadException as e:
        raise StoreUnavailable(f"Could not read {ws.title}: {e}") from e


def _write_row(ws, row_number: Optional[int], values: list):
    """Overwrite sheet row `row_number` (1-based) or append when it is None."""
    try:
        if row_number is None:
            ws.append_row(values)
        else:
            for col, value in enumerate(values, start=1):
                ws.update_cell(row_number, col, value)
    except gspread.exceptions.GSpreadException as e:
        raise StoreUnavailable(f"Could not write to {ws.title}: {e}") from e


def _find_row(records: list[dict], **match) -> Optional[int]:
    """Sheet row number of the first record matching every field (header is row 1)."""
    for i, rec in enumerate(records):
        if all(str(rec.get(k, "")) == str(v) for k, v in match.items()):
            return i + 2
    return None


# ─────────────────────────────────────────────
# Workouts
# ─────────────────────────────────────────────

def list_workouts(spreadsheet, user: str) -> list[Workout]:
    workouts = []
    for rec in _records(_tab(spreadsheet, WORKOUTS_TAB)):
        if str(rec.get("User")) != user:
            continue
        try:
            workouts.append(Workout.from_dict({
                "id": rec["Workout_ID"],
                "name": rec["Name"],
                "type": rec.get("Type"),
                "created_at": rec.get("Created") or None,
                "exercises": json.loads(rec.get("Exercises_JSON") or "[]"),
            }))
        except (json.JSONDecodeError, KeyError, ValueError, AttributeError, TypeError) as e:
            log.warning("skipping unreadable workout row %s: %s", rec.get("Workout_ID"), e)
    return sorted(workouts, key=lambda w: w.created_at, reverse=True)


def save_workout(spreadsheet, user: str, workout: Workout):
    """Insert the workout, or replace the row that already holds its id."""
    ws = _tab(spreadsheet, WORKOUTS_TAB)
    data = workout.to_dict()
    row = _find_row(_records(ws), Workout_ID=workout.id, User=user)
    _write_row(ws, row, [
        workout.id, user, workout.name, workout.type, data["created_at"],
        json.dumps(data["exercises"]),
    ])


def delete_workout(spreadsheet, user: str, workout_id: str) -> bool:
    ws = _tab(spreadsheet, WORKOUTS_TAB)
    row = _find_row(_records(ws), Workout_ID=workout_id, User=user)
    if row is None:
        return False
    try:
        ws.delete_rows(row)
    except gspread.exceptions.GSpreadException as e:
        raise StoreUnavailable(f"Could not delete workout {workout_id}: {e}") from e
    return True


# ─────────────────────────────────────────────
# Routines
# ─────────────────────────────────────────────

def save_routine(spreadsheet, user: str, routine: Routine):
    """Replace the user's routine snapshot as a whole."""
    ws = _tab(spreadsheet, ROUTINES_TAB)
    row = _find_row(_records(ws), User=user)
    _write_row(ws, row, [user, datetime.now().strftime("%Y-%m-%d %H:%M"), routine_to_json(routine)])


def load_routine(spreadsheet, user: str) -> Optional[Routine]:
    records = _records(_tab(spreadsheet, ROUTINES_TAB))
    row = _find_row(records, User=user)
    if row is None:
        return None
    raw = records[row - 2].get("Routine_JSON") or "{}"
    try:
        return json_to_routine(raw)
    except (json.JSONDecodeError, KeyError, ValueError, AttributeError, TypeError) as e:
        log.warning("stored routine for %s is unreadable: %s", user, e)
        return None


# ─────────────────────────────────────────────
# Session Log
# ─────────────────────────────────────────────

def log_session(spreadsheet, user: str, summary: dict, rating: int = 0, notes: str = ""):
    ws = _tab(spreadsheet, SESSIONS_TAB)
    _write_row(ws, None, [
        summary["date"], user, summary["workout_name"], summary["sets_completed"],
        summary["total_sets"], summary["duration_min"],
        json.dumps(summary["exercises"], default=str), rating, notes,
    ])


def load_sessions(spreadsheet, user: str) -> pd.DataFrame:
    """Logged sessions for a user, newest first."""
    df = pd.DataFrame(_records(_tab(spreadsheet, SESSIONS_TAB)))
    if df.empty:
        return df
    df = df[df["User"].astype(str) == user]
    return df.sort_values("Date", ascending=False)


def session_records(df: pd.DataFrame) -> list[dict]:
    """Rows of `load_sessions` in the shape analytics_logic.sessions_frame expects."""
    if df.empty:
        return []
    return [
        {
            "date": row["Date"],
            "workout_name": row["Workout"],
            "sets_completed": row["Sets_Completed"],
            "total_sets": row["Total_Sets"],
            "duration_min": row["Duration"],
        }
        for _, row in df.iterrows()
    ]
