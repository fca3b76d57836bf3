"""Attendance history export for a class."""
import io
from typing import Iterable

import pandas as pd

from rollcall.models.attendance import AttendanceRecord

REPORT_COLUMNS = ["Session", "Session Started", "Student ID", "Student Name", "Status"]


def build_attendance_frame(records: Iterable[AttendanceRecord], student_names: dict[str, str]) -> pd.DataFrame:
    """One row per record, ordered by session start then student name."""
    rows = [
        {
            "Session": r.session_id,
            "Session Started": r.session_started_at,
            "Student ID": r.student_id,
            "Student Name": student_names.get(r.student_id, "Unknown"),
            "Status": r.status.value,
        }
        for r in records
    ]
    df = pd.DataFrame(rows, columns=REPORT_COLUMNS)
    if not df.empty:
        df = df.sort_values(["Session Started", "Student Name"], kind="stable").reset_index(drop=True)
    return df


def render_csv(df: pd.DataFrame) -> str:
    stream = io.StringIO()
    df.to_csv(stream, index=False)
    return stream.getvalue()


def render_excel(df: pd.DataFrame) -> io.BytesIO:
    output = io.BytesIO()
    # Excel cannot store tz-aware datetimes
    export = df.copy()
    started = export["Session Started"]
    if hasattr(started, "dt") and started.dt.tz is not None:
        export["Session Started"] = started.dt.tz_localize(None)
    with pd.ExcelWriter(output, engine="openpyxl") as writer:
        export.to_excel(writer, index=False, sheet_name="Attendance")
    output.seek(0)
    return output
