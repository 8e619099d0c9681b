"""
Dashboard statistics built with pandas from raw attendance rows.
"""
from datetime import datetime
from typing import Any, Dict, Iterable, List

import pandas as pd

from .fines import fines_by_course, format_amount, total_prorated_fines
from .sessions import AttendanceSummary


def month_keys(now: datetime, months: int = 6) -> List[str]:
    """The last ``months`` calendar months ending with the current one, oldest first."""
    current = pd.Period(now.strftime("%Y-%m"), freq="M")
    return [str(current - offset) for offset in range(months - 1, -1, -1)]


def monthly_attendance(rows: Iterable[Dict[str, Any]], now: datetime,
                       months: int = 6) -> List[Dict[str, Any]]:
    """
    Attendance per month: distinct students plus AM and PM record counts.

    Months without attendance are reported with zeros.
    """
    keys = month_keys(now, months)
    df = pd.DataFrame(list(rows), columns=["student_id", "session", "time_recorded"])

    if df.empty:
        stats = pd.DataFrame(0, index=keys, columns=["students", "am", "pm"])
    else:
        df["month"] = pd.to_datetime(df["time_recorded"]).dt.strftime("%Y-%m")
        df = df[df["month"].isin(keys)].copy()
        df["session"] = df["session"].astype(str).str.upper()
        grouped = df.groupby("month")
        stats = pd.DataFrame({
            "students": grouped["student_id"].nunique(),
            "am": grouped["session"].agg(lambda s: int((s == "AM").sum())),
            "pm": grouped["session"].agg(lambda s: int((s == "PM").sum())),
        }).reindex(keys, fill_value=0)

    return [
        {
            "month": month,
            "students": int(stats.loc[month, "students"]),
            "am": int(stats.loc[month, "am"]),
            "pm": int(stats.loc[month, "pm"]),
        }
        for month in keys
    ]


def build_dashboard(counts: Dict[str, int], summaries: List[AttendanceSummary],
                    courses: List[Dict[str, Any]], attendance_rows: Iterable[Dict[str, Any]],
                    attending_students: int, logins_by_role: List[Dict[str, Any]],
                    now: datetime) -> Dict[str, Any]:
    """Assemble the dashboard payload from already-fetched data."""
    total_fines = total_prorated_fines(summaries)
    by_course = fines_by_course(summaries, courses)
    for entry in by_course:
        entry["total_fines_display"] = format_amount(entry["total_fines"])

    total_students = counts.get("students", 0)
    return {
        "totals": counts,
        "total_fines": total_fines,
        "total_fines_display": format_amount(total_fines),
        "fines_by_course": by_course,
        "monthly_attendance": monthly_attendance(attendance_rows, now),
        "students_present": attending_students,
        "students_absent": max(total_students - attending_students, 0),
        "logins_by_role": [
            {"role": row["role"], "logins": int(row["logins"])} for row in logins_by_role
        ],
    }
