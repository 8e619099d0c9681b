"""
Attendance-derived fines.

An event carries one flat fine; a student is charged a quarter of it per
missing slot out of four, so every attended session reduces the fine by
one quarter.
"""
from collections import defaultdict
from typing import Any, Dict, Iterable, List

from .sessions import AttendanceSummary

FINE_PARTS = 4


def prorate_fine(fine_amount: float, sessions_attended: int) -> float:
    """Return ``(fine_amount / 4) * (4 - sessions_attended)``, unrounded."""
    if sessions_attended < 0 or sessions_attended > FINE_PARTS:
        raise ValueError(
            f"sessions_attended must be between 0 and {FINE_PARTS}, got {sessions_attended}"
        )
    return (float(fine_amount or 0) / FINE_PARTS) * (FINE_PARTS - sessions_attended)


def format_amount(value: float) -> str:
    return f"{float(value):.2f}"


def summary_fine(summary: AttendanceSummary) -> float:
    return prorate_fine(summary.fine_amount, summary.sessions_attended)


def total_prorated_fines(summaries: Iterable[AttendanceSummary]) -> float:
    return sum(summary_fine(summary) for summary in summaries)


def fines_by_course(summaries: Iterable[AttendanceSummary],
                    courses: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Total prorated fines per course, including courses with no fines."""
    totals = defaultdict(float)
    for summary in summaries:
        totals[summary.details.get("course_id")] += summary_fine(summary)

    return [
        {
            "course_id": course["id"],
            "course_name": course.get("course_name"),
            "total_fines": totals.get(course["id"], 0.0),
        }
        for course in courses
    ]
