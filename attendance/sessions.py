"""
Session aggregation.

Groups raw attendance rows into one summary per (student, event) recording
which of the AM/PM check-ins and check-outs happened, and how many of the
two sessions the student attended.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from utils.timeutils import format_time_of_day
from .models import AttendanceRecord, CheckType, Session

SUMMARY_METADATA = (
    "student_number", "first_name", "last_name", "course_id", "year_level",
    "section_id", "photo", "event_date", "event_name",
)


@dataclass
class SessionTimes:
    """Formatted check-in/check-out times of one session."""
    in_time: Optional[str] = None
    out_time: Optional[str] = None

    @property
    def attended(self) -> bool:
        return self.in_time is not None or self.out_time is not None

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {"in": self.in_time, "out": self.out_time}


@dataclass
class AttendanceSummary:
    """All attendance of one student at one event."""
    student_id: int
    event_id: int
    fine_amount: float = 0.0
    sessions: Dict[str, SessionTimes] = field(
        default_factory=lambda: {Session.AM.value: SessionTimes(), Session.PM.value: SessionTimes()}
    )
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def sessions_attended(self) -> int:
        return sum(1 for times in self.sessions.values() if times.attended)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "student_id": self.student_id,
            "event_id": self.event_id,
            "fine_amount": self.fine_amount,
            "sessions": {name: times.to_dict() for name, times in self.sessions.items()},
            "sessions_attended": self.sessions_attended,
        }
        data.update(self.details)
        return data


def _as_record(row: Union[AttendanceRecord, Dict[str, Any]]) -> AttendanceRecord:
    return row if isinstance(row, AttendanceRecord) else AttendanceRecord.from_row(row)


def group_attendance(rows: Iterable[Union[AttendanceRecord, Dict[str, Any]]]) -> List[AttendanceSummary]:
    """Aggregate attendance rows per (student_id, event_id)."""
    groups: Dict[Tuple[Any, Any], AttendanceSummary] = {}

    for row in rows:
        record = _as_record(row)
        key = (record.student_id, record.event_id)

        summary = groups.get(key)
        if summary is None:
            summary = AttendanceSummary(
                student_id=record.student_id,
                event_id=record.event_id,
                fine_amount=float(record.metadata.get("fine_amount") or 0),
                details={name: record.metadata.get(name) for name in SUMMARY_METADATA},
            )
            groups[key] = summary

        time_text = format_time_of_day(record.time_recorded)
        times = summary.sessions[record.session]
        if record.type == CheckType.IN.value:
            times.in_time = time_text
        else:
            times.out_time = time_text

    return list(groups.values())


def status_text(sessions_attended: int) -> str:
    if sessions_attended == 0:
        return "ABSENT"
    if sessions_attended == 1:
        return "PARTIAL"
    if sessions_attended in (2, 3):
        return "PRESENT"
    return "FULL PRESENT"


def filter_summaries(summaries: Iterable[AttendanceSummary], search: str = "",
                     status: str = "all", event_id: Optional[int] = None,
                     course_id: Optional[int] = None) -> List[AttendanceSummary]:
    """Apply the attendance page filters."""
    term = (search or "").strip().lower()
    result = []

    for summary in summaries:
        details = summary.details
        if term:
            first = (details.get("first_name") or "").lower()
            last = (details.get("last_name") or "").lower()
            number = str(details.get("student_number") or "")
            if term not in first and term not in last and term not in number:
                continue

        attended = summary.sessions_attended
        if status == "present" and attended < 2:
            continue
        if status == "partial" and attended != 1:
            continue
        if status == "absent" and attended != 0:
            continue

        if event_id is not None and str(summary.event_id) != str(event_id):
            continue
        if course_id is not None and str(details.get("course_id")) != str(course_id):
            continue

        result.append(summary)

    return result
