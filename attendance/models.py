"""
Attendance record types and the normalisation shared by the write path and
the session aggregator.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class Session(str, Enum):
    AM = "AM"
    PM = "PM"


class CheckType(str, Enum):
    IN = "IN"
    OUT = "OUT"


def normalize_session(value: Any) -> str:
    """Map a raw session value to AM/PM; missing or unknown values become AM."""
    if value is None:
        return Session.AM.value
    text = str(value).strip().upper()
    return text if text in (Session.AM.value, Session.PM.value) else Session.AM.value


def normalize_type(value: Any) -> str:
    """Map a raw check type to IN/OUT; missing or unknown values become IN."""
    if value is None:
        return CheckType.IN.value
    text = str(value).strip().upper()
    return text if text in (CheckType.IN.value, CheckType.OUT.value) else CheckType.IN.value


@dataclass
class AttendanceRecord:
    """One check-in or check-out of a student at an event."""
    student_id: int
    event_id: int
    session: str = Session.AM.value
    type: str = CheckType.IN.value
    time_recorded: Optional[datetime] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.session = normalize_session(self.session)
        self.type = normalize_type(self.type)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "AttendanceRecord":
        """Build a record from a joined attendance row; extra columns become metadata."""
        core = {"student_id", "event_id", "session", "type", "time_recorded"}
        time_recorded = row.get("time_recorded")
        if isinstance(time_recorded, str) and time_recorded:
            time_recorded = datetime.fromisoformat(time_recorded.replace("Z", "+00:00"))
        return cls(
            student_id=row.get("student_id"),
            event_id=row.get("event_id"),
            session=row.get("session"),
            type=row.get("type"),
            time_recorded=time_recorded or None,
            metadata={k: v for k, v in row.items() if k not in core},
        )
