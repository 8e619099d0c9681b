"""
Event session windows.

An event may restrict check-ins to up to four HH:MM windows (AM-IN, AM-OUT,
PM-IN, PM-OUT). The current time of day selects which session and check
type a detection is recorded as.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from utils.timeutils import format_to_12_hour, normalize_hhmm
from .models import CheckType, Session

WINDOW_ORDER = (
    (Session.AM.value, CheckType.IN.value, "am_in"),
    (Session.AM.value, CheckType.OUT.value, "am_out"),
    (Session.PM.value, CheckType.IN.value, "pm_in"),
    (Session.PM.value, CheckType.OUT.value, "pm_out"),
)


@dataclass(frozen=True)
class TimeWindow:
    start: Optional[str] = None
    end: Optional[str] = None

    @property
    def configured(self) -> bool:
        return bool(self.start and self.end)

    def contains(self, hhmm: str) -> bool:
        return self.configured and self.start <= hhmm < self.end


@dataclass(frozen=True)
class SessionCheck:
    """Outcome of checking the current time against an event schedule."""
    is_valid: bool
    session: Optional[str] = None
    type: Optional[str] = None
    message: str = ""


@dataclass(frozen=True)
class EventSchedule:
    am_in: TimeWindow = TimeWindow()
    am_out: TimeWindow = TimeWindow()
    pm_in: TimeWindow = TimeWindow()
    pm_out: TimeWindow = TimeWindow()

    @classmethod
    def from_event(cls, event: Dict[str, Any]) -> "EventSchedule":
        windows = {}
        for _, _, name in WINDOW_ORDER:
            windows[name] = TimeWindow(
                start=normalize_hhmm(event.get(f"{name}_start_time")),
                end=normalize_hhmm(event.get(f"{name}_end_time")),
            )
        return cls(**windows)

    def configured_windows(self) -> List[str]:
        return [name for _, _, name in WINDOW_ORDER if getattr(self, name).configured]

    def describe(self) -> str:
        """Human readable windows, e.g. "AM IN 8:00 AM-8:30 AM"."""
        parts = []
        for session, check_type, name in WINDOW_ORDER:
            window = getattr(self, name)
            if window.configured:
                parts.append(f"{session} {check_type} "
                             f"{format_to_12_hour(window.start)}-{format_to_12_hour(window.end)}")
        return ", ".join(parts) or "no time restrictions"


def validate_session_time(schedule: EventSchedule, current_hhmm: str) -> SessionCheck:
    """Pick the session and check type whose window contains ``current_hhmm``."""
    if not schedule.configured_windows():
        return SessionCheck(True, Session.AM.value, CheckType.IN.value, "No time restrictions")

    for session, check_type, name in WINDOW_ORDER:
        window: TimeWindow = getattr(schedule, name)
        if window.contains(current_hhmm):
            return SessionCheck(
                True, session, check_type,
                f"{session} {check_type} window {window.start}-{window.end}"
            )

    return SessionCheck(
        False,
        message=f"Current time {current_hhmm} is outside all valid session windows",
    )
