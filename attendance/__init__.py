"""
Attendance domain logic for the portal.

This module provides:
- Normalisation of attendance records (AM/PM sessions, IN/OUT checks)
- Per-student, per-event session aggregation
- Prorated attendance fines
- Event session windows for live check-in
"""

from .models import AttendanceRecord, CheckType, Session, normalize_session, normalize_type
from .sessions import AttendanceSummary, SessionTimes, filter_summaries, group_attendance, status_text
from .fines import format_amount, prorate_fine
from .windows import EventSchedule, SessionCheck, TimeWindow, validate_session_time

__version__ = "1.0.0"

__all__ = [
    'AttendanceRecord',
    'AttendanceSummary',
    'CheckType',
    'EventSchedule',
    'Session',
    'SessionCheck',
    'SessionTimes',
    'TimeWindow',
    'filter_summaries',
    'format_amount',
    'group_attendance',
    'normalize_session',
    'normalize_type',
    'prorate_fine',
    'status_text',
    'validate_session_time',
]
