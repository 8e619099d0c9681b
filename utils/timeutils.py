"""
Time helpers shared by the API and the live check-in loop.
"""
from datetime import datetime, date, time, timedelta
from typing import Optional, Union
from zoneinfo import ZoneInfo

DEFAULT_TIMEZONE = "Asia/Manila"


def now_in_timezone(timezone: str = DEFAULT_TIMEZONE) -> datetime:
    """Current wall-clock time in the given timezone, as a naive datetime."""
    return datetime.now(ZoneInfo(timezone)).replace(tzinfo=None)


def current_hhmm(timezone: str = DEFAULT_TIMEZONE) -> str:
    """Current time of day as HH:MM."""
    return now_in_timezone(timezone).strftime("%H:%M")


def normalize_hhmm(value) -> Optional[str]:
    """
    Reduce a stored time-of-day to HH:MM.

    Accepts "HH:MM", "HH:MM:SS", datetime.time and the timedelta that
    mysql-connector returns for TIME columns. Empty values give None.
    """
    if value is None or value == "":
        return None
    if isinstance(value, timedelta):
        minutes = int(value.total_seconds()) // 60
        return f"{(minutes // 60) % 24:02d}:{minutes % 60:02d}"
    if isinstance(value, (time, datetime)):
        return value.strftime("%H:%M")
    text = str(value).strip()
    parts = text.split(":")
    if len(parts) < 2:
        raise ValueError(f"Invalid time of day: {value!r}")
    hours, minutes = int(parts[0]), int(parts[1])
    if not (0 <= hours < 24 and 0 <= minutes < 60):
        raise ValueError(f"Invalid time of day: {value!r}")
    return f"{hours:02d}:{minutes:02d}"


def parse_timestamp(value: Union[str, datetime, None]) -> Optional[datetime]:
    """Parse a stored timestamp (ISO string or datetime)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def format_time_of_day(value: Union[str, datetime, None]) -> str:
    """Format a timestamp as a 24-hour HH:MM string, empty when missing."""
    parsed = parse_timestamp(value)
    return parsed.strftime("%H:%M") if parsed else ""


def format_to_12_hour(value: str) -> str:
    """'14:30' -> '2:30 PM'."""
    parts = value.split(":")
    hours = int(parts[0])
    minutes = parts[1]
    suffix = "PM" if hours >= 12 else "AM"
    hours = hours % 12 or 12
    return f"{hours}:{minutes} {suffix}"


def format_readable_date(value: Union[str, date, None]) -> str:
    """'2026-01-14' -> 'January 14, 2026'."""
    if not value:
        return ""
    if isinstance(value, str):
        value = date.fromisoformat(value[:10])
    return f"{value.strftime('%B')} {value.day}, {value.year}"
