"""
Logging for the attendance portal.

Two channels share one output directory: the main portal log
(``<output_dir>/logs/portal.log`` plus the console) and an attendance log
that records every check-in related event. The most recent attendance
events are also kept in memory for session summaries.
"""
import json
import logging
import threading
from collections import Counter, deque
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, List, Optional

PORTAL_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
ATTENDANCE_FORMAT = '%(asctime)s - ATTENDANCE - %(levelname)s - %(message)s'

# Events that are also copied to the main log
MAIN_LOG_EVENTS = ("ATTENDANCE_RECORDED", "ATTENDANCE_FAILED")


def _logging_settings():
    try:
        from utils.config import config
        return config.logging
    except ImportError:
        return None


def _file_handler(path: Path, fmt: str, level: int) -> Optional[logging.Handler]:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path, encoding='utf-8')
    except OSError as e:
        logging.getLogger(__name__).warning(f"Could not open log file {path}: {e}")
        return None
    handler.setFormatter(logging.Formatter(fmt))
    handler.setLevel(level)
    return handler


class PortalLogger:
    """Portal log plus the attendance event channel."""

    def __init__(self, name: str = "portal"):
        settings = _logging_settings()
        self.name = name
        self.level = getattr(logging, (settings.log_level if settings else "INFO").upper(), logging.INFO)
        self.log_dir = Path(settings.output_dir if settings else "portal_output") / "logs"
        attendance_file = settings.attendance_log_file if settings else "attendance.log"
        history = settings.max_attendance_events if settings else 1000

        self.logger = self._build(name, PORTAL_FORMAT, self.log_dir / "portal.log", console=True)
        self.attendance_logger = self._build(f"{name}.attendance", ATTENDANCE_FORMAT,
                                             self.log_dir / attendance_file, console=False)
        self.attendance_events = deque(maxlen=history)
        self._events_lock = threading.Lock()

    def _build(self, name: str, fmt: str, path: Path, console: bool) -> logging.Logger:
        log = logging.getLogger(name)
        log.handlers.clear()
        log.setLevel(self.level)
        log.propagate = False

        if console:
            stream = logging.StreamHandler()
            stream.setFormatter(logging.Formatter(fmt))
            stream.setLevel(self.level)
            log.addHandler(stream)

        handler = _file_handler(path, fmt, self.level)
        if handler is not None:
            log.addHandler(handler)
        return log

    def debug(self, message: str, **kwargs):
        self.logger.debug(message, **kwargs)

    def info(self, message: str, **kwargs):
        self.logger.info(message, **kwargs)

    def warning(self, message: str, **kwargs):
        self.logger.warning(message, **kwargs)

    def error(self, message: str, **kwargs):
        self.logger.error(message, **kwargs)

    def critical(self, message: str, **kwargs):
        self.logger.critical(message, **kwargs)

    def log_event(self, event_type: str, details: dict):
        """Log a portal event as ``EVENT: <type> | <json details>``."""
        self.info(f"EVENT: {event_type} | {json.dumps(details, default=str)}")

    def log_attendance_event(self, student_id, event_type: str = "DETECTED",
                             details: Dict = None):
        """Write an attendance event to the attendance log and the in-memory history."""
        details = details or {}
        with self._events_lock:
            self.attendance_events.append({
                'timestamp': datetime.now(),
                'student_id': student_id,
                'event_type': event_type,
                'details': details,
            })

        message = f"Student: {student_id} | Event: {event_type}"
        if details:
            message += f" | Details: {json.dumps(details, default=str)}"
        self.attendance_logger.info(message)

        if event_type in MAIN_LOG_EVENTS:
            self.info(f"ATTENDANCE - {message}")

    def get_recent_attendance_events(self, hours: int = 24) -> List[Dict]:
        cutoff = datetime.now() - timedelta(hours=hours)
        with self._events_lock:
            return [
                dict(event, timestamp=event['timestamp'].isoformat())
                for event in self.attendance_events
                if event['timestamp'] >= cutoff
            ]

    def get_attendance_summary(self, hours: int = 24) -> Dict:
        """Counts of recent attendance events, by type and by recorded student."""
        events = self.get_recent_attendance_events(hours)
        recorded = Counter(e['student_id'] for e in events if e['event_type'] == "ATTENDANCE_RECORDED")
        return {
            'time_period_hours': hours,
            'total_events': len(events),
            'unique_students': len({e['student_id'] for e in events}),
            'student_attendance_counts': dict(recorded),
            'event_type_counts': dict(Counter(e['event_type'] for e in events)),
        }

    def shutdown(self):
        """Flush and close every handler of both channels."""
        for log in (self.logger, self.attendance_logger):
            for handler in list(log.handlers):
                handler.flush()
                handler.close()
                log.removeHandler(handler)


logger = PortalLogger()
