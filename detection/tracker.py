"""
Live match deduplication.

Turns the stream of per-frame face matches into at most one attendance write
per student per camera session. A student must stay in view for the dwell
time, checks are debounced per student, and the current time must fall in
one of the event's session windows.
"""
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Tuple

from attendance.windows import EventSchedule, validate_session_time
from utils.logger import logger
from utils.timeutils import current_hhmm
from .state import DetectionState

Submitter = Callable[[int, int, str, str], None]


@dataclass
class FaceMatch:
    """One face in one frame, after matching."""
    student_id: Optional[int]
    label: str
    distance: float
    bbox: Tuple[int, int, int, int] = (0, 0, 0, 0)


class BoxStatus(Enum):
    UNREGISTERED = "unregistered"
    ATTENDED = "attended"
    TRACKING = "tracking"
    OUTSIDE_HOURS = "outside_hours"
    SUBMITTED = "submitted"


@dataclass
class BoxOutcome:
    match: FaceMatch
    status: BoxStatus
    caption: str


def monotonic_ms() -> float:
    return time.monotonic() * 1000


class LiveMatchTracker:
    """Applies dwell, debounce and session-window gates to face matches."""

    def __init__(self, state: DetectionState, event_id: int, schedule: EventSchedule,
                 submit: Submitter, threshold: float = 0.4, dwell_ms: float = 3000,
                 debounce_ms: float = 2000, max_missed_frames: int = 2,
                 error_notice_ms: float = 4000, confirm_notice_ms: float = 3000,
                 clock: Callable[[], float] = monotonic_ms,
                 time_of_day: Callable[[], str] = current_hhmm):
        self.state = state
        self.event_id = event_id
        self.schedule = schedule
        self.submit = submit
        self.threshold = threshold
        self.dwell_ms = dwell_ms
        self.debounce_ms = debounce_ms
        self.max_missed_frames = max_missed_frames
        self.error_notice_ms = error_notice_ms
        self.confirm_notice_ms = confirm_notice_ms
        self.clock = clock
        self.time_of_day = time_of_day

    @classmethod
    def from_config(cls, state: DetectionState, event_id: int, schedule: EventSchedule,
                    submit: Submitter, settings=None, **overrides) -> "LiveMatchTracker":
        if settings is None:
            from utils.config import config
            settings = config.detection
        options = dict(
            threshold=settings.match_threshold,
            dwell_ms=settings.dwell_ms,
            debounce_ms=settings.debounce_ms,
            max_missed_frames=settings.max_missed_frames,
            error_notice_ms=settings.error_notice_ms,
            confirm_notice_ms=settings.confirm_notice_ms,
            time_of_day=lambda: current_hhmm(settings.timezone),
        )
        options.update(overrides)
        return cls(state, event_id, schedule, submit, **options)

    def process(self, matches: List[FaceMatch]) -> List[BoxOutcome]:
        """Handle every face of one frame. Call once per processed frame, even with no faces."""
        now = self.clock()
        self.state.frame += 1
        return [self._process_match(match, now) for match in matches]

    def _process_match(self, match: FaceMatch, now: float) -> BoxOutcome:
        state = self.state
        percent = f"{round(max(0.0, 1.0 - match.distance) * 100)}%"

        if match.student_id is None or match.distance >= self.threshold:
            self._note_unregistered(match.label, now)
            return BoxOutcome(match, BoxStatus.UNREGISTERED, f"Not Registered ({percent})")

        student_id = match.student_id
        previously_seen = state.last_seen.get(student_id)
        state.last_seen[student_id] = state.frame

        if student_id in state.attended or student_id in state.pending:
            state.detection_timers.pop(student_id, None)
            return BoxOutcome(match, BoxStatus.ATTENDED, f"{match.label} - Recorded")

        started = state.detection_timers.get(student_id)
        # continuity is counted in processed frames, not wall-clock time
        missed = state.frame - previously_seen - 1 if previously_seen is not None else None
        if started is None or missed is None or missed > self.max_missed_frames:
            started = now
            state.detection_timers[student_id] = started

        tracking = BoxOutcome(match, BoxStatus.TRACKING, f"{match.label} ({percent})")
        if now - started < self.dwell_ms:
            return tracking
        if now - state.last_check.get(student_id, float("-inf")) < self.debounce_ms:
            return tracking
        state.last_check[student_id] = now

        current = self.time_of_day()
        check = validate_session_time(self.schedule, current)
        if not check.is_valid:
            state.add_notice("error", f"{match.label}: {check.message}", now, self.error_notice_ms)
            state.detection_timers.pop(student_id, None)
            logger.log_attendance_event(student_id, "OUTSIDE_WINDOW", {
                'event_id': self.event_id,
                'time': current,
            })
            return BoxOutcome(match, BoxStatus.OUTSIDE_HOURS, f"{match.label} - Outside Hours")

        state.pending.add(student_id)
        state.detection_timers.pop(student_id, None)
        logger.log_attendance_event(student_id, "SUBMITTED", {
            'event_id': self.event_id,
            'session': check.session,
            'type': check.type,
        })
        self.submit(student_id, self.event_id, check.session, check.type)
        return BoxOutcome(match, BoxStatus.SUBMITTED, f"{match.label} - Recorded")

    def _note_unregistered(self, label: str, now: float):
        key = f"unregistered_{label}"
        last = self.state.unregistered_checks.get(key)
        if last is not None and now - last < self.debounce_ms:
            return
        self.state.unregistered_checks[key] = now
        self.state.add_notice("warning", "Not Registered", now, self.error_notice_ms)

    def complete_write(self, student_id: int, ok: bool, label: str = "", session: str = "",
                       check_type: str = "", error: Optional[str] = None):
        """Apply the result of an attendance write. Must run on the loop thread."""
        now = self.clock()
        self.state.pending.discard(student_id)

        if ok:
            self.state.attended.add(student_id)
            text = f"{label or student_id} - Attendance recorded"
            if session:
                text += f" ({session} {check_type})"
            self.state.add_notice("success", text, now, self.confirm_notice_ms)
            logger.log_attendance_event(student_id, "ATTENDANCE_RECORDED", {
                'event_id': self.event_id,
                'session': session,
                'type': check_type,
            })
        else:
            logger.log_attendance_event(student_id, "ATTENDANCE_FAILED", {
                'event_id': self.event_id,
                'error': error,
            })
