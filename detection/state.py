"""
Per-camera-session state of the live check-in loop.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Set


@dataclass
class Notice:
    """A transient on-screen message."""
    kind: str  # success, error or warning
    text: str
    expires_at: float

    def active(self, now_ms: float) -> bool:
        return now_ms < self.expires_at


@dataclass
class DetectionState:
    """
    Everything the deduplicator remembers while one camera session is open.

    Times are milliseconds from the session clock; ``last_seen`` holds the
    number of the last processed frame a student appeared in. The loop
    thread is the only writer.
    """
    attended: Set[int] = field(default_factory=set)
    pending: Set[int] = field(default_factory=set)
    detection_timers: Dict[int, float] = field(default_factory=dict)
    last_check: Dict[int, float] = field(default_factory=dict)
    last_seen: Dict[int, int] = field(default_factory=dict)
    unregistered_checks: Dict[str, float] = field(default_factory=dict)
    notices: List[Notice] = field(default_factory=list)
    frame: int = 0

    def add_notice(self, kind: str, text: str, now_ms: float, duration_ms: float) -> Notice:
        notice = Notice(kind, text, now_ms + duration_ms)
        self.notices.append(notice)
        return notice

    def active_notices(self, now_ms: float) -> List[Notice]:
        """Drop expired notices and return the rest."""
        self.notices = [n for n in self.notices if n.active(now_ms)]
        return list(self.notices)

    def clear(self):
        self.attended.clear()
        self.pending.clear()
        self.detection_timers.clear()
        self.last_check.clear()
        self.last_seen.clear()
        self.unregistered_checks.clear()
        self.notices.clear()
        self.frame = 0
