"""
Background attendance writes for the check-in loop.

Writes run on a small thread pool so the frame loop never waits on the
network. Finished writes are collected by the loop thread with ``drain``;
writes submitted before the last ``reset`` are dropped there.
"""
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from utils.logger import logger


@dataclass
class WriteResult:
    student_id: int
    event_id: int
    session: str
    type: str
    ok: bool
    error: Optional[str] = None


@dataclass
class _PendingWrite:
    generation: int
    student_id: int
    event_id: int
    session: str
    type: str
    future: Future


class AttendanceWriteQueue:
    """Runs ``write(student_id, event_id, session, type)`` off the loop thread."""

    def __init__(self, write: Callable[[int, int, str, str], Any], max_workers: int = 2):
        self.write = write
        self.generation = 0
        self._executor = ThreadPoolExecutor(max_workers=max_workers,
                                            thread_name_prefix="attendance-write")
        self._pending: List[_PendingWrite] = []

    def submit(self, student_id: int, event_id: int, session: str, check_type: str):
        future = self._executor.submit(self.write, student_id, event_id, session, check_type)
        self._pending.append(
            _PendingWrite(self.generation, student_id, event_id, session, check_type, future)
        )

    @property
    def in_flight(self) -> int:
        return len(self._pending)

    def drain(self) -> List[WriteResult]:
        """Collect finished writes of the current generation."""
        finished, waiting = [], []
        for pending in self._pending:
            (finished if pending.future.done() else waiting).append(pending)
        self._pending = waiting

        results = []
        for pending in finished:
            if pending.generation != self.generation:
                logger.debug(f"Dropping stale write result for student {pending.student_id}")
                continue
            results.append(self._to_result(pending))
        return results

    def _to_result(self, pending: _PendingWrite) -> WriteResult:
        error = None
        try:
            outcome = pending.future.result()
        except Exception as e:
            logger.error(f"Attendance write for student {pending.student_id} raised: {e}")
            outcome = None
            error = str(e)

        ok = bool(getattr(outcome, "ok", False))
        if outcome is not None and not ok:
            error = getattr(outcome, "error", None) or "write failed"
        return WriteResult(pending.student_id, pending.event_id, pending.session,
                           pending.type, ok, error)

    def reset(self):
        """Start a new generation; results of writes already in flight will be ignored."""
        self.generation += 1

    def shutdown(self):
        self.reset()
        self._executor.shutdown(wait=False)
