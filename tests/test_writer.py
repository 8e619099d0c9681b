import threading
import time

from detection.client import ApiResult
from detection.writer import AttendanceWriteQueue


def drain_all(queue, timeout=2.0):
    results = []
    deadline = time.monotonic() + timeout
    while queue.in_flight and time.monotonic() < deadline:
        results.extend(queue.drain())
        time.sleep(0.01)
    return results


def test_results_are_collected_on_drain():
    queue = AttendanceWriteQueue(lambda *args: ApiResult(True, data={"recorded": 1}))
    try:
        queue.submit(1, 7, "AM", "IN")
        results = drain_all(queue)
    finally:
        queue.shutdown()

    assert len(results) == 1
    result = results[0]
    assert (result.student_id, result.event_id, result.session, result.type) == (1, 7, "AM", "IN")
    assert result.ok and result.error is None


def test_failed_and_raising_writes_report_errors():
    def write(student_id, event_id, session, check_type):
        if student_id == 1:
            return ApiResult(False, error="Unknown student or event", status_code=400)
        raise RuntimeError("connection reset")

    queue = AttendanceWriteQueue(write)
    try:
        queue.submit(1, 7, "AM", "IN")
        queue.submit(2, 7, "AM", "IN")
        results = {r.student_id: r for r in drain_all(queue)}
    finally:
        queue.shutdown()

    assert not results[1].ok
    assert results[1].error == "Unknown student or event"
    assert not results[2].ok
    assert results[2].error == "connection reset"


def test_results_from_before_reset_are_dropped():
    release = threading.Event()

    def slow_write(*args):
        release.wait(2)
        return ApiResult(True)

    queue = AttendanceWriteQueue(slow_write)
    try:
        queue.submit(1, 7, "AM", "IN")
        queue.reset()
        queue.submit(2, 7, "AM", "IN")
        release.set()
        results = drain_all(queue)
    finally:
        queue.shutdown()

    assert [r.student_id for r in results] == [2]
    assert queue.in_flight == 0
