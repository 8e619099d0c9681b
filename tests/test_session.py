import time

import numpy as np
import pytest

pytest.importorskip("cv2")
pytest.importorskip("face_recognition")

from detection.client import ApiResult  # noqa: E402
from detection.session import DetectionError, DetectionSession  # noqa: E402
from face_matching import FaceDetection, encoding_to_string  # noqa: E402
from utils.config import DetectionConfig  # noqa: E402

ANA_ENCODING = np.zeros(128)
ANA_ENCODING[0] = 1.0


class FakePortal:
    def __init__(self, event_ok=True):
        self.event_ok = event_ok
        self.recorded = []

    def get_event(self, event_id):
        if not self.event_ok:
            return ApiResult(False, error="Event not found", status_code=404)
        return ApiResult(True, data={"id": event_id, "event_name": "Foundation Day", "course_id": 1})

    def get_students(self):
        return ApiResult(True, data=[
            {"id": 1, "first_name": "Ana", "last_name": "Cruz", "course_id": 1,
             "face_encoding": encoding_to_string(ANA_ENCODING)},
            {"id": 2, "first_name": "Ben", "last_name": "Reyes", "course_id": 2,
             "face_encoding": encoding_to_string(np.ones(128))},
        ])

    def get_event_attendance(self, event_id):
        return ApiResult(True, data=[])

    def record_attendance(self, student_id, event_id, session="AM", check_type="IN"):
        self.recorded.append((student_id, event_id, session, check_type))
        return ApiResult(True, data={"recorded": 1})


class FakeCamera:
    def __init__(self):
        self.started = False

    def start_stream(self):
        self.started = True

    def stop_stream(self):
        self.started = False

    def get_fps(self):
        return 30.0


class FakeDetector:
    def __init__(self, encoding):
        self.encoding = encoding

    def get_performance_stats(self):
        return {"average_detection_time_ms": 12.0, "detection_fps": 83.3, "model": "hog"}

    def detect_faces(self, frame, return_encodings=True):
        return [FaceDetection(bbox=(10, 60, 60, 10), encoding=self.encoding)]


class FlakyDetector(FakeDetector):
    """Fails on the first frame, then behaves."""

    def __init__(self, encoding):
        super().__init__(encoding)
        self.calls = 0

    def detect_faces(self, frame, return_encodings=True):
        self.calls += 1
        if self.calls == 1:
            raise RuntimeError("dlib failure")
        return super().detect_faces(frame, return_encodings)


def make_session(portal, encoding=ANA_ENCODING, detector=None):
    settings = DetectionConfig(dwell_ms=0, timezone="UTC")
    return DetectionSession(portal, 5, camera=FakeCamera(), detector=detector or FakeDetector(encoding),
                            gui_mode=False, settings=settings)


def test_open_filters_students_by_event_course():
    session = make_session(FakePortal())
    try:
        session.open()
        assert session.labels == {1: "Ana Cruz"}
        assert session.camera.started
    finally:
        session.close()


def test_open_fails_without_event():
    session = make_session(FakePortal(event_ok=False))
    try:
        with pytest.raises(DetectionError):
            session.open()
    finally:
        session.close()


def test_recognised_face_is_recorded_once():
    portal = FakePortal()
    session = make_session(portal)
    frame = np.zeros((120, 160, 3), dtype=np.uint8)
    try:
        session.open()
        deadline = time.monotonic() + 2
        while 1 not in session.state.attended and time.monotonic() < deadline:
            session.process_frame(frame)
            time.sleep(0.01)

        for _ in range(5):
            session.process_frame(frame)

        assert portal.recorded == [(1, 5, "AM", "IN")]
        assert session.state.attended == {1}
        overlay = session.draw_overlay(frame, session.process_frame(frame))
        assert overlay.shape == frame.shape
    finally:
        session.close()

    assert session.state.attended == set()


def test_unknown_face_is_not_recorded():
    portal = FakePortal()
    session = make_session(portal, encoding=np.full(128, 0.5))
    frame = np.zeros((120, 160, 3), dtype=np.uint8)
    try:
        session.open()
        outcomes = session.process_frame(frame)
        assert outcomes[0].caption.startswith("Not Registered")
    finally:
        session.close()

    assert portal.recorded == []


def test_frame_error_is_logged_and_loop_recovers(monkeypatch):
    import detection.session as session_module

    errors = []
    monkeypatch.setattr(session_module.logger, "error", errors.append)
    portal = FakePortal()
    session = make_session(portal, detector=FlakyDetector(ANA_ENCODING))
    frame = np.zeros((120, 160, 3), dtype=np.uint8)
    try:
        session.open()
        assert session.process_frame(frame) == []
        assert errors == ["Error processing frame 1: dlib failure"]

        deadline = time.monotonic() + 2
        while 1 not in session.state.attended and time.monotonic() < deadline:
            session.process_frame(frame)
            time.sleep(0.01)

        assert portal.recorded == [(1, 5, "AM", "IN")]
    finally:
        session.close()


def test_status_line_reports_writes_in_flight(monkeypatch):
    import detection.session as session_module

    lines = []
    monkeypatch.setattr(session_module.logger, "info", lines.append)
    session = make_session(FakePortal())
    try:
        session.open()
        session.frame_count = 100
        session._log_status()
        assert "Camera FPS: 30.0" in lines[-1]
        assert "Writes in flight: 0" in lines[-1]
    finally:
        session.close()
