"""
Face check-in camera session.
Ties the camera, face matching, the deduplicator and the portal API together.
"""
import time
from typing import Any, Dict, List, Optional

import cv2
import numpy as np

from attendance.windows import EventSchedule
from camera.stream_handler import CameraStream
from face_matching import FaceDetector, FaceMatcher
from utils.config import config
from utils.logger import logger
from utils.timeutils import format_readable_date
from .client import PortalClient, students_for_event
from .state import DetectionState
from .tracker import BoxOutcome, BoxStatus, FaceMatch, LiveMatchTracker
from .writer import AttendanceWriteQueue

WINDOW_NAME = 'Face Check-in'

BOX_COLORS = {
    BoxStatus.UNREGISTERED: (0, 0, 255),
    BoxStatus.ATTENDED: (0, 200, 0),
    BoxStatus.SUBMITTED: (0, 200, 0),
    BoxStatus.TRACKING: (255, 200, 0),
    BoxStatus.OUTSIDE_HOURS: (0, 140, 255),
}

NOTICE_COLORS = {
    "success": (0, 160, 0),
    "error": (0, 0, 200),
    "warning": (0, 120, 220),
}


class DetectionError(RuntimeError):
    """Raised when a camera session cannot be opened."""


class DetectionSession:
    """One camera session for one event."""

    def __init__(self, client: PortalClient, event_id: int, camera: CameraStream = None,
                 detector: FaceDetector = None, threshold: float = None,
                 gui_mode: bool = True, settings=None):
        self.client = client
        self.event_id = event_id
        self.settings = settings or config.detection
        self.threshold = self.settings.match_threshold if threshold is None else threshold
        self.gui_mode = gui_mode

        self.camera = camera
        self.detector = detector
        self.matcher: Optional[FaceMatcher] = None
        self.event: Dict[str, Any] = {}
        self.labels: Dict[int, str] = {}

        self.state = DetectionState()
        self.writes = AttendanceWriteQueue(self.client.record_attendance,
                                           max_workers=self.settings.write_workers)
        self.tracker: Optional[LiveMatchTracker] = None

        self.running = False
        self.frame_count = 0
        self.start_time = time.time()

    def open(self):
        """
        Load the event and its students, seed attendance and start the camera.

        Raises:
            DetectionError: if the event or students cannot be loaded
        """
        logger.info(f"Opening check-in session for event {self.event_id}")

        event_result = self.client.get_event(self.event_id)
        if not event_result.ok:
            raise DetectionError(f"Could not load event {self.event_id}: {event_result.error}")
        self.event = event_result.data

        students_result = self.client.get_students()
        if not students_result.ok:
            raise DetectionError(f"Could not load students: {students_result.error}")
        students = students_for_event(students_result.data or [], self.event)

        self.state.clear()
        attendance_result = self.client.get_event_attendance(self.event_id)
        if attendance_result.ok:
            self.state.attended.update(row["student_id"] for row in attendance_result.data or [])
        else:
            logger.warning(f"Could not load existing attendance: {attendance_result.error}")

        self.matcher = FaceMatcher.from_students(students, self.threshold)
        self.labels = {d.student_id: d.label for d in self.matcher.descriptors}
        if not len(self.matcher):
            logger.warning("No registered faces for this event; every face will be unregistered")

        schedule = EventSchedule.from_event(self.event)
        logger.info(f"Event {self.event.get('event_name')} on "
                    f"{format_readable_date(self.event.get('event_date'))}: {schedule.describe()}")
        self.tracker = LiveMatchTracker.from_config(
            self.state, self.event_id, schedule,
            self.writes.submit, settings=self.settings, threshold=self.threshold,
        )

        if self.detector is None:
            self.detector = FaceDetector()
        if self.camera is None:
            self.camera = CameraStream()
        self.camera.start_stream()

        self.running = True
        self.start_time = time.time()
        logger.log_event("CHECKIN_SESSION_OPENED", {
            'event_id': self.event_id,
            'event_name': self.event.get('event_name'),
            'students': len(students),
            'registered_faces': len(self.matcher),
            'already_attended': len(self.state.attended),
        })

    def run(self):
        """Run the frame loop until stopped or 'q' is pressed."""
        if not self.running:
            self.open()

        try:
            if self.gui_mode:
                self._run_with_gui()
            else:
                self._run_headless()
        except KeyboardInterrupt:
            logger.info("Received interrupt signal")
        finally:
            self.stop()

    def _run_with_gui(self):
        cv2.namedWindow(WINDOW_NAME, cv2.WINDOW_NORMAL)
        try:
            while self.running:
                frame = self.camera.get_frame()
                if frame is None:
                    if not self.camera.is_running():
                        logger.error("Camera stopped delivering frames")
                        break
                    continue
                outcomes = self.process_frame(frame)
                cv2.imshow(WINDOW_NAME, self.draw_overlay(frame, outcomes))

                key = cv2.waitKey(1) & 0xFF
                if key == ord('q'):
                    logger.info("Quit key pressed")
                    break
        finally:
            cv2.destroyAllWindows()

    def _run_headless(self):
        while self.running:
            frame = self.camera.get_frame()
            if frame is None:
                if not self.camera.is_running():
                    logger.error("Camera stopped delivering frames")
                    break
                continue
            self.process_frame(frame)

            if self.frame_count % 100 == 0:
                self._log_status()

    def process_frame(self, frame: np.ndarray) -> List[BoxOutcome]:
        """Apply finished writes, then detect, match and deduplicate one frame."""
        self.frame_count += 1
        self.apply_write_results()

        try:
            detections = self.detector.detect_faces(frame, return_encodings=True)
            matches = []
            for detection in detections:
                if detection.encoding is None:
                    continue
                result = self.matcher.best_match(detection.encoding)
                matches.append(FaceMatch(result.student_id, result.label,
                                         result.distance, detection.bbox))
            return self.tracker.process(matches)
        except Exception as e:
            logger.error(f"Error processing frame {self.frame_count}: {e}")
            return []

    def apply_write_results(self):
        for result in self.writes.drain():
            if not result.ok:
                logger.warning(f"Attendance write failed for student {result.student_id}: {result.error}")
            self.tracker.complete_write(
                result.student_id, result.ok,
                label=self.labels.get(result.student_id, ""),
                session=result.session, check_type=result.type, error=result.error,
            )

    def draw_overlay(self, frame: np.ndarray, outcomes: List[BoxOutcome]) -> np.ndarray:
        display = frame.copy()

        for outcome in outcomes:
            top, right, bottom, left = outcome.match.bbox
            color = BOX_COLORS[outcome.status]
            cv2.rectangle(display, (left, top), (right, bottom), color, 2)
            cv2.rectangle(display, (left, bottom), (right, bottom + 24), color, -1)
            cv2.putText(display, outcome.caption, (left + 4, bottom + 17),
                        cv2.FONT_HERSHEY_SIMPLEX, 0.5, (255, 255, 255), 1, cv2.LINE_AA)

        notices = self.state.active_notices(self.tracker.clock())
        for i, notice in enumerate(notices[-3:]):
            y_pos = 20 + i * 34
            cv2.rectangle(display, (10, y_pos), (display.shape[1] - 10, y_pos + 28),
                          NOTICE_COLORS.get(notice.kind, (60, 60, 60)), -1)
            cv2.putText(display, notice.text, (20, y_pos + 19), cv2.FONT_HERSHEY_SIMPLEX,
                        0.55, (255, 255, 255), 1, cv2.LINE_AA)

        status = f"Event: {self.event.get('event_name', self.event_id)} | Recorded: {len(self.state.attended)}"
        cv2.putText(display, status, (10, display.shape[0] - 12), cv2.FONT_HERSHEY_SIMPLEX,
                    0.55, (255, 255, 255), 1, cv2.LINE_AA)
        return display

    def _log_status(self):
        runtime = time.time() - self.start_time
        fps = self.frame_count / runtime if runtime > 0 else 0
        stats = self.detector.get_performance_stats()
        logger.info(f"Frames: {self.frame_count} | FPS: {fps:.1f} | "
                    f"Camera FPS: {self.camera.get_fps():.1f} | "
                    f"Detection: {stats['average_detection_time_ms']:.0f}ms | "
                    f"Recorded: {len(self.state.attended)} | Pending: {len(self.state.pending)}"
                    f" | Writes in flight: {self.writes.in_flight}")

    def stop(self):
        """End the loop, release the camera and forget all session state."""
        if not self.running:
            return

        logger.info("Stopping check-in session")
        self.running = False
        self.writes.reset()

        if self.camera:
            self.camera.stop_stream()

        recorded = len(self.state.attended)
        self.state.clear()

        logger.log_event("CHECKIN_SESSION_CLOSED", {
            'event_id': self.event_id,
            'frames': self.frame_count,
            'runtime_seconds': time.time() - self.start_time,
            'recorded': recorded,
            'event_types': logger.get_attendance_summary(hours=24)['event_type_counts'],
        })

    def close(self):
        """Stop the session and shut down the write pool."""
        self.stop()
        self.writes.shutdown()
