"""
Face detection for the live check-in camera.

Faces are located on a downscaled RGB copy of each frame; boxes are mapped
back to full-frame coordinates and each face gets a 128-d encoding.
"""
import time
from collections import deque
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import cv2
import face_recognition
import numpy as np

from utils.logger import logger

Box = Tuple[int, int, int, int]


@dataclass
class FaceDetection:
    """A face in (top, right, bottom, left) frame coordinates, with its encoding."""
    bbox: Box
    encoding: Optional[np.ndarray] = None
    timestamp: float = field(default_factory=time.time)

    def __post_init__(self):
        if len(self.bbox) != 4:
            raise ValueError("bbox needs (top, right, bottom, left)")


class FaceDetector:
    def __init__(self, model: str = None, detection_scale: float = None, max_faces: int = None):
        from utils.config import config
        settings = config.detection
        self.model = model or settings.model
        self.detection_scale = detection_scale or settings.detection_scale
        self.max_faces = max_faces or settings.max_faces
        self.detection_times = deque(maxlen=100)

        logger.info(f"Face detector ready (model={self.model}, scale={self.detection_scale})")

    def _downscale(self, frame: np.ndarray) -> Tuple[np.ndarray, float]:
        if self.detection_scale >= 1.0:
            return frame, 1.0
        height, width = frame.shape[:2]
        size = (int(width * self.detection_scale), int(height * self.detection_scale))
        if min(size) <= 0:
            return frame, 1.0
        return cv2.resize(frame, size), 1.0 / self.detection_scale

    @staticmethod
    def _to_frame(box: Box, factor: float, height: int, width: int) -> Box:
        top, right, bottom, left = (int(v * factor) for v in box)
        return (min(max(top, 0), height), min(max(right, 0), width),
                min(max(bottom, 0), height), min(max(left, 0), width))

    def detect_faces(self, frame: np.ndarray, return_encodings: bool = True) -> List[FaceDetection]:
        """
        Locate up to ``max_faces`` faces in a BGR camera frame.

        Frames that are empty or not 3-channel yield no detections.
        """
        if frame is None or frame.size == 0 or frame.ndim != 3 or frame.shape[2] != 3:
            logger.warning("Skipping unusable frame")
            return []

        started = time.perf_counter()
        small, factor = self._downscale(frame)
        rgb = cv2.cvtColor(small, cv2.COLOR_BGR2RGB)

        boxes = face_recognition.face_locations(rgb, model=self.model)[:self.max_faces]
        encodings = face_recognition.face_encodings(rgb, boxes) if return_encodings and boxes else []

        height, width = frame.shape[:2]
        detections = [
            FaceDetection(
                bbox=self._to_frame(box, factor, height, width),
                encoding=encodings[i] if i < len(encodings) else None,
            )
            for i, box in enumerate(boxes)
        ]

        self.detection_times.append(time.perf_counter() - started)
        return detections

    def get_performance_stats(self) -> dict:
        average = float(np.mean(self.detection_times)) if self.detection_times else 0.0
        return {
            'average_detection_time_ms': average * 1000,
            'detection_fps': 1.0 / average if average > 0 else 0.0,
            'model': self.model,
        }
