"""
Camera capture for the check-in station.

A reader thread pulls frames from OpenCV into a small queue; when the
check-in loop falls behind, the oldest frame is discarded so matching always
runs on recent video.
"""
import threading
import time
from collections import deque
from queue import Empty, Full, Queue
from typing import Optional, Tuple

import cv2
import numpy as np

from utils.config import config
from utils.logger import logger

MAX_READ_FAILURES = 50


class CameraError(RuntimeError):
    """Raised when the camera device cannot be opened."""


class CameraStream:
    """One camera device feeding the newest frames to the check-in loop."""

    def __init__(self, device_id: int = None, resolution: Tuple[int, int] = None,
                 fps: int = None, buffer_size: int = None):
        settings = config.camera
        self.device_id = settings.device_id if device_id is None else device_id
        self.resolution = resolution or settings.resolution
        self.fps = fps or settings.fps
        self.buffer_size = buffer_size or settings.buffer_size

        self.cap: Optional[cv2.VideoCapture] = None
        self.frame_queue: Queue = Queue(maxsize=self.buffer_size)
        self.running = False
        self.frames_dropped = 0
        self.read_failures = 0

        self._reader: Optional[threading.Thread] = None
        self._delivered = deque(maxlen=120)

    def _open_device(self) -> cv2.VideoCapture:
        cap = cv2.VideoCapture(self.device_id)
        if not cap.isOpened():
            cap.release()
            raise CameraError(f"Cannot open camera {self.device_id}")

        width, height = self.resolution
        for prop, value in ((cv2.CAP_PROP_FRAME_WIDTH, width),
                            (cv2.CAP_PROP_FRAME_HEIGHT, height),
                            (cv2.CAP_PROP_FPS, self.fps),
                            (cv2.CAP_PROP_BUFFERSIZE, self.buffer_size)):
            cap.set(prop, value)

        logger.info(f"Camera {self.device_id} opened at "
                    f"{int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))}x{int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))}")
        return cap

    def _offer(self, frame: np.ndarray):
        try:
            self.frame_queue.put_nowait(frame)
            return
        except Full:
            pass
        try:
            self.frame_queue.get_nowait()
            self.frames_dropped += 1
        except Empty:
            pass
        try:
            self.frame_queue.put_nowait(frame)
        except Full:
            self.frames_dropped += 1

    def _read_loop(self):
        interval = 1.0 / self.fps
        while self.running:
            ok, frame = self.cap.read()
            if not ok:
                self.read_failures += 1
                if self.read_failures >= MAX_READ_FAILURES:
                    logger.error(f"Camera {self.device_id} returned no frames "
                                 f"{self.read_failures} times in a row; stopping capture")
                    self.running = False
                    break
                time.sleep(interval)
                continue

            self.read_failures = 0
            self._offer(frame)
            time.sleep(interval)

    def start_stream(self):
        """
        Open the device and start the reader thread.

        Raises:
            CameraError: if the device cannot be opened
        """
        if self.running:
            logger.warning(f"Camera {self.device_id} is already streaming")
            return

        if self.cap is None:
            self.cap = self._open_device()

        self.read_failures = 0
        self.running = True
        self._reader = threading.Thread(target=self._read_loop, name=f"camera-{self.device_id}",
                                        daemon=True)
        self._reader.start()

    def stop_stream(self):
        """Stop the reader thread and release the device."""
        self.running = False

        if self._reader is not None and self._reader.is_alive():
            self._reader.join(timeout=2.0)
        self._reader = None

        if self.cap is not None:
            self.cap.release()
            self.cap = None

        with self.frame_queue.mutex:
            self.frame_queue.queue.clear()
        logger.info(f"Camera {self.device_id} released ({self.frames_dropped} frames dropped)")

    def get_frame(self, timeout: float = 1.0) -> Optional[np.ndarray]:
        """Next frame, or None when the stream is stopped or no frame came within ``timeout``."""
        if not self.running:
            return None

        try:
            frame = self.frame_queue.get(timeout=timeout)
        except Empty:
            logger.warning(f"No frame from camera {self.device_id} within {timeout}s")
            return None

        self._delivered.append(time.monotonic())
        return frame

    def get_fps(self) -> float:
        """Delivered frames per second over the recent window."""
        if len(self._delivered) < 2:
            return 0.0
        span = self._delivered[-1] - self._delivered[0]
        return (len(self._delivered) - 1) / span if span > 0 else 0.0

    def is_running(self) -> bool:
        return self.running and self.cap is not None and self.cap.isOpened()
