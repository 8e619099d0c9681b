"""Camera capture for the check-in station."""
from .stream_handler import CameraError, CameraStream
__all__ = ['CameraError', 'CameraStream']
