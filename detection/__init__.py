"""
Live face check-in.

The camera session itself lives in ``detection.session`` and needs OpenCV
and face_recognition; everything exported here does not.
"""
from .client import ApiResult, PortalClient
from .state import DetectionState, Notice
from .tracker import BoxOutcome, BoxStatus, FaceMatch, LiveMatchTracker
from .writer import AttendanceWriteQueue, WriteResult

__all__ = [
    'ApiResult',
    'AttendanceWriteQueue',
    'BoxOutcome',
    'BoxStatus',
    'DetectionState',
    'FaceMatch',
    'LiveMatchTracker',
    'Notice',
    'PortalClient',
    'WriteResult',
]
