"""
Face detection and matching for live check-in.

This module provides:
- FaceDetector: face boxes and 128-d encodings from camera frames
- FaceMatcher: best match of an encoding against registered students
- encoding helpers: stored JSON strings <-> numpy vectors, image enrolment
"""

from .detector import FaceDetection, FaceDetector
from .matcher import FaceMatcher, LabeledDescriptor, MatchResult
from .encoding import encode_face_image, encoding_from_string, encoding_to_string

__all__ = [
    'FaceDetection',
    'FaceDetector',
    'FaceMatcher',
    'LabeledDescriptor',
    'MatchResult',
    'encode_face_image',
    'encoding_from_string',
    'encoding_to_string',
]
