"""
Matching of live face encodings against registered students.
"""
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

import face_recognition as fr
import numpy as np

from utils.logger import logger
from .encoding import encoding_from_string


@dataclass
class LabeledDescriptor:
    """A registered student's encoding with the label shown on screen."""
    student_id: int
    label: str
    encoding: np.ndarray


@dataclass
class MatchResult:
    student_id: Optional[int]
    label: str
    distance: float


class FaceMatcher:
    """Nearest-neighbour matcher over a fixed set of student descriptors."""

    def __init__(self, descriptors: List[LabeledDescriptor], threshold: float = 0.4):
        self.descriptors = descriptors
        self.threshold = threshold
        self._encodings = [d.encoding for d in descriptors]

        logger.info(f"Face matcher initialized with {len(descriptors)} known faces "
                    f"(threshold {threshold})")

    @classmethod
    def from_students(cls, students: Iterable[Dict[str, Any]], threshold: float = 0.4) -> "FaceMatcher":
        """Build a matcher from student rows; students without a usable encoding are skipped."""
        descriptors = []
        for student in students:
            encoding = encoding_from_string(student.get("face_encoding"))
            if encoding is None:
                continue
            label = f"{student.get('first_name', '')} {student.get('last_name', '')}".strip()
            descriptors.append(LabeledDescriptor(student["id"], label or str(student["id"]), encoding))
        return cls(descriptors, threshold)

    def __len__(self):
        return len(self.descriptors)

    def best_match(self, encoding: np.ndarray) -> MatchResult:
        """
        Find the closest registered face.

        Distances at or above the threshold are reported as unknown, with
        ``student_id`` None and the label "unknown".
        """
        if not self._encodings:
            return MatchResult(None, "unknown", 1.0)

        distances = fr.face_distance(self._encodings, encoding)
        best_index = int(np.argmin(distances))
        distance = float(distances[best_index])

        if distance >= self.threshold:
            return MatchResult(None, "unknown", distance)

        descriptor = self.descriptors[best_index]
        return MatchResult(descriptor.student_id, descriptor.label, distance)
