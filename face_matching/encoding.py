"""
Conversion between stored face encodings and numpy vectors.

Students keep their encoding as a JSON array of 128 floats in the
``face_encoding`` column.
"""
import json
from typing import Optional

import face_recognition
import numpy as np

from utils.logger import logger

ENCODING_SIZE = 128


def encoding_to_string(encoding: np.ndarray) -> str:
    return json.dumps([float(value) for value in np.asarray(encoding).ravel()])


def encoding_from_string(value: Optional[str]) -> Optional[np.ndarray]:
    """Parse a stored encoding; malformed or empty values give None."""
    if not value:
        return None
    try:
        vector = np.asarray(json.loads(value), dtype=np.float64).ravel()
    except (TypeError, ValueError) as e:
        logger.warning(f"Unreadable face encoding: {e}")
        return None

    if vector.size != ENCODING_SIZE:
        logger.warning(f"Face encoding has {vector.size} values, expected {ENCODING_SIZE}")
        return None
    return vector


def encode_face_image(image_path: str) -> np.ndarray:
    """
    Compute the encoding of the single face in an image file.

    Raises:
        ValueError: if the image contains no face
    """
    image = face_recognition.load_image_file(image_path)
    encodings = face_recognition.face_encodings(image)

    if not encodings:
        raise ValueError(f"No face found in {image_path}")
    if len(encodings) > 1:
        logger.warning(f"Multiple faces found in {image_path}, using first one")

    return encodings[0]
