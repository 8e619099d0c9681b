"""
Request models for the portal API with validation.
"""
import json
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator

from attendance.models import normalize_session, normalize_type
from utils.timeutils import normalize_hhmm

ROLE_PATTERN = "^(superadmin|fine_manager|receipt_manager|student_registrar)$"
DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"
EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=100)
    full_name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=6)


class AdminCreateRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=100)
    full_name: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=6)
    email: Optional[str] = Field(None, pattern=EMAIL_PATTERN)
    role: Optional[str] = Field(None, pattern=ROLE_PATTERN)

    @field_validator("email", "role", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        return _blank_to_none(value)


class AdminUpdateRequest(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=255)
    email: Optional[str] = Field(None, pattern=EMAIL_PATTERN)
    role: str = Field(..., pattern=ROLE_PATTERN)

    @field_validator("email", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        return _blank_to_none(value)


class StudentRequest(BaseModel):
    student_number: str = Field(..., min_length=1, max_length=50)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    year_level: Optional[int] = Field(None, ge=1, le=10)
    course_id: Optional[int] = None
    section_id: Optional[int] = None
    face_encoding: Optional[str] = None

    @field_validator("year_level", "course_id", "section_id", "face_encoding", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        return _blank_to_none(value)


class FaceEncodingRequest(BaseModel):
    face_encoding: str = Field(..., min_length=2)

    @field_validator("face_encoding")
    @classmethod
    def check_encoding(cls, value: str) -> str:
        try:
            data = json.loads(value)
        except ValueError:
            raise ValueError("face_encoding must be a JSON array of numbers")
        if not isinstance(data, list) or not data or not all(
            isinstance(v, (int, float)) and not isinstance(v, bool) for v in data
        ):
            raise ValueError("face_encoding must be a JSON array of numbers")
        return value


class CourseRequest(BaseModel):
    course_name: str = Field(..., min_length=1, max_length=255)
    course_code: Optional[str] = Field(None, max_length=50)


class SectionRequest(BaseModel):
    section_name: str = Field(..., min_length=1, max_length=100)
    course_id: int
    capacity: Optional[int] = Field(None, ge=0)
    instructor_name: Optional[str] = None
    semester: Optional[str] = None

    @field_validator("capacity", "instructor_name", "semester", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        return _blank_to_none(value)


class EventRequest(BaseModel):
    event_name: str = Field(..., min_length=1, max_length=255)
    event_date: str = Field(..., pattern=DATE_PATTERN)
    start_time: str
    end_time: str
    fine_amount: float = Field(..., ge=0)
    course_id: Optional[int] = None
    am_in_start_time: Optional[str] = None
    am_in_end_time: Optional[str] = None
    am_out_start_time: Optional[str] = None
    am_out_end_time: Optional[str] = None
    pm_in_start_time: Optional[str] = None
    pm_in_end_time: Optional[str] = None
    pm_out_start_time: Optional[str] = None
    pm_out_end_time: Optional[str] = None

    @field_validator("course_id", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator(
        "start_time", "end_time",
        "am_in_start_time", "am_in_end_time", "am_out_start_time", "am_out_end_time",
        "pm_in_start_time", "pm_in_end_time", "pm_out_start_time", "pm_out_end_time",
        mode="before",
    )
    @classmethod
    def to_hhmm(cls, value: Any) -> Optional[str]:
        value = _blank_to_none(value)
        if value is None:
            return None
        try:
            return normalize_hhmm(value)
        except ValueError:
            raise ValueError("time must be HH:MM")


class AttendanceRequest(BaseModel):
    """One attendance write; session and type fall back to AM/IN."""
    student_id: int
    event_id: Optional[int] = None
    session: str = "AM"
    type: str = "IN"

    @field_validator("session", mode="before")
    @classmethod
    def to_session(cls, value: Any) -> str:
        return normalize_session(value)

    @field_validator("type", mode="before")
    @classmethod
    def to_type(cls, value: Any) -> str:
        return normalize_type(value)


class FineRequest(BaseModel):
    student_id: int
    amount: float = Field(..., gt=0)
    reason: str = Field(..., min_length=1)
    date: Optional[str] = Field(None, pattern=DATE_PATTERN)

    @field_validator("date", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        return _blank_to_none(value)


class FineStatusRequest(BaseModel):
    status: str = Field(..., pattern="^(paid|unpaid)$")


class FineReceiptRequest(BaseModel):
    fine_id: int
    amount_paid: float = Field(..., gt=0)
    payment_method: Optional[str] = Field(None, max_length=50)
    payment_date: Optional[str] = Field(None, pattern=DATE_PATTERN)

    @field_validator("payment_method", "payment_date", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        return _blank_to_none(value)


def attendance_records(payload: Any) -> List[Any]:
    """Unwrap a single record, a list, or ``{"records": [...]}``."""
    if isinstance(payload, dict) and "records" in payload:
        payload = payload["records"]
    if isinstance(payload, list):
        return payload
    return [payload]
