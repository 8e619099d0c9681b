"""
HTTP client for the portal API, used by the check-in station and the CLI.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests

from utils.logger import logger


@dataclass
class ApiResult:
    """Outcome of one API call; failures carry ``error`` instead of raising."""
    ok: bool
    data: Any = None
    error: Optional[str] = None
    status_code: Optional[int] = None


class PortalClient:
    """API client for the attendance portal."""

    def __init__(self, base_url: str = None, timeout: float = 5.0):
        if base_url is None:
            from utils.config import config
            base_url = config.detection.api_url
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()

    def _request(self, method: str, path: str, **kwargs) -> ApiResult:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.warning(f"{method} {path} failed: {e}")
            return ApiResult(False, error=str(e))

        try:
            data = response.json() if response.content else None
        except ValueError:
            data = response.text

        if response.ok:
            return ApiResult(True, data=data, status_code=response.status_code)

        error = None
        if isinstance(data, dict):
            error = data.get("message") or data.get("detail")
        error = error or f"HTTP {response.status_code}"
        logger.warning(f"{method} {path} returned {response.status_code}: {error}")
        return ApiResult(False, data=data, error=str(error), status_code=response.status_code)

    def login(self, username: str, password: str) -> ApiResult:
        """Log in; the session cookie is kept for later calls."""
        return self._request("POST", "/auth/login", json={"username": username, "password": password})

    def logout(self) -> ApiResult:
        return self._request("POST", "/auth/logout")

    def me(self) -> ApiResult:
        return self._request("GET", "/auth/me")

    def get_event(self, event_id: int) -> ApiResult:
        return self._request("GET", f"/events/{event_id}")

    def get_students(self) -> ApiResult:
        return self._request("GET", "/students")

    def get_event_attendance(self, event_id: int) -> ApiResult:
        return self._request("GET", "/attendance", params={"eventId": event_id})

    def record_attendance(self, student_id: int, event_id: int, session: str = "AM",
                          check_type: str = "IN") -> ApiResult:
        return self._request("POST", "/attendance", json={
            "student_id": student_id,
            "event_id": event_id,
            "session": session,
            "type": check_type,
        })

    def update_face_encoding(self, student_id: int, face_encoding: str) -> ApiResult:
        return self._request(
            "PUT", f"/students/{student_id}/face-encoding", json={"face_encoding": face_encoding}
        )

    def close(self):
        self.session.close()


def students_for_event(students: List[Dict[str, Any]], event: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Restrict students to the event's course when the event has one."""
    course_id = event.get("course_id")
    if course_id in (None, ""):
        return list(students)
    return [s for s in students if str(s.get("course_id")) == str(course_id)]
