import json

import requests

from detection.client import PortalClient, students_for_event


class FakeResponse:
    def __init__(self, status_code, payload=None):
        self.status_code = status_code
        self._payload = payload
        self.content = b"" if payload is None else json.dumps(payload).encode()
        self.text = self.content.decode()

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        return json.loads(self.content)


class FakeTransport:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def __call__(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response


def make_client(monkeypatch, transport):
    client = PortalClient("http://portal.test/api/", timeout=1.5)
    monkeypatch.setattr(client.session, "request", transport)
    return client


def test_record_attendance_posts_payload(monkeypatch):
    transport = FakeTransport(FakeResponse(201, {"message": "Attendance recorded", "recorded": 1}))
    client = make_client(monkeypatch, transport)

    result = client.record_attendance(3, 9, "PM", "OUT")

    assert result.ok
    assert result.status_code == 201
    assert result.data["recorded"] == 1
    method, url, kwargs = transport.calls[0]
    assert (method, url) == ("POST", "http://portal.test/api/attendance")
    assert kwargs["json"] == {"student_id": 3, "event_id": 9, "session": "PM", "type": "OUT"}
    assert kwargs["timeout"] == 1.5


def test_error_message_is_taken_from_body(monkeypatch):
    transport = FakeTransport(FakeResponse(403, {"message": "Insufficient permissions"}))
    client = make_client(monkeypatch, transport)

    result = client.get_students()

    assert not result.ok
    assert result.status_code == 403
    assert result.error == "Insufficient permissions"


def test_error_without_body_uses_status(monkeypatch):
    client = make_client(monkeypatch, FakeTransport(FakeResponse(502)))

    result = client.get_event(4)

    assert not result.ok
    assert result.error == "HTTP 502"


def test_transport_failure_becomes_result(monkeypatch):
    transport = FakeTransport(error=requests.ConnectionError("connection refused"))
    client = make_client(monkeypatch, transport)

    result = client.get_event_attendance(4)

    assert not result.ok
    assert result.status_code is None
    assert "connection refused" in result.error
    assert transport.calls[0][2]["params"] == {"eventId": 4}


def test_students_for_event_filters_by_course():
    students = [
        {"id": 1, "course_id": 1},
        {"id": 2, "course_id": 2},
        {"id": 3, "course_id": "1"},
    ]

    assert [s["id"] for s in students_for_event(students, {"course_id": 1})] == [1, 3]
    assert [s["id"] for s in students_for_event(students, {"course_id": None})] == [1, 2, 3]
    assert [s["id"] for s in students_for_event(students, {})] == [1, 2, 3]
