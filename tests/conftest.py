"""Shared fixtures: a temporary SQLite portal and logged-in API clients."""
from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from api.auth import hash_password
from api.server import create_app
from database import AdminRepository, SQLiteDatabase

PASSWORD = "secret123"


class FrozenClock:
    """Portal wall clock that tests move by hand."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def db(tmp_path):
    database = SQLiteDatabase(str(tmp_path / "portal.db"))
    database.initialize_schema()
    return database


@pytest.fixture
def clock():
    return FrozenClock(datetime(2026, 3, 14, 8, 10))


@pytest.fixture
def client(db, clock):
    app = create_app(database=db, clock=clock)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def make_admin(db):
    def _make(username: str, role: str, password: str = PASSWORD) -> int:
        return AdminRepository(db).create(
            username, username.replace("_", " ").title(),
            hash_password(password, iterations=1000),
            f"{username}@school.test", role,
        )
    return _make


@pytest.fixture
def login(client, make_admin):
    """Create an admin with the given role and log the test client in as them."""
    created = set()

    def _login(role: str = "superadmin", username: str = None):
        username = username or role
        if username not in created:
            make_admin(username, role)
            created.add(username)
        response = client.post("/auth/login", json={"username": username, "password": PASSWORD})
        assert response.status_code == 200, response.text
        return response.json()["admin"]

    return _login


@pytest.fixture
def seeded(client, login):
    """A course, two students and an event with an 08:00-08:30 AM check-in window."""
    login("superadmin")
    course = client.post("/courses", json={"course_name": "BS Computer Science", "course_code": "BSCS"})
    course_id = course.json()["id"]

    ana = client.post("/students", json={
        "student_number": "2026-0001", "first_name": "Ana", "last_name": "Cruz",
        "year_level": 2, "course_id": course_id,
    }).json()["id"]
    ben = client.post("/students", json={
        "student_number": "2026-0002", "first_name": "Ben", "last_name": "Reyes",
        "year_level": 3, "course_id": course_id,
    }).json()["id"]

    event = client.post("/events", json={
        "event_name": "Foundation Day",
        "event_date": "2026-03-14",
        "start_time": "08:00",
        "end_time": "17:00",
        "fine_amount": 100,
        "course_id": course_id,
        "am_in_start_time": "08:00",
        "am_in_end_time": "08:30",
    })
    assert event.status_code == 201, event.text

    return {"course_id": course_id, "ana": ana, "ben": ben, "event_id": event.json()["id"]}
