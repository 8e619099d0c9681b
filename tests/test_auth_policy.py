from datetime import timedelta

import pytest

from api.auth import ROLE_PERMISSIONS, hash_password, is_allowed, verify_password


def test_password_hashing():
    stored = hash_password("hunter22", iterations=1000)

    assert stored.startswith("pbkdf2_sha256$1000$")
    assert verify_password("hunter22", stored)
    assert not verify_password("hunter23", stored)
    assert not verify_password("hunter22", "plain-text")
    assert hash_password("hunter22", iterations=1000) != stored


@pytest.mark.parametrize("role,operation,allowed", [
    ("superadmin", "admins:write", True),
    ("superadmin", "fines:write", True),
    ("student_registrar", "students:write", True),
    ("student_registrar", "attendance:write", True),
    ("student_registrar", "fines:read", False),
    ("student_registrar", "admins:read", False),
    ("fine_manager", "fines:write", True),
    ("fine_manager", "students:read", True),
    ("fine_manager", "students:write", False),
    ("receipt_manager", "fine_receipts:write", True),
    ("receipt_manager", "fines:read", True),
    ("receipt_manager", "fines:write", False),
    ("janitor", "students:read", False),
    (None, "students:read", False),
])
def test_policy_table(role, operation, allowed):
    assert is_allowed(role, operation) is allowed


def test_every_role_can_read_the_dashboard():
    assert all("dashboard:read" in ops for ops in ROLE_PERMISSIONS.values())


def test_protected_routes_need_a_session(client):
    response = client.get("/students")

    assert response.status_code == 401
    assert response.json() == {"message": "Not authenticated"}


def test_unknown_token_is_rejected(client):
    response = client.get("/auth/me", headers={"Authorization": "Bearer not-a-session"})

    assert response.status_code == 401
    assert response.json()["message"] == "Session expired or invalid"


def test_login_and_me(client, make_admin):
    make_admin("registrar1", "student_registrar")

    bad = client.post("/auth/login", json={"username": "registrar1", "password": "wrong"})
    assert bad.status_code == 401
    assert bad.json()["message"] == "Invalid username or password"

    good = client.post("/auth/login", json={"username": "registrar1", "password": "secret123"})
    assert good.status_code == 200
    assert good.json()["admin"]["role"] == "student_registrar"
    assert "password_hash" not in good.json()["admin"]

    me = client.get("/auth/me")
    assert me.status_code == 200
    assert me.json()["username"] == "registrar1"


def test_bearer_token_works_without_cookie(client, login):
    login("fine_manager")
    token = client.cookies.get("admin_session")
    client.cookies.clear()

    assert client.get("/fines").status_code == 401
    response = client.get("/fines", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 200


def test_session_status(client, login):
    assert client.get("/auth/session").json() == {"authenticated": False, "admin": None}

    login("receipt_manager")
    status = client.get("/auth/session").json()
    assert status["authenticated"] is True
    assert status["admin"]["role"] == "receipt_manager"


def test_logout_invalidates_session(client, login):
    login("superadmin")
    token = client.cookies.get("admin_session")

    assert client.post("/auth/logout").status_code == 200

    response = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


def test_session_expires(client, login, clock):
    login("superadmin")

    clock.now = clock.now + timedelta(hours=25)

    response = client.get("/auth/me")
    assert response.status_code == 401
    assert response.json()["message"] == "Session expired or invalid"


def test_role_is_enforced_per_operation(client, login):
    login("fine_manager")
    assert client.get("/students").status_code == 200

    denied = client.post("/students", json={
        "student_number": "2026-0099", "first_name": "Dan", "last_name": "Lim",
    })
    assert denied.status_code == 403
    assert denied.json() == {"message": "Insufficient permissions"}


def test_receipt_manager_cannot_issue_fines(client, login):
    login("receipt_manager")

    assert client.get("/fines").status_code == 200
    assert client.post("/fines", json={"student_id": 1, "amount": 50, "reason": "Late"}).status_code == 403


def test_admin_users_are_superadmin_only(client, login):
    login("student_registrar")
    assert client.get("/admin-users").status_code == 403

    login("superadmin")
    response = client.get("/admin-users")
    assert response.status_code == 200
    assert {a["username"] for a in response.json()} == {"student_registrar", "superadmin"}


def test_register_uses_default_role_and_rejects_duplicates(client):
    payload = {
        "username": "newclerk",
        "full_name": "New Clerk",
        "email": "clerk@school.test",
        "password": "longenough",
    }

    created = client.post("/auth/register", json=payload)
    assert created.status_code == 201

    login = client.post("/auth/login", json={"username": "newclerk", "password": "longenough"})
    assert login.json()["admin"]["role"] == "student_registrar"

    duplicate = client.post("/auth/register", json=dict(payload, username="other"))
    assert duplicate.status_code == 409
    assert duplicate.json()["message"] == "Username or email already exists"


def test_validation_errors_are_400(client, login):
    login("superadmin")

    response = client.post("/courses", json={"course_code": "BSCS"})

    assert response.status_code == 400
    body = response.json()
    assert body["message"].startswith("Invalid request")
    assert any("course_name" in error for error in body["errors"])


def test_register_rejects_short_password(client):
    response = client.post("/auth/register", json={
        "username": "x", "full_name": "X", "email": "x@school.test", "password": "123",
    })

    assert response.status_code == 400
