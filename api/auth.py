"""
Admin authentication and the role policy table.

Every protected route declares the operation it performs, e.g.
``Depends(require("students:write"))``; the policy table below decides which
roles may perform it.
"""
import hashlib
import hmac
import secrets
from typing import Any, Callable, Dict, Optional

from fastapi import Depends, HTTPException, Request

from utils.logger import logger

RESOURCES = (
    "students", "courses", "sections", "events", "attendance",
    "fines", "fine_receipts", "admins", "dashboard",
)

PBKDF2_ITERATIONS = 240_000


def _ops(*resources: str, access=("read", "write")) -> set:
    return {f"{resource}:{mode}" for resource in resources for mode in access}


ROLE_PERMISSIONS: Dict[str, set] = {
    "superadmin": _ops(*RESOURCES),
    "student_registrar": (
        _ops("students", "events", "courses", "sections", "attendance")
        | {"dashboard:read"}
    ),
    "fine_manager": (
        _ops("fines", "fine_receipts")
        | _ops("attendance", "students", "events", "courses", "sections", access=("read",))
        | {"dashboard:read"}
    ),
    "receipt_manager": (
        _ops("fine_receipts")
        | _ops("attendance", "fines", "students", "events", "courses", "sections", access=("read",))
        | {"dashboard:read"}
    ),
}


def is_allowed(role: Optional[str], operation: str) -> bool:
    return operation in ROLE_PERMISSIONS.get(role or "", set())


def hash_password(password: str, iterations: int = PBKDF2_ITERATIONS) -> str:
    """Hash a password as ``pbkdf2_sha256$iterations$salt$hash``."""
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("utf-8"), iterations)
    return f"pbkdf2_sha256${iterations}${salt}${digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    try:
        algorithm, iterations, salt, expected = stored.split("$", 3)
    except (AttributeError, ValueError):
        return False
    if algorithm != "pbkdf2_sha256":
        return False
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt.encode("utf-8"), int(iterations)
    )
    return hmac.compare_digest(digest.hex(), expected)


def session_token(request: Request) -> Optional[str]:
    """Session token from the session cookie or a Bearer header."""
    server = request.app.state.server
    token = request.cookies.get(server.settings.api.session_cookie)
    if token:
        return token
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return None


def current_admin(request: Request) -> Dict[str, Any]:
    """Resolve the logged-in admin or fail with 401."""
    token = session_token(request)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    server = request.app.state.server
    admin = server.sessions.get_admin(token, server.now())
    if admin is None:
        raise HTTPException(status_code=401, detail="Session expired or invalid")
    return admin


def require(operation: str) -> Callable[..., Dict[str, Any]]:
    """Dependency factory: the current admin, if their role permits ``operation``."""

    def dependency(admin: Dict[str, Any] = Depends(current_admin)) -> Dict[str, Any]:
        if not is_allowed(admin.get("role"), operation):
            logger.warning(f"Admin {admin.get('username')} ({admin.get('role')}) denied {operation}")
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return admin

    return dependency
