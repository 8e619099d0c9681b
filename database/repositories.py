"""
Entity repositories over the shared Database helpers.

Each repository owns the SQL for one table (plus the joins it needs).
Methods take and return plain dicts, the same shape the API serialises.
"""
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

from utils.logger import logger
from .connection import Database

EVENT_WINDOW_COLUMNS = (
    "am_in_start_time", "am_in_end_time",
    "am_out_start_time", "am_out_end_time",
    "pm_in_start_time", "pm_in_end_time",
    "pm_out_start_time", "pm_out_end_time",
)

ATTENDANCE_JOIN = """
    SELECT a.id, a.student_id, a.event_id, a.session, a.type,
           a.time_recorded, a.recorded_at,
           s.student_number, s.first_name, s.last_name, s.course_id,
           s.year_level, s.section_id, s.photo,
           e.event_name, e.event_date, e.fine_amount
    FROM attendance a
    JOIN students s ON a.student_id = s.id
    JOIN events e ON a.event_id = e.id
"""


class Repository:
    def __init__(self, db: Database):
        self.db = db


class StudentRepository(Repository):
    FIELDS = ("student_number", "first_name", "last_name", "year_level",
              "course_id", "section_id", "face_encoding")

    def list_active(self, course_id: Optional[int] = None) -> List[Dict[str, Any]]:
        query = f"SELECT id, {', '.join(self.FIELDS)}, photo FROM students WHERE is_active = 1"
        params = []
        if course_id is not None:
            query += " AND course_id = ?"
            params.append(course_id)
        query += " ORDER BY first_name, last_name"
        return self.db.fetch_all(query, params)

    def create(self, data: Dict[str, Any]) -> int:
        placeholders = ", ".join("?" for _ in self.FIELDS)
        return self.db.insert(
            f"INSERT INTO students ({', '.join(self.FIELDS)}) VALUES ({placeholders})",
            [data.get(name) for name in self.FIELDS],
        )

    def update(self, student_id: int, data: Dict[str, Any]) -> int:
        assignments = ", ".join(f"{name} = ?" for name in self.FIELDS)
        return self.db.execute(
            f"UPDATE students SET {assignments} WHERE id = ?",
            [data.get(name) for name in self.FIELDS] + [student_id],
        )

    def update_face_encoding(self, student_id: int, face_encoding: str) -> int:
        return self.db.execute(
            "UPDATE students SET face_encoding = ? WHERE id = ? AND is_active = 1",
            (face_encoding, student_id),
        )

    def deactivate(self, student_id: int) -> int:
        return self.db.execute("UPDATE students SET is_active = 0 WHERE id = ?", (student_id,))

    def count_active(self) -> int:
        row = self.db.fetch_one("SELECT COUNT(*) AS total FROM students WHERE is_active = 1")
        return int(row["total"]) if row else 0


class CourseRepository(Repository):
    def list(self) -> List[Dict[str, Any]]:
        return self.db.fetch_all(
            "SELECT id, course_name, course_code FROM courses ORDER BY course_name"
        )

    def create(self, course_name: str, course_code: Optional[str] = None) -> int:
        return self.db.insert(
            "INSERT INTO courses (course_name, course_code) VALUES (?, ?)",
            (course_name, course_code),
        )

    def update(self, course_id: int, course_name: str, course_code: Optional[str] = None) -> int:
        return self.db.execute(
            "UPDATE courses SET course_name = ?, course_code = ? WHERE id = ?",
            (course_name, course_code, course_id),
        )

    def delete(self, course_id: int) -> int:
        return self.db.execute("DELETE FROM courses WHERE id = ?", (course_id,))

    def count(self) -> int:
        row = self.db.fetch_one("SELECT COUNT(*) AS total FROM courses")
        return int(row["total"]) if row else 0


class SectionRepository(Repository):
    FIELDS = ("section_name", "course_id", "capacity", "instructor_name", "semester")

    def list_active(self, course_id: Optional[int] = None) -> List[Dict[str, Any]]:
        query = f"SELECT id, {', '.join(self.FIELDS)} FROM sections WHERE is_active = 1"
        params = []
        if course_id is not None:
            query += " AND course_id = ?"
            params.append(course_id)
        query += " ORDER BY section_name"
        return self.db.fetch_all(query, params)

    def create(self, data: Dict[str, Any]) -> int:
        placeholders = ", ".join("?" for _ in self.FIELDS)
        return self.db.insert(
            f"INSERT INTO sections ({', '.join(self.FIELDS)}) VALUES ({placeholders})",
            [data.get(name) for name in self.FIELDS],
        )

    def update(self, section_id: int, data: Dict[str, Any]) -> int:
        assignments = ", ".join(f"{name} = ?" for name in self.FIELDS)
        return self.db.execute(
            f"UPDATE sections SET {assignments}, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
            [data.get(name) for name in self.FIELDS] + [section_id],
        )

    def deactivate(self, section_id: int) -> int:
        return self.db.execute(
            "UPDATE sections SET is_active = 0, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
            (section_id,),
        )

    def count_active(self) -> int:
        row = self.db.fetch_one("SELECT COUNT(*) AS total FROM sections WHERE is_active = 1")
        return int(row["total"]) if row else 0


class EventRepository(Repository):
    FIELDS = ("event_name", "event_date", "start_time", "end_time", "fine_amount",
              "course_id") + EVENT_WINDOW_COLUMNS

    def list(self) -> List[Dict[str, Any]]:
        return self.db.fetch_all(
            f"SELECT id, {', '.join(self.FIELDS)} FROM events ORDER BY event_date DESC"
        )

    def get(self, event_id: int) -> Optional[Dict[str, Any]]:
        return self.db.fetch_one(
            f"SELECT id, {', '.join(self.FIELDS)} FROM events WHERE id = ?", (event_id,)
        )

    def create(self, data: Dict[str, Any]) -> int:
        placeholders = ", ".join("?" for _ in self.FIELDS)
        return self.db.insert(
            f"INSERT INTO events ({', '.join(self.FIELDS)}) VALUES ({placeholders})",
            [data.get(name) for name in self.FIELDS],
        )

    def update(self, event_id: int, data: Dict[str, Any]) -> int:
        assignments = ", ".join(f"{name} = ?" for name in self.FIELDS)
        return self.db.execute(
            f"UPDATE events SET {assignments} WHERE id = ?",
            [data.get(name) for name in self.FIELDS] + [event_id],
        )

    def delete(self, event_id: int) -> int:
        return self.db.execute("DELETE FROM events WHERE id = ?", (event_id,))

    def count(self) -> int:
        row = self.db.fetch_one("SELECT COUNT(*) AS total FROM events")
        return int(row["total"]) if row else 0


class AttendanceRepository(Repository):
    KEY = ("student_id", "event_id", "session", "type")

    def upsert(self, records: Iterable[Dict[str, Any]], recorded_at: datetime) -> int:
        """
        Insert or refresh attendance rows in one transaction.

        A repeated (student_id, event_id, session, type) keeps its original
        recorded_at and takes the new time_recorded.
        """
        timestamp = recorded_at.isoformat(timespec="seconds")
        rows = [
            (r["student_id"], r["event_id"], r["session"], r["type"], timestamp, timestamp)
            for r in records
        ]
        query = (
            "INSERT INTO attendance (student_id, event_id, session, type, time_recorded, recorded_at) "
            "VALUES (?, ?, ?, ?, ?, ?) "
            + self.db.upsert_clause(self.KEY, ("time_recorded",))
        )
        return self.db.execute_many(query, rows)

    def list_for_event(self, event_id: int) -> List[Dict[str, Any]]:
        return self.db.fetch_all(
            ATTENDANCE_JOIN + " WHERE a.event_id = ? ORDER BY a.recorded_at DESC",
            (event_id,),
        )

    def list_all(self) -> List[Dict[str, Any]]:
        rows = self.db.fetch_all(ATTENDANCE_JOIN + " ORDER BY a.recorded_at DESC")
        for row in rows:
            row["status"] = "PRESENT" if row.get("type") == "IN" else "CHECKED_OUT"
        return rows

    def count(self) -> int:
        row = self.db.fetch_one("SELECT COUNT(*) AS total FROM attendance")
        return int(row["total"]) if row else 0

    def rows_since(self, since: datetime) -> List[Dict[str, Any]]:
        return self.db.fetch_all(
            "SELECT student_id, session, time_recorded FROM attendance WHERE time_recorded >= ?",
            (since.isoformat(timespec="seconds"),),
        )

    def distinct_students(self) -> int:
        row = self.db.fetch_one("SELECT COUNT(DISTINCT student_id) AS total FROM attendance")
        return int(row["total"]) if row else 0


class FineRepository(Repository):
    def list(self, status: Optional[str] = None) -> List[Dict[str, Any]]:
        query = """
            SELECT f.id, f.student_id, f.amount, f.reason, f.date,
                   COALESCE(f.status, 'unpaid') AS status, f.paid_date,
                   s.first_name || ' ' || s.last_name AS student_name
            FROM fines f
            LEFT JOIN students s ON f.student_id = s.id
        """
        if self.db.dialect == "mysql":
            query = query.replace(
                "s.first_name || ' ' || s.last_name", "CONCAT(s.first_name, ' ', s.last_name)"
            )
        params = []
        if status:
            query += " WHERE COALESCE(f.status, 'unpaid') = ?"
            params.append(status)
        query += " ORDER BY f.date DESC, f.id DESC"
        return self.db.fetch_all(query, params)

    def get(self, fine_id: int) -> Optional[Dict[str, Any]]:
        return self.db.fetch_one("SELECT * FROM fines WHERE id = ?", (fine_id,))

    def create(self, student_id: int, amount: float, reason: str, date: str,
               created_at: datetime) -> int:
        return self.db.insert(
            "INSERT INTO fines (student_id, amount, reason, date, status, created_at) "
            "VALUES (?, ?, ?, ?, 'unpaid', ?)",
            (student_id, amount, reason, date, created_at.isoformat(timespec="seconds")),
        )

    def set_status(self, fine_id: int, status: str, paid_date: Optional[str]) -> int:
        return self.db.execute(
            "UPDATE fines SET status = ?, paid_date = ? WHERE id = ?",
            (status, paid_date, fine_id),
        )

    def delete(self, fine_id: int) -> int:
        return self.db.execute("DELETE FROM fines WHERE id = ?", (fine_id,))


class FineReceiptRepository(Repository):
    def list(self) -> List[Dict[str, Any]]:
        return self.db.fetch_all(
            "SELECT id, fine_id, receipt_number, payment_date, amount_paid, payment_method "
            "FROM fine_receipts ORDER BY payment_date DESC, id DESC"
        )

    def create(self, fine_id: int, amount_paid: float, payment_method: Optional[str],
               payment_date: str) -> Dict[str, Any]:
        """Store a receipt and mark its fine as paid."""
        issued_ms = int(datetime.now(timezone.utc).timestamp() * 1000)
        receipt_number = f"RCP-{issued_ms}-{secrets.token_hex(3).upper()}"
        with self.db.cursor() as cursor:
            cursor.execute(
                self.db.prepare(
                    "INSERT INTO fine_receipts (fine_id, receipt_number, payment_date, amount_paid, payment_method) "
                    "VALUES (?, ?, ?, ?, ?)"
                ),
                (fine_id, receipt_number, payment_date, amount_paid, payment_method),
            )
            receipt_id = cursor.lastrowid
            cursor.execute(
                self.db.prepare("UPDATE fines SET status = 'paid', paid_date = ? WHERE id = ?"),
                (payment_date, fine_id),
            )
        return {"id": receipt_id, "receipt_number": receipt_number}


class AdminRepository(Repository):
    PUBLIC = "id, username, full_name, email, role"

    def list_active(self) -> List[Dict[str, Any]]:
        return self.db.fetch_all(
            f"SELECT {self.PUBLIC} FROM admins WHERE is_active = 1 ORDER BY username"
        )

    def find_for_login(self, username: str) -> Optional[Dict[str, Any]]:
        return self.db.fetch_one(
            f"SELECT {self.PUBLIC}, password_hash FROM admins "
            "WHERE username = ? AND is_active = 1",
            (username,),
        )

    def exists(self, username: str, email: Optional[str] = None) -> bool:
        row = self.db.fetch_one(
            "SELECT id FROM admins WHERE username = ? OR (email IS NOT NULL AND email = ?)",
            (username, email),
        )
        return row is not None

    def create(self, username: str, full_name: str, password_hash: str,
               email: Optional[str], role: str) -> int:
        return self.db.insert(
            "INSERT INTO admins (username, full_name, password_hash, email, role) "
            "VALUES (?, ?, ?, ?, ?)",
            (username, full_name, password_hash, email, role),
        )

    def update(self, admin_id: int, full_name: str, email: Optional[str], role: str) -> int:
        return self.db.execute(
            "UPDATE admins SET full_name = ?, email = ?, role = ?, updated_at = CURRENT_TIMESTAMP "
            "WHERE id = ? AND is_active = 1",
            (full_name, email, role, admin_id),
        )

    def deactivate(self, admin_id: int) -> int:
        return self.db.execute(
            "UPDATE admins SET is_active = 0, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
            (admin_id,),
        )


class SessionRepository(Repository):
    """Admin login sessions and the login/logout activity log."""

    def create(self, admin_id: int, now: datetime, lifetime_hours: int = 24) -> str:
        token = secrets.token_hex(32)
        expires_at = now + timedelta(hours=lifetime_hours)
        self.db.execute(
            "INSERT INTO admin_sessions (token, admin_id, expires_at) VALUES (?, ?, ?)",
            (token, admin_id, expires_at.isoformat(timespec="seconds")),
        )
        return token

    def get_admin(self, token: str, now: datetime) -> Optional[Dict[str, Any]]:
        """Return the admin owning a live session, or None."""
        row = self.db.fetch_one(
            "SELECT ad.id, ad.username, ad.full_name, ad.email, ad.role, s.expires_at "
            "FROM admin_sessions s JOIN admins ad ON s.admin_id = ad.id "
            "WHERE s.token = ? AND ad.is_active = 1",
            (token,),
        )
        if row is None:
            return None
        if datetime.fromisoformat(str(row["expires_at"])) <= now:
            logger.debug(f"Session for admin {row['id']} expired")
            self.delete(token)
            return None
        return row

    def delete(self, token: str) -> int:
        return self.db.execute("DELETE FROM admin_sessions WHERE token = ?", (token,))

    def log_activity(self, admin_id: int, activity_type: str, now: datetime):
        self.db.execute(
            "INSERT INTO login_logs (admin_id, activity_type, timestamp) VALUES (?, ?, ?)",
            (admin_id, activity_type, now.isoformat(timespec="seconds")),
        )

    def logins_by_role(self, since: datetime) -> List[Dict[str, Any]]:
        return self.db.fetch_all(
            "SELECT ad.role AS role, COUNT(*) AS logins "
            "FROM login_logs l JOIN admins ad ON l.admin_id = ad.id "
            "WHERE l.activity_type = 'login' AND l.timestamp >= ? "
            "GROUP BY ad.role ORDER BY ad.role",
            (since.isoformat(timespec="seconds"),),
        )
