"""
Persistence layer: SQLite or MySQL connections plus per-table repositories.
"""

from .connection import (
    Database,
    DatabaseError,
    IntegrityError,
    MySQLDatabase,
    SQLiteDatabase,
    create_database,
)
from .repositories import (
    AdminRepository,
    AttendanceRepository,
    CourseRepository,
    EventRepository,
    FineReceiptRepository,
    FineRepository,
    SectionRepository,
    SessionRepository,
    StudentRepository,
)

__all__ = [
    'AdminRepository',
    'AttendanceRepository',
    'CourseRepository',
    'Database',
    'DatabaseError',
    'IntegrityError',
    'EventRepository',
    'FineReceiptRepository',
    'FineRepository',
    'MySQLDatabase',
    'SQLiteDatabase',
    'SectionRepository',
    'SessionRepository',
    'StudentRepository',
    'create_database',
]
