"""
Database connections for the attendance portal.

Two backends share the same parameterised SQL (written with ``?``
placeholders):

- SQLiteDatabase: sqlite3 file database, default and used by tests
- MySQLDatabase: mysql-connector, for shared deployments

Every operation opens a connection, commits and closes it. Driver errors
are logged and re-raised as DatabaseError; nothing is retried here.
"""
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

import mysql.connector
from mysql.connector import Error as MySQLError
from mysql.connector.constants import ClientFlag

from utils.logger import logger
from .schema import MYSQL_SCHEMA, SQLITE_SCHEMA


class DatabaseError(Exception):
    """Raised when the database rejects or fails an operation."""


class IntegrityError(DatabaseError):
    """Raised when a write violates a unique or foreign key constraint."""


class Database:
    """Common query helpers; subclasses provide connections and dialect bits."""

    dialect = "generic"
    schema: Sequence[str] = ()

    def _connect(self):
        raise NotImplementedError

    def _dict_cursor(self, connection):
        raise NotImplementedError

    def prepare(self, query: str) -> str:
        return query

    def _driver_errors(self):
        raise NotImplementedError

    def _integrity_errors(self):
        raise NotImplementedError

    @contextmanager
    def cursor(self):
        """Yield a dict-row cursor inside a transaction."""
        connection = None
        try:
            connection = self._connect()
            cursor = self._dict_cursor(connection)
            try:
                yield cursor
                connection.commit()
            except self._driver_errors():
                connection.rollback()
                raise
            finally:
                cursor.close()
        except self._integrity_errors() as e:
            logger.warning(f"Constraint violation: {e}")
            raise IntegrityError(str(e)) from e
        except self._driver_errors() as e:
            logger.error(f"Database error: {e}")
            raise DatabaseError(str(e)) from e
        finally:
            if connection is not None:
                connection.close()

    def fetch_all(self, query: str, params: Iterable[Any] = ()) -> List[Dict[str, Any]]:
        with self.cursor() as cursor:
            cursor.execute(self.prepare(query), tuple(params))
            return [dict(row) for row in cursor.fetchall()]

    def fetch_one(self, query: str, params: Iterable[Any] = ()) -> Optional[Dict[str, Any]]:
        rows = self.fetch_all(query, params)
        return rows[0] if rows else None

    def execute(self, query: str, params: Iterable[Any] = ()) -> int:
        """Run a write statement and return the affected row count."""
        with self.cursor() as cursor:
            cursor.execute(self.prepare(query), tuple(params))
            return cursor.rowcount

    def insert(self, query: str, params: Iterable[Any] = ()) -> int:
        """Run an INSERT and return the new row id."""
        with self.cursor() as cursor:
            cursor.execute(self.prepare(query), tuple(params))
            return cursor.lastrowid

    def execute_many(self, query: str, rows: Sequence[Sequence[Any]]) -> int:
        """Run one statement per parameter row in a single transaction."""
        if not rows:
            return 0
        with self.cursor() as cursor:
            prepared = self.prepare(query)
            for params in rows:
                cursor.execute(prepared, tuple(params))
            return len(rows)

    def upsert_clause(self, conflict_columns: Sequence[str], update_columns: Sequence[str]) -> str:
        raise NotImplementedError

    def initialize_schema(self):
        """Create all tables if they do not exist."""
        with self.cursor() as cursor:
            for statement in self.schema:
                cursor.execute(statement)
        logger.info(f"Database schema initialized ({self.dialect})")


class SQLiteDatabase(Database):
    """sqlite3-backed database stored in a single file."""

    dialect = "sqlite"
    schema = SQLITE_SCHEMA

    def __init__(self, path: str):
        self.path = path
        if path != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)

    def _connect(self):
        connection = sqlite3.connect(self.path)
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON")
        return connection

    def _dict_cursor(self, connection):
        return connection.cursor()

    def _driver_errors(self):
        return sqlite3.Error

    def _integrity_errors(self):
        return sqlite3.IntegrityError

    def upsert_clause(self, conflict_columns, update_columns):
        updates = ", ".join(f"{col} = excluded.{col}" for col in update_columns)
        return f"ON CONFLICT ({', '.join(conflict_columns)}) DO UPDATE SET {updates}"


class MySQLDatabase(Database):
    """mysql-connector-backed database."""

    dialect = "mysql"
    schema = MYSQL_SCHEMA

    def __init__(self, host: str = "localhost", port: int = 3306, user: str = "root",
                 password: str = "root", database: str = "attendance_portal"):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.database = database

    def _connect(self):
        return mysql.connector.connect(
            host=self.host,
            port=self.port,
            user=self.user,
            password=self.password,
            database=self.database,
            charset='utf8mb4',
            collation='utf8mb4_unicode_ci',
            client_flags=[ClientFlag.FOUND_ROWS],
        )

    def _dict_cursor(self, connection):
        return connection.cursor(dictionary=True)

    def prepare(self, query: str) -> str:
        return query.replace("?", "%s")

    def _driver_errors(self):
        return MySQLError

    def _integrity_errors(self):
        return mysql.connector.IntegrityError

    def upsert_clause(self, conflict_columns, update_columns):
        updates = ", ".join(f"{col} = VALUES({col})" for col in update_columns)
        return f"ON DUPLICATE KEY UPDATE {updates}"

    def create_database(self):
        """Create the database itself if it doesn't exist."""
        try:
            connection = mysql.connector.connect(
                host=self.host, port=self.port, user=self.user, password=self.password
            )
            cursor = connection.cursor()
            cursor.execute(f"CREATE DATABASE IF NOT EXISTS {self.database}")
            cursor.close()
            connection.close()
        except MySQLError as e:
            logger.error(f"Error creating database {self.database}: {e}")
            raise DatabaseError(str(e)) from e

    def initialize_schema(self):
        self.create_database()
        super().initialize_schema()


def create_database(settings=None) -> Database:
    """Build the configured database backend."""
    if settings is None:
        from utils.config import config
        settings = config.database

    if settings.backend == "mysql":
        return MySQLDatabase(
            host=settings.host,
            port=settings.port,
            user=settings.user,
            password=settings.password,
            database=settings.name,
        )
    return SQLiteDatabase(settings.sqlite_path)
