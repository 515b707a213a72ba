"""SQLite-backed persistence for users and waitlist signups."""
from __future__ import annotations

import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List, Optional

from .models import User, WaitlistEntry


class StoreError(RuntimeError):
    """Raised when the underlying data store fails unexpectedly."""


class ConflictError(StoreError):
    """Raised when an insert collides with an existing unique value."""


class ValidationError(ValueError):
    """Raised when a required field is missing or empty."""


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def resolve_database_path(env_value: Optional[str]) -> Path:
    """Resolve the on-disk path for the application database."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    base_dir = Path(__file__).resolve().parent.parent / "data"
    return (base_dir / "waitlist.sqlite3").resolve(strict=False)


def _current_timestamp() -> datetime:
    return datetime.now(timezone.utc)


def _serialize_datetime(value: datetime) -> str:
    # Fixed-width so lexical ordering in SQL matches chronological ordering.
    return value.isoformat(timespec="microseconds")


def _parse_datetime(value: str) -> datetime:
    return datetime.fromisoformat(value)


def _generate_user_id() -> str:
    return uuid.uuid4().hex


class Database:
    """Simple wrapper around SQLite for persisting users and the waitlist."""

    def __init__(self, path: Path) -> None:
        _ensure_directory(path)
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _transaction(self, action: str) -> Iterator[sqlite3.Connection]:
        try:
            conn = self._connect()
            try:
                with conn:
                    yield conn
            finally:
                conn.close()
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to {action}") from exc

    def initialize(self) -> None:
        """Create the required tables if they do not already exist."""

        with self._transaction("initialise the database") as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    google_id TEXT NOT NULL UNIQUE,
                    email TEXT,
                    name TEXT,
                    picture TEXT,
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS waitlist (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    email TEXT NOT NULL UNIQUE,
                    created_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_waitlist_created_at ON waitlist(created_at);
                """
            )

    # ------------------------------------------------------------------
    # User management
    # ------------------------------------------------------------------
    def find_or_create_user(
        self,
        google_id: str,
        email: Optional[str],
        name: Optional[str],
        picture: Optional[str],
    ) -> User:
        """Return the user linked to ``google_id``, creating it on first sight.

        The insert is ignored when another request already stored the same
        identity, so concurrent first logins still converge on a single row.
        """

        if not google_id:
            raise ValidationError("External identity id must not be empty")

        with self._transaction("store user") as conn:
            conn.execute(
                """
                INSERT INTO users (id, google_id, email, name, picture, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(google_id) DO NOTHING
                """,
                (
                    _generate_user_id(),
                    google_id,
                    email,
                    name,
                    picture,
                    _serialize_datetime(_current_timestamp()),
                ),
            )
            row = conn.execute(
                "SELECT * FROM users WHERE google_id = ?",
                (google_id,),
            ).fetchone()

        if row is None:
            raise StoreError(f"User for identity {google_id} vanished after insert")
        return self._row_to_user(row)

    def get_user(self, user_id: str) -> Optional[User]:
        with self._transaction("load user") as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def get_user_by_google_id(self, google_id: str) -> Optional[User]:
        with self._transaction("load user") as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE google_id = ?",
                (google_id,),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def list_users(self) -> List[User]:
        with self._transaction("list users") as conn:
            rows = conn.execute("SELECT * FROM users ORDER BY created_at").fetchall()
        return [self._row_to_user(row) for row in rows]

    # ------------------------------------------------------------------
    # Waitlist
    # ------------------------------------------------------------------
    def add_waitlist_entry(self, email: Optional[str]) -> WaitlistEntry:
        """Insert a new waitlist signup.

        Raises :class:`ValidationError` for a blank email and
        :class:`ConflictError` when the email is already on the list.
        """

        normalized = email.strip() if email else ""
        if not normalized:
            raise ValidationError("Email is required")

        created_at = _current_timestamp()
        with self._transaction("add waitlist entry") as conn:
            try:
                conn.execute(
                    "INSERT INTO waitlist (email, created_at) VALUES (?, ?)",
                    (normalized, _serialize_datetime(created_at)),
                )
            except sqlite3.IntegrityError as exc:
                raise ConflictError(f"{normalized} is already on the waitlist") from exc

        return WaitlistEntry(email=normalized, created_at=created_at)

    def list_waitlist_entries(self) -> List[WaitlistEntry]:
        """Return every signup, newest first."""

        with self._transaction("list waitlist entries") as conn:
            rows = conn.execute(
                "SELECT email, created_at FROM waitlist ORDER BY created_at DESC, id DESC"
            ).fetchall()
        return [self._row_to_waitlist_entry(row) for row in rows]

    def count_waitlist_entries(self, email: Optional[str] = None) -> int:
        with self._transaction("count waitlist entries") as conn:
            if email is None:
                row = conn.execute("SELECT COUNT(*) FROM waitlist").fetchone()
            else:
                row = conn.execute(
                    "SELECT COUNT(*) FROM waitlist WHERE email = ?",
                    (email,),
                ).fetchone()
        return int(row[0])

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _row_to_user(self, row: sqlite3.Row) -> User:
        return User(
            id=str(row["id"]),
            google_id=str(row["google_id"]),
            email=row["email"],
            name=row["name"],
            picture=row["picture"],
            created_at=_parse_datetime(str(row["created_at"])),
        )

    def _row_to_waitlist_entry(self, row: sqlite3.Row) -> WaitlistEntry:
        return WaitlistEntry(
            email=str(row["email"]),
            created_at=_parse_datetime(str(row["created_at"])),
        )


__all__ = [
    "ConflictError",
    "Database",
    "StoreError",
    "ValidationError",
    "resolve_database_path",
]
