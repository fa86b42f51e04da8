"""SQLite history store for defense scores.

Every completed assessment is appended once, keyed by its ``tested_at``
timestamp. History is append-only: there is no update or delete-by-key,
only full erasure with ``clear()``.

Typical usage:
    >>> from holdfast.core.db import HistoryStore
    >>> store = HistoryStore()  # ~/.holdfast/history.db
    >>> store.append(score)
    >>> store.latest() == score
    True

Schema:
    - scores: one row per DefenseScore. ``tested_at`` (integer microseconds
      since the Unix epoch) is the primary key, so ``latest()`` is an index
      lookup rather than a scan.
"""

import sqlite3
from collections.abc import Generator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path

from holdfast.config import DEFAULT_DB_PATH

from .models import DefenseScore

SCHEMA_VERSION = 1


class DuplicateKeyError(sqlite3.IntegrityError):
    """Raised when a score with the same ``tested_at`` is already stored."""

    def __init__(self, tested_at: datetime) -> None:
        super().__init__(f"A score tested at {tested_at.isoformat()} already exists")
        self.tested_at = tested_at


def to_key(tested_at: datetime) -> int:
    """Convert a timestamp to the integer storage key.

    Naive datetimes are treated as UTC.
    """
    if tested_at.tzinfo is None:
        tested_at = tested_at.replace(tzinfo=UTC)
    delta = tested_at - datetime(1970, 1, 1, tzinfo=UTC)
    return (delta.days * 86_400 + delta.seconds) * 1_000_000 + delta.microseconds


@contextmanager
def get_connection(db_path: Path = DEFAULT_DB_PATH) -> Generator[sqlite3.Connection, None, None]:
    """Get a database connection with automatic transaction management.

    Creates the parent directory if needed, commits on success, rolls back
    on any exception and always closes the connection.

    Args:
        db_path: Path to the SQLite database file.

    Yields:
        sqlite3.Connection: Active database connection.

    Raises:
        sqlite3.Error: On database connection or operation failures.
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def init_db(db_path: Path = DEFAULT_DB_PATH) -> None:
    """Create the schema if needed. Safe to call multiple times.

    Args:
        db_path: Path to the SQLite database file.

    Raises:
        sqlite3.Error: On database initialization failures.
    """
    with get_connection(db_path) as conn:
        if conn.execute("PRAGMA user_version").fetchone()[0] < 1:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS scores (
                    tested_at INTEGER PRIMARY KEY,
                    total_score INTEGER NOT NULL,
                    grade TEXT NOT NULL,
                    data TEXT NOT NULL
                )
            """)
            conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")


def _row_to_score(row: sqlite3.Row) -> DefenseScore:
    """Convert a SQLite row to a DefenseScore instance."""
    return DefenseScore.model_validate_json(row["data"])


class HistoryStore:
    """Append-only store of past defense scores.

    Args:
        db_path: Path to the SQLite database file. The schema is created
            on first use.
    """

    def __init__(self, db_path: Path = DEFAULT_DB_PATH) -> None:
        self.db_path = db_path
        init_db(db_path)

    def append(self, score: DefenseScore) -> None:
        """Persist a score keyed by its ``tested_at``.

        Args:
            score: The score to store.

        Raises:
            DuplicateKeyError: If a score with the same ``tested_at`` exists.
                The store is left unchanged.
            sqlite3.Error: On other database failures.
        """
        try:
            with get_connection(self.db_path) as conn:
                conn.execute(
                    "INSERT INTO scores (tested_at, total_score, grade, data) VALUES (?, ?, ?, ?)",
                    (
                        to_key(score.tested_at),
                        score.total_score,
                        score.grade.value,
                        score.model_dump_json(),
                    ),
                )
        except sqlite3.IntegrityError as e:
            raise DuplicateKeyError(score.tested_at) from e

    def latest(self) -> DefenseScore | None:
        """Return the most recent score, or None if the store is empty."""
        with get_connection(self.db_path) as conn:
            row = conn.execute(
                "SELECT data FROM scores ORDER BY tested_at DESC LIMIT 1"
            ).fetchone()
            if row:
                return _row_to_score(row)
            return None

    def all(self) -> list[DefenseScore]:
        """Return every stored score, newest first."""
        with get_connection(self.db_path) as conn:
            rows = conn.execute("SELECT data FROM scores ORDER BY tested_at DESC").fetchall()
            return [_row_to_score(row) for row in rows]

    def count(self) -> int:
        """Return how many scores are stored."""
        with get_connection(self.db_path) as conn:
            return conn.execute("SELECT COUNT(*) FROM scores").fetchone()[0]

    def clear(self) -> int:
        """Delete every stored score.

        Returns:
            Number of scores deleted.
        """
        with get_connection(self.db_path) as conn:
            return conn.execute("DELETE FROM scores").rowcount
