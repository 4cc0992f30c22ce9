"""SQLite persistence for the singleton fasting-state record."""

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Mapping

import structlog

from ..errors import PersistenceError

logger = structlog.get_logger(__name__)

RECORD_ID = 1
RECORD_FIELDS = (
    "is_fasting",
    "start_time_millis",
    "fasting_goal_id",
    "last_updated_millis",
)

RecordTransform = Callable[[Mapping[str, Any]], Mapping[str, Any]]


class SessionStore:
    """
    SQLite-backed key-value record holding the fasting session.

    The table holds at most one row. Values are returned raw, without type
    coercion, so the caller can decide per field how to recover from a bad
    value. Writes always replace the whole row inside one transaction.
    """

    def __init__(self, db_path: str = "fasting_state.db"):
        self.db_path = Path(db_path)
        self.logger = logger.bind(db_path=str(self.db_path))
        self._lock = threading.Lock()

        self._init_database()

    def _init_database(self) -> None:
        """Initialize database schema."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        with self._get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS fasting_state (
                    id INTEGER PRIMARY KEY CHECK (id = 1),
                    is_fasting INTEGER,
                    start_time_millis INTEGER,
                    fasting_goal_id TEXT,
                    last_updated_millis INTEGER
                )
            """)
            conn.commit()

    @contextmanager
    def _get_connection(self):
        """Get database connection with proper error handling."""
        conn = None
        try:
            conn = sqlite3.connect(self.db_path, timeout=30.0, isolation_level=None)
            conn.row_factory = sqlite3.Row
            yield conn
        except sqlite3.Error as e:
            if conn is not None and conn.in_transaction:
                conn.rollback()
            self.logger.error("Database error", error=str(e))
            raise
        finally:
            if conn is not None:
                conn.close()

    def read_record(self) -> Mapping[str, Any]:
        """
        Read the raw record.

        Returns:
            Mapping of the stored columns; empty when no record has been
            written yet (the caller applies defaults).

        Raises:
            sqlite3.Error: when the database cannot be read; callers treat
                ``sqlite3.OperationalError`` as transient.
        """
        with self._lock:
            with self._get_connection() as conn:
                return self._select(conn)

    def edit(self, transform: RecordTransform) -> Mapping[str, Any]:
        """
        Transactional read-modify-write of the whole record.

        Args:
            transform: Receives the current raw record and returns the complete
                new record. Exceptions raised by it abort the transaction and
                leave the stored record untouched.

        Returns:
            The record as written.

        Raises:
            PersistenceError: when the database write fails.
        """
        with self._lock:
            try:
                with self._get_connection() as conn:
                    conn.execute("BEGIN IMMEDIATE")
                    try:
                        current = self._select(conn)
                        updated = dict(transform(current))
                        missing = [f for f in RECORD_FIELDS if f not in updated]
                        if missing:
                            raise ValueError(f"Record is missing fields: {missing}")

                        conn.execute("""
                            INSERT OR REPLACE INTO fasting_state (
                                id, is_fasting, start_time_millis,
                                fasting_goal_id, last_updated_millis
                            ) VALUES (?, ?, ?, ?, ?)
                        """, (
                            RECORD_ID,
                            int(bool(updated["is_fasting"])),
                            int(updated["start_time_millis"]),
                            str(updated["fasting_goal_id"]),
                            int(updated["last_updated_millis"]),
                        ))
                        conn.execute("COMMIT")
                    except BaseException:
                        if conn.in_transaction:
                            conn.execute("ROLLBACK")
                        raise

                    self.logger.debug("Fasting record written", **updated)
                    return updated

            except sqlite3.Error as e:
                raise PersistenceError(
                    f"Failed to write fasting record: {e}",
                    operation="edit",
                    target=str(self.db_path)
                ) from e

    def _select(self, conn: sqlite3.Connection) -> dict[str, Any]:
        row = conn.execute(
            "SELECT * FROM fasting_state WHERE id = ?", (RECORD_ID,)
        ).fetchone()
        if row is None:
            return {}
        return {field: row[field] for field in RECORD_FIELDS}
