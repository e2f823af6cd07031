"""
Attempt Log Module

Audit trail of authentication attempts, stored in SQLite.

One row is written per finished attempt: its outcome, failure reason, the
number of faces detected and how long it took. No image, face region or
other biometric data is ever stored.

Usage:
    from seam.attempt_log import AttemptLog

    log = AttemptLog("storage/attempts.sqlite")
    log.log_attempt(session)
    recent = log.get_attempts(limit=20)
    stats = log.get_stats()
"""

import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from seam.types import AttemptSession, AttemptState

logger = logging.getLogger(__name__)


class AttemptLog:
    """
    SQLite-backed log of authentication attempts.

    Attributes:
        db_path: Path to the SQLite database file (":memory:" is accepted).
    """

    def __init__(self, db_path: str):
        """
        Open (or create) the attempt database.

        Args:
            db_path: Path to SQLite database file.
        """
        self.db_path = db_path
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.Lock()

        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        self._init_database()
        logger.info(f"AttemptLog initialized: db={self.db_path}")

    def _get_connection(self) -> sqlite3.Connection:
        """
        Get or create the SQLite connection.

        Returns:
            SQLite connection with Row factory for dict-like access.
        """
        if self._conn is None:
            # Shared between the event loop and worker threads; writes go through self._lock
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def _init_database(self) -> None:
        conn = self._get_connection()
        with self._lock:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS attempts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    attempt_id TEXT NOT NULL UNIQUE,
                    started_at TEXT NOT NULL,
                    finished_at TEXT,
                    success BOOLEAN NOT NULL,
                    reason TEXT,
                    error_kind TEXT,
                    identity TEXT,
                    face_count INTEGER,
                    processing_time_ms INTEGER
                )
            """)
            conn.commit()
        logger.debug("Database schema initialized")

    def log_attempt(self, session: AttemptSession) -> int:
        """
        Record a finished attempt.

        Args:
            session: A session in a terminal state.

        Returns:
            The log entry ID.

        Raises:
            ValueError: If the session is still in flight.
        """
        if not session.state.is_terminal:
            raise ValueError(f"Attempt {session.id} is not finished (state={session.state.value})")

        conn = self._get_connection()
        with self._lock:
            cursor = conn.execute("""
                INSERT INTO attempts
                (attempt_id, started_at, finished_at, success, reason, error_kind,
                 identity, face_count, processing_time_ms)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                session.id,
                session.started_at.isoformat(),
                session.finished_at.isoformat() if session.finished_at else None,
                session.state == AttemptState.SUCCEEDED,
                session.error_reason,
                session.error_kind.value if session.error_kind else None,
                session.result_identity,
                session.face_count,
                session.processing_time_ms,
            ))
            conn.commit()
            log_id = cursor.lastrowid

        logger.debug(f"Logged attempt: id={log_id}, attempt={session.id}, state={session.state.value}")
        return log_id

    def get_attempts(self, limit: int = 100, success: Optional[bool] = None) -> List[Dict[str, Any]]:
        """
        Get logged attempts, newest first.

        Args:
            limit: Maximum number of entries to return.
            success: Filter on outcome (None returns both).

        Returns:
            List of log entries as dictionaries.
        """
        conn = self._get_connection()
        with self._lock:
            if success is None:
                rows = conn.execute(
                    "SELECT * FROM attempts ORDER BY id DESC LIMIT ?", (limit,)
                ).fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM attempts WHERE success = ? ORDER BY id DESC LIMIT ?",
                    (success, limit),
                ).fetchall()

        return [
            {
                "attempt_id": row["attempt_id"],
                "started_at": row["started_at"],
                "finished_at": row["finished_at"],
                "success": bool(row["success"]),
                "reason": row["reason"],
                "error_kind": row["error_kind"],
                "identity": row["identity"],
                "face_count": row["face_count"],
                "processing_time_ms": row["processing_time_ms"],
            }
            for row in rows
        ]

    def get_stats(self) -> Dict[str, Any]:
        """
        Get aggregate attempt statistics.

        Returns:
            Dictionary with total, successful and failed counts plus a
            per-error-kind breakdown of failures.
        """
        conn = self._get_connection()
        with self._lock:
            total = conn.execute("SELECT COUNT(*) FROM attempts").fetchone()[0]
            successful = conn.execute(
                "SELECT COUNT(*) FROM attempts WHERE success = 1"
            ).fetchone()[0]
            by_kind = conn.execute("""
                SELECT error_kind, COUNT(*) AS n FROM attempts
                WHERE success = 0 GROUP BY error_kind
            """).fetchall()

        return {
            "total_attempts": total,
            "successful_attempts": successful,
            "failed_attempts": total - successful,
            "failures_by_kind": {row["error_kind"]: row["n"] for row in by_kind},
        }

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
                logger.debug("Database connection closed")
