"""
Unit Tests for the Attempt Log Module

Tests the SQLite audit trail:
- Logging finished attempts
- Rejecting in-flight sessions
- Listing with filters
- Aggregate statistics
- Absence of biometric data in the schema

Usage:
    pytest tests/test_attempt_log.py -v
"""

import sqlite3
from datetime import timedelta

import pytest

from conftest import make_detection
from seam.attempt_log import AttemptLog
from seam.errors import ErrorKind
from seam.face_policy import NO_FACE_MESSAGE
from seam.types import AttemptSession, AttemptState, Image


# ============================================================
# Fixtures
# ============================================================

@pytest.fixture
def attempt_log(tmp_path):
    log = AttemptLog(str(tmp_path / "logs" / "attempts.sqlite"))
    yield log
    log.close()


def finished_session(success=True, n_faces=1, kind=None, reason=None):
    session = AttemptSession()
    session.captured_image = Image(data=b"jpeg")
    session.detection_result = make_detection(n_faces)
    session.finished_at = session.started_at + timedelta(milliseconds=250)
    if success:
        session.state = AttemptState.SUCCEEDED
        session.result_identity = "user-42"
    else:
        session.state = AttemptState.FAILED
        session.error_kind = kind
        session.error_reason = reason
        session.error_message = reason
    return session


# ============================================================
# Tests
# ============================================================

class TestAttemptLog:
    """Tests for AttemptLog."""

    def test_creates_parent_directory(self, tmp_path):
        path = tmp_path / "nested" / "dir" / "attempts.sqlite"
        log = AttemptLog(str(path))
        assert path.exists()
        log.close()

    def test_log_success(self, attempt_log):
        session = finished_session()

        log_id = attempt_log.log_attempt(session)

        assert log_id == 1
        entries = attempt_log.get_attempts()
        assert len(entries) == 1
        entry = entries[0]
        assert entry["attempt_id"] == session.id
        assert entry["success"] is True
        assert entry["identity"] == "user-42"
        assert entry["face_count"] == 1
        assert entry["processing_time_ms"] == 250
        assert entry["reason"] is None

    def test_log_failure(self, attempt_log):
        session = finished_session(
            success=False, n_faces=0, kind=ErrorKind.NO_FACE, reason=NO_FACE_MESSAGE,
        )

        attempt_log.log_attempt(session)

        entry = attempt_log.get_attempts()[0]
        assert entry["success"] is False
        assert entry["error_kind"] == "no_face"
        assert entry["reason"] == NO_FACE_MESSAGE
        assert entry["face_count"] == 0
        assert entry["identity"] is None

    def test_in_flight_session_rejected(self, attempt_log):
        session = AttemptSession(state=AttemptState.DETECTING)
        with pytest.raises(ValueError, match="not finished"):
            attempt_log.log_attempt(session)

    def test_duplicate_attempt_id_rejected(self, attempt_log):
        session = finished_session()
        attempt_log.log_attempt(session)
        with pytest.raises(sqlite3.IntegrityError):
            attempt_log.log_attempt(session)

    def test_get_attempts_newest_first_and_filtered(self, attempt_log):
        first = finished_session()
        second = finished_session(success=False, kind=ErrorKind.TIMEOUT, reason="timeout")
        third = finished_session()
        for session in (first, second, third):
            attempt_log.log_attempt(session)

        ids = [e["attempt_id"] for e in attempt_log.get_attempts()]
        assert ids == [third.id, second.id, first.id]

        assert [e["attempt_id"] for e in attempt_log.get_attempts(limit=1)] == [third.id]
        assert [e["attempt_id"] for e in attempt_log.get_attempts(success=False)] == [second.id]
        assert len(attempt_log.get_attempts(success=True)) == 2

    def test_stats(self, attempt_log):
        attempt_log.log_attempt(finished_session())
        attempt_log.log_attempt(finished_session(
            success=False, n_faces=0, kind=ErrorKind.NO_FACE, reason=NO_FACE_MESSAGE))
        attempt_log.log_attempt(finished_session(
            success=False, n_faces=0, kind=ErrorKind.NO_FACE, reason=NO_FACE_MESSAGE))
        attempt_log.log_attempt(finished_session(
            success=False, kind=ErrorKind.IDENTITY_DENIED, reason="identity_denied"))

        stats = attempt_log.get_stats()

        assert stats == {
            "total_attempts": 4,
            "successful_attempts": 1,
            "failed_attempts": 3,
            "failures_by_kind": {"no_face": 2, "identity_denied": 1},
        }

    def test_empty_stats(self):
        log = AttemptLog(":memory:")
        assert log.get_stats()["total_attempts"] == 0
        assert log.get_stats()["failures_by_kind"] == {}
        log.close()

    def test_no_biometric_columns(self, attempt_log):
        conn = attempt_log._get_connection()
        columns = {row["name"] for row in conn.execute("PRAGMA table_info(attempts)")}
        assert not {"image", "bbox", "embedding", "keypoints"} & columns

    def test_persists_across_instances(self, tmp_path):
        path = str(tmp_path / "attempts.sqlite")
        log = AttemptLog(path)
        log.log_attempt(finished_session())
        log.close()

        reopened = AttemptLog(path)
        assert reopened.get_stats()["total_attempts"] == 1
        reopened.close()
