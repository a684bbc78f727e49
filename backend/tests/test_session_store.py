"""Tests for diagnosis session persistence."""

from unittest.mock import MagicMock

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from triage.core.errors import DependencyError, NotFoundError
from triage.models import DiagnosisSession
from triage.schemas.base import SessionStatus
from triage.services.session_store import DatabaseSessionStore

VALIDATION = {
    "passed": True,
    "confidence": {"highest": 0.75, "average": 0.36, "threshold": 0.7},
    "recommended_action": "proceed_with_ai_recommendation",
    "emergency": False,
    "flags": [],
}


@pytest.fixture
def store(db_session: Session) -> DatabaseSessionStore:
    return DatabaseSessionStore(db_session)


def create(store: DatabaseSessionStore, patient_id: str = "patient-1") -> str:
    with store.transaction():
        record = store.create_session(
            patient_id=patient_id,
            symptoms={"raw_text": "headache", "locale": "en", "matched": []},
            conditions=[],
            validation=VALIDATION,
        )
    return record.id


class TestSessionLifecycle:
    """Tests for creating and reading sessions."""

    def test_create_session_pending(self, store: DatabaseSessionStore) -> None:
        """Test new sessions start pending with no doctor."""
        session = store.get_session(create(store))
        assert session.status == SessionStatus.PENDING
        assert session.doctor_id is None
        assert session.is_terminal is False

    def test_get_unknown_session(self, store: DatabaseSessionStore) -> None:
        """Test unknown ids raise NotFoundError."""
        with pytest.raises(NotFoundError):
            store.get_session("00000000-0000-0000-0000-000000000000")

    def test_get_malformed_id(self, store: DatabaseSessionStore) -> None:
        """Test malformed ids are treated as unknown."""
        with pytest.raises(NotFoundError):
            store.get_session("not-a-session")

    def test_list_sessions_filters(self, store: DatabaseSessionStore) -> None:
        """Test listing by status and patient."""
        first = create(store, "patient-1")
        create(store, "patient-2")

        assert len(store.list_sessions(status=SessionStatus.PENDING)) == 2
        assert [s.id for s in store.list_sessions(patient_id="patient-1")] == [first]
        assert store.list_sessions(status=SessionStatus.APPROVED) == []

    def test_list_sessions_multiple_statuses(self, store: DatabaseSessionStore) -> None:
        """Test several statuses share one limit."""
        claimed = create(store, "patient-1")
        create(store, "patient-2")
        create(store, "patient-2")
        with store.transaction():
            store.conditional_update(
                claimed,
                SessionStatus.PENDING,
                {"status": SessionStatus.UNDER_REVIEW, "doctor_id": "doctor-1"},
            )

        statuses = [SessionStatus.PENDING, SessionStatus.UNDER_REVIEW]
        assert len(store.list_sessions(status=statuses)) == 3
        assert len(store.list_sessions(status=statuses, limit=2)) == 2
        assert len(store.list_sessions(status=[SessionStatus.UNDER_REVIEW])) == 1

    def test_confidence_log(self, store: DatabaseSessionStore) -> None:
        """Test the gate statistics are recorded."""
        session_id = create(store)
        with store.transaction():
            log = store.add_confidence_log(session_id, VALIDATION, 3)
        assert log.highest_confidence == 0.75
        assert log.passed_threshold is True
        assert log.override_reason is None


class TestConditionalUpdate:
    """Tests for the optimistic status update."""

    def test_first_writer_wins(self, store: DatabaseSessionStore) -> None:
        """Test only one of two updates expecting pending succeeds."""
        session_id = create(store)
        with store.transaction():
            first = store.conditional_update(
                session_id,
                expected_status=SessionStatus.PENDING,
                values={"status": SessionStatus.UNDER_REVIEW, "doctor_id": "doctor-1"},
                expected_doctor_id=None,
            )
        with store.transaction():
            second = store.conditional_update(
                session_id,
                expected_status=SessionStatus.PENDING,
                values={"status": SessionStatus.UNDER_REVIEW, "doctor_id": "doctor-2"},
                expected_doctor_id=None,
            )

        assert first is True
        assert second is False
        assert store.get_session(session_id).doctor_id == "doctor-1"

    def test_doctor_must_match(self, store: DatabaseSessionStore) -> None:
        """Test an expected doctor id constrains the update."""
        session_id = create(store)
        with store.transaction():
            store.conditional_update(
                session_id,
                SessionStatus.PENDING,
                {"status": SessionStatus.UNDER_REVIEW, "doctor_id": "doctor-1"},
            )
        with store.transaction():
            won = store.conditional_update(
                session_id,
                SessionStatus.UNDER_REVIEW,
                {"status": SessionStatus.APPROVED},
                expected_doctor_id="doctor-2",
            )
        assert won is False
        assert store.get_session(session_id).status == SessionStatus.UNDER_REVIEW


class TestTransaction:
    """Tests for the transaction helper."""

    def test_rollback_on_error(self, store: DatabaseSessionStore, db_session: Session) -> None:
        """Test nothing staged inside a failed transaction survives."""
        with pytest.raises(RuntimeError):
            with store.transaction():
                store.create_session("patient-1", {}, [], VALIDATION)
                raise RuntimeError("boom")

        assert db_session.execute(select(DiagnosisSession)).scalars().all() == []

    def test_database_error_becomes_dependency_error(self) -> None:
        """Test commit failures surface as DependencyError."""
        session = MagicMock()
        session.commit.side_effect = OperationalError("COMMIT", {}, Exception("down"))
        store = DatabaseSessionStore(session)

        with pytest.raises(DependencyError):
            with store.transaction():
                pass
        session.rollback.assert_called_once()
