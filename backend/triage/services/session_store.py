"""Persistence for diagnosis sessions and their review artifacts.

All writes go through one SQLAlchemy Session so a review transition
(status update, prescription, audit entry) commits or rolls back as a
unit via ``transaction()``.
"""

import logging
from collections.abc import Generator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from triage.core.database import is_record_id
from triage.core.errors import DependencyError, NotFoundError
from triage.models.diagnosis import (
    AuditLogEntry,
    ConfidenceLog,
    DiagnosisSession,
    EmergencyFlag,
    Prescription,
)
from triage.schemas.base import PrescriptionStatus, SessionStatus

logger = logging.getLogger(__name__)

# Sentinel for "do not constrain doctor_id" in conditional updates
ANY_DOCTOR = object()


class DatabaseSessionStore:
    """Session store over the diagnosis tables.

    Reads always go to the database (no cache) so ownership guards see
    current truth.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    @property
    def db(self) -> Session:
        return self._session

    @contextmanager
    def transaction(self) -> Generator[None, None, None]:
        """Commit on success; roll back on any error.

        Database failures surface as DependencyError; other exceptions
        propagate unchanged after the rollback.
        """
        try:
            yield
            self._session.commit()
        except SQLAlchemyError as e:
            self._session.rollback()
            logger.error(f"Session store transaction failed: {e}")
            raise DependencyError("Session store is unavailable") from e
        except Exception:
            self._session.rollback()
            raise

    def create_session(
        self,
        patient_id: str,
        symptoms: dict,
        conditions: list[dict],
        validation: dict,
    ) -> DiagnosisSession:
        """Stage a new pending session (flushed, not committed)."""
        record = DiagnosisSession(
            patient_id=patient_id,
            symptoms=symptoms,
            conditions=conditions,
            validation=validation,
            status=SessionStatus.PENDING,
            updated_at=datetime.now(UTC),
        )
        self._session.add(record)
        self._session.flush()
        return record

    def get_session(self, session_id: str) -> DiagnosisSession:
        """Read a session, bypassing the identity map.

        Raises:
            NotFoundError: Unknown session id.
            DependencyError: Store unreachable.
        """
        if not is_record_id(session_id):
            raise NotFoundError(f"Diagnosis session {session_id} not found")
        try:
            record = self._session.get(DiagnosisSession, session_id, populate_existing=True)
        except SQLAlchemyError as e:
            raise DependencyError("Session store is unavailable") from e
        if record is None:
            raise NotFoundError(f"Diagnosis session {session_id} not found")
        return record

    def list_sessions(
        self,
        status: SessionStatus | list[SessionStatus] | None = None,
        patient_id: str | None = None,
        limit: int = 50,
    ) -> list[DiagnosisSession]:
        """List sessions in one or more statuses, oldest first."""
        stmt = select(DiagnosisSession).order_by(DiagnosisSession.created_at).limit(limit)
        if isinstance(status, list):
            stmt = stmt.where(DiagnosisSession.status.in_(status))
        elif status is not None:
            stmt = stmt.where(DiagnosisSession.status == status)
        if patient_id is not None:
            stmt = stmt.where(DiagnosisSession.patient_id == patient_id)
        try:
            return list(self._session.execute(stmt).scalars().all())
        except SQLAlchemyError as e:
            raise DependencyError("Session store is unavailable") from e

    def conditional_update(
        self,
        session_id: str,
        expected_status: SessionStatus,
        values: dict[str, Any],
        expected_doctor_id: Any = ANY_DOCTOR,
    ) -> bool:
        """Apply ``values`` only if status (and optionally doctor) still match.

        Returns:
            True if exactly this caller won the update, False if the row
            changed underneath it.
        """
        stmt = (
            update(DiagnosisSession)
            .where(DiagnosisSession.id == session_id)
            .where(DiagnosisSession.status == expected_status)
            .values(**values, updated_at=datetime.now(UTC))
            .execution_options(synchronize_session=False)
        )
        if expected_doctor_id is not ANY_DOCTOR:
            if expected_doctor_id is None:
                stmt = stmt.where(DiagnosisSession.doctor_id.is_(None))
            else:
                stmt = stmt.where(DiagnosisSession.doctor_id == expected_doctor_id)

        result = self._session.execute(stmt)
        return result.rowcount == 1

    def add_prescription(
        self,
        session: DiagnosisSession,
        doctor_id: str,
        medications: list[dict],
        diagnosis_text: str,
        instructions: str | None,
        status: PrescriptionStatus,
    ) -> Prescription:
        prescription = Prescription(
            diagnosis_id=session.id,
            doctor_id=doctor_id,
            patient_id=session.patient_id,
            medications=medications,
            diagnosis_text=diagnosis_text,
            instructions=instructions,
            status=status,
        )
        self._session.add(prescription)
        self._session.flush()
        return prescription

    def add_audit_entry(
        self,
        session_id: str,
        actor_id: str,
        action: str,
        details: dict | None = None,
    ) -> AuditLogEntry:
        entry = AuditLogEntry(
            diagnosis_id=session_id,
            actor_id=actor_id,
            action=action,
            details=details or {},
        )
        self._session.add(entry)
        self._session.flush()
        return entry

    def add_confidence_log(self, session_id: str, validation: dict, conditions_analyzed: int) -> ConfidenceLog:
        confidence = validation["confidence"]
        log = ConfidenceLog(
            diagnosis_session_id=session_id,
            conditions_analyzed=conditions_analyzed,
            highest_confidence=confidence["highest"],
            average_confidence=confidence["average"],
            confidence_threshold=confidence["threshold"],
            passed_threshold=validation["passed"],
            recommended_action=validation["recommended_action"],
            override_reason=None if validation["passed"] else "Below confidence threshold",
        )
        self._session.add(log)
        self._session.flush()
        return log

    def add_emergency_flag(
        self,
        patient_id: str,
        raw_text: str,
        flags: list[str],
        severity: int,
        message: str,
    ) -> EmergencyFlag:
        record = EmergencyFlag(
            patient_id=patient_id,
            raw_text=raw_text,
            flags=flags,
            severity=severity,
            message=message,
        )
        self._session.add(record)
        self._session.flush()
        return record

    def get_prescription(self, session_id: str) -> Prescription | None:
        stmt = (
            select(Prescription)
            .where(Prescription.diagnosis_id == session_id)
            .order_by(Prescription.created_at.desc())
            .limit(1)
        )
        try:
            return self._session.execute(stmt).scalars().first()
        except SQLAlchemyError as e:
            raise DependencyError("Session store is unavailable") from e

    def list_audit_entries(self, session_id: str) -> list[AuditLogEntry]:
        stmt = (
            select(AuditLogEntry)
            .where(AuditLogEntry.diagnosis_id == session_id)
            .order_by(AuditLogEntry.created_at)
        )
        try:
            return list(self._session.execute(stmt).scalars().all())
        except SQLAlchemyError as e:
            raise DependencyError("Session store is unavailable") from e
