"""SQLAlchemy models for diagnosis sessions and their review artifacts."""

from datetime import UTC, datetime

from sqlalchemy import Boolean, DateTime, Enum, Float, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from triage.core.database import Base, JSONDocument
from triage.schemas.base import PrescriptionStatus, SessionStatus


class DiagnosisSession(Base):
    """One patient's symptom submission through scoring and clinical review.

    Mutated only through the review state machine; never deleted.
    ``doctor_id`` is only ever set by a transition out of pending or
    under_review.
    """

    __tablename__ = "diagnosis_sessions"

    patient_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
    )
    # {"raw_text": str, "locale": str, "matched": [SymptomMatch, ...]}
    symptoms: Mapped[dict] = mapped_column(
        JSONDocument,
        nullable=False,
        default=dict,
    )
    # Ranked scorer output (ScoredCondition dumps)
    conditions: Mapped[list] = mapped_column(
        JSONDocument,
        nullable=False,
        default=list,
    )
    # Confidence gate output (ConfidenceEvaluation dump)
    validation: Mapped[dict] = mapped_column(
        JSONDocument,
        nullable=False,
        default=dict,
    )
    status: Mapped[SessionStatus] = mapped_column(
        Enum(
            SessionStatus,
            name="session_status",
            create_constraint=True,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
        default=SessionStatus.PENDING,
        index=True,
    )
    doctor_id: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        index=True,
    )
    doctor_notes: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )

    def __repr__(self) -> str:
        return f"<DiagnosisSession(id={self.id}, patient={self.patient_id}, status={self.status})>"

    @property
    def is_terminal(self) -> bool:
        """Check if the session has reached a final disposition."""
        return SessionStatus(self.status).is_terminal


class Prescription(Base):
    """Prescription issued as a side effect of approve or modify."""

    __tablename__ = "prescriptions"

    diagnosis_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("diagnosis_sessions.id"),
        nullable=False,
        index=True,
    )
    doctor_id: Mapped[str] = mapped_column(String(255), nullable=False)
    patient_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    medications: Mapped[list] = mapped_column(
        JSONDocument,
        nullable=False,
        default=list,
    )
    diagnosis_text: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
    )
    instructions: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[PrescriptionStatus] = mapped_column(
        Enum(
            PrescriptionStatus,
            name="prescription_status",
            create_constraint=True,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Prescription(id={self.id}, diagnosis_id={self.diagnosis_id}, status={self.status})>"


class AuditLogEntry(Base):
    """Append-only record of one session transition."""

    __tablename__ = "audit_log_entries"

    diagnosis_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("diagnosis_sessions.id"),
        nullable=False,
        index=True,
    )
    actor_id: Mapped[str] = mapped_column(String(255), nullable=False)
    action: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    details: Mapped[dict] = mapped_column(
        JSONDocument,
        nullable=False,
        default=dict,
    )

    def __repr__(self) -> str:
        return f"<AuditLogEntry(diagnosis_id={self.diagnosis_id}, action='{self.action}')>"


class EmergencyFlag(Base):
    """Audit record of an emergency short-circuit.

    Written instead of a DiagnosisSession when red-flag symptoms are found.
    """

    __tablename__ = "emergency_flags"

    patient_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    raw_text: Mapped[str] = mapped_column(Text, nullable=False)
    flags: Mapped[list] = mapped_column(JSONDocument, nullable=False, default=list)
    severity: Mapped[int] = mapped_column(Integer, nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)

    def __repr__(self) -> str:
        return f"<EmergencyFlag(patient={self.patient_id}, severity={self.severity})>"


class ConfidenceLog(Base):
    """Confidence gate statistics recorded for every persisted session."""

    __tablename__ = "confidence_logs"

    diagnosis_session_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("diagnosis_sessions.id"),
        nullable=False,
        index=True,
    )
    conditions_analyzed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    highest_confidence: Mapped[float] = mapped_column(Float, nullable=False)
    average_confidence: Mapped[float] = mapped_column(Float, nullable=False)
    confidence_threshold: Mapped[float] = mapped_column(Float, nullable=False)
    passed_threshold: Mapped[bool] = mapped_column(Boolean, nullable=False)
    recommended_action: Mapped[str] = mapped_column(String(50), nullable=False)
    override_reason: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<ConfidenceLog(session={self.diagnosis_session_id}, "
            f"highest={self.highest_confidence}, passed={self.passed_threshold})>"
        )
