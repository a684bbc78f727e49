"""Confidence gate, diagnosis session and review schemas."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from triage.schemas.base import PrescriptionStatus, RecommendedAction, SessionStatus
from triage.schemas.catalog import ScoredCondition, SymptomMatch


class ConfidenceStats(BaseModel):
    """Confidence statistics over a scored list."""

    highest: float = Field(..., ge=0.0)
    average: float = Field(..., ge=0.0)
    threshold: float = Field(..., ge=0.0, le=1.0)


class ConfidenceEvaluation(BaseModel):
    """Output of the confidence gate."""

    passed: bool
    confidence: ConfidenceStats
    recommended_action: RecommendedAction
    emergency: bool = False
    flags: list[str] = Field(default_factory=list)


class EvaluateRequest(BaseModel):
    """Request body for a standalone confidence evaluation."""

    results: list[ScoredCondition] = Field(default_factory=list)
    presenting_symptoms: list[str] = Field(default_factory=list)
    confidence_threshold: float | None = Field(
        None, ge=0, le=1, description="Overrides the high threshold for this evaluation"
    )


class EmergencyResponse(BaseModel):
    """Payload returned instead of a diagnosis when red flags are present."""

    emergency: Literal[True] = True
    message: str = "EMERGENCY SYMPTOMS DETECTED"
    warning: str = "Please seek immediate medical attention. Do not wait for online diagnosis."
    flags: list[str] = Field(default_factory=list)
    guidance: list[str] = Field(default_factory=list, description="Per-flag instructions")
    severity: int = Field(..., ge=1, le=5)
    emergency_numbers: list[str] = Field(default_factory=list)
    action: str = "seek_emergency_care"
    flag_id: str | None = Field(None, description="Persisted EmergencyFlag record id")


class DiagnosisRequest(BaseModel):
    """Request body for the full symptom-to-session pipeline."""

    text: str = Field(..., description="Free-text symptom description")
    locale: str = Field(default="en")
    age: int | None = Field(None, ge=0, le=150)
    gender: str | None = None
    confidence_threshold: float | None = Field(
        None, ge=0, le=1, description="Overrides the high threshold for this submission"
    )


class DiagnosisOutcome(BaseModel):
    """Result of a non-emergency pipeline run."""

    emergency: Literal[False] = False
    session_id: str
    status: SessionStatus
    symptoms: list[SymptomMatch] = Field(default_factory=list)
    results: list[ScoredCondition] = Field(default_factory=list)
    validation: ConfidenceEvaluation
    message: str | None = None


class Medication(BaseModel):
    """One medication line on a prescription."""

    name: str = Field(..., min_length=1, max_length=200)
    dosage: str = Field(..., min_length=1, max_length=100)
    frequency: str | None = Field(None, max_length=100)
    duration: str | None = Field(None, max_length=50)
    instructions: str | None = Field(None, max_length=500)


class TransitionPayload(BaseModel):
    """Clinician-supplied data accompanying a transition."""

    medications: list[Medication] | None = Field(None, max_length=10)
    doctor_notes: str | None = Field(None, max_length=5000)
    reason: str | None = Field(None, max_length=1000)


class DiagnosisSessionRead(BaseModel):
    """Schema for a persisted diagnosis session."""

    id: str
    patient_id: str
    symptoms: dict
    conditions: list[dict]
    validation: dict
    status: SessionStatus
    doctor_id: str | None = None
    doctor_notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class PrescriptionRead(BaseModel):
    """Schema for a prescription issued through review."""

    id: str
    diagnosis_id: str
    doctor_id: str
    patient_id: str
    medications: list[dict]
    diagnosis_text: str
    instructions: str | None = None
    status: PrescriptionStatus
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class AuditLogEntryRead(BaseModel):
    """Schema for one persisted audit entry."""

    id: str
    diagnosis_id: str
    actor_id: str
    action: str
    details: dict
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class TransitionResult(BaseModel):
    """Outcome of a successful review transition."""

    session: DiagnosisSessionRead
    audit_entry: AuditLogEntryRead
    prescription: PrescriptionRead | None = None


class PatientDiagnosisView(BaseModel):
    """What the patient-facing surface may show for a session.

    Drug suggestions are only included when the gate allowed direct display
    or a clinician has issued a prescription.
    """

    session_id: str
    status: SessionStatus
    recommended_action: RecommendedAction | None = None
    conditions: list[dict] = Field(default_factory=list)
    recommendations_visible: bool = False
    prescription: PrescriptionRead | None = None
    message: str
