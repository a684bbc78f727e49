"""Pydantic schemas for the triage and review core."""

from triage.schemas.base import (
    TERMINAL_STATUSES,
    NotificationType,
    PrescriptionStatus,
    RankScore,
    RecommendedAction,
    ReviewAction,
    Role,
    SessionStatus,
)
from triage.schemas.catalog import (
    DrugSuggestion,
    NormalizeRequest,
    NormalizeResponse,
    ScoredCondition,
    ScoreRequest,
    ScoringResult,
    SymptomMatch,
)
from triage.schemas.diagnosis import (
    AuditLogEntryRead,
    ConfidenceEvaluation,
    ConfidenceStats,
    DiagnosisOutcome,
    DiagnosisRequest,
    DiagnosisSessionRead,
    EmergencyResponse,
    Medication,
    PatientDiagnosisView,
    PrescriptionRead,
    TransitionPayload,
    TransitionResult,
)

__all__ = [
    # Enums and types
    "TERMINAL_STATUSES",
    "NotificationType",
    "PrescriptionStatus",
    "RankScore",
    "RecommendedAction",
    "ReviewAction",
    "Role",
    "SessionStatus",
    # Catalog / scoring
    "DrugSuggestion",
    "NormalizeRequest",
    "NormalizeResponse",
    "ScoredCondition",
    "ScoreRequest",
    "ScoringResult",
    "SymptomMatch",
    # Gate / sessions / review
    "AuditLogEntryRead",
    "ConfidenceEvaluation",
    "ConfidenceStats",
    "DiagnosisOutcome",
    "DiagnosisRequest",
    "DiagnosisSessionRead",
    "EmergencyResponse",
    "Medication",
    "PatientDiagnosisView",
    "PrescriptionRead",
    "TransitionPayload",
    "TransitionResult",
]
