"""SQLAlchemy ORM models for the triage and review core.

All models inherit from Base which provides:
- id: UUID primary key
- created_at: Timestamp

Models:
- Symptom, Condition, ConditionSymptom, ConditionAlias, DrugRecommendation (catalog)
- DiagnosisSession, Prescription, AuditLogEntry, EmergencyFlag, ConfidenceLog
- UserRole, Notification
"""

from triage.core.database import Base
from triage.models.catalog import (
    Condition,
    ConditionAlias,
    ConditionSymptom,
    DrugRecommendation,
    Symptom,
)
from triage.models.diagnosis import (
    AuditLogEntry,
    ConfidenceLog,
    DiagnosisSession,
    EmergencyFlag,
    Prescription,
)
from triage.models.user import Notification, UserRole

__all__ = [
    "Base",
    "Symptom",
    "Condition",
    "ConditionSymptom",
    "ConditionAlias",
    "DrugRecommendation",
    "DiagnosisSession",
    "Prescription",
    "AuditLogEntry",
    "EmergencyFlag",
    "ConfidenceLog",
    "UserRole",
    "Notification",
]
