"""Base schemas and enums for the triage and review core."""

from enum import Enum
from typing import NewType

# A ranking heuristic in [0, max prevalence * 1.2]. It is NOT a calibrated
# posterior and does not sum to 1 across conditions.
RankScore = NewType("RankScore", float)


class SessionStatus(str, Enum):
    """Lifecycle status of a diagnosis session."""

    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    MODIFIED = "modified"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        """Terminal states accept no further transitions."""
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {SessionStatus.APPROVED, SessionStatus.MODIFIED, SessionStatus.REJECTED}
)


class ReviewAction(str, Enum):
    """Clinician transitions on a diagnosis session."""

    CLAIM = "claim"
    APPROVE = "approve"
    MODIFY = "modify"
    REJECT = "reject"


class RecommendedAction(str, Enum):
    """Confidence gate routing tiers."""

    PROCEED_WITH_AI_RECOMMENDATION = "proceed_with_ai_recommendation"
    PROCEED_WITH_DOCTOR_REVIEW = "proceed_with_doctor_review"
    CONSULT_DOCTOR_DIRECTLY = "consult_doctor_directly"


class Role(str, Enum):
    """Closed set of platform roles checked at the transition boundary."""

    PATIENT = "patient"
    DOCTOR = "doctor"
    ADMIN = "admin"


class PrescriptionStatus(str, Enum):
    """Status of a prescription issued through review."""

    APPROVED = "approved"
    MODIFIED = "modified"


class NotificationType(str, Enum):
    """Kinds of patient notifications raised by the review flow."""

    DIAGNOSIS_UPDATE = "diagnosis_update"
    CONSULTATION_REQUIRED = "consultation_required"
