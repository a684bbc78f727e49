"""Services for the symptom triage and review core.

Services implement business logic:
- CatalogReader / CatalogAdminService: reference data access and writes
- SymptomNormalizer: free text -> catalog symptoms
- ConditionScorer: symptoms -> ranked conditions (RankScore)
- ConfidenceGate / EmergencyDetector: routing tier and red flags
- ReviewStateMachine: clinician transitions with audit and prescriptions
- DiagnosisPipeline: end-to-end submission
"""

from triage.services.catalog import (
    CachedCatalogReader,
    CatalogAdminService,
    CatalogReader,
    DatabaseCatalogReader,
    build_catalog_reader,
    invalidate_catalog_cache,
    refresh_catalog_cache,
)
from triage.services.confidence_gate import (
    ConfidenceGate,
    get_confidence_gate,
    reset_confidence_gate,
)
from triage.services.emergency import (
    EmergencyDetector,
    get_emergency_detector,
    reset_emergency_detector,
)
from triage.services.normalizer import SymptomNormalizer
from triage.services.notifications import NotificationSender, QueueNotificationSender
from triage.services.pipeline import DiagnosisPipeline, patient_view
from triage.services.review import ReviewStateMachine
from triage.services.roles import DatabaseRoleDirectory, RoleDirectory
from triage.services.scorer import ConditionScorer
from triage.services.session_store import DatabaseSessionStore

__all__ = [
    # Catalog
    "CatalogReader",
    "DatabaseCatalogReader",
    "CachedCatalogReader",
    "CatalogAdminService",
    "build_catalog_reader",
    "invalidate_catalog_cache",
    "refresh_catalog_cache",
    # Inference
    "SymptomNormalizer",
    "ConditionScorer",
    "ConfidenceGate",
    "get_confidence_gate",
    "reset_confidence_gate",
    "EmergencyDetector",
    "get_emergency_detector",
    "reset_emergency_detector",
    # Review
    "DatabaseSessionStore",
    "RoleDirectory",
    "DatabaseRoleDirectory",
    "NotificationSender",
    "QueueNotificationSender",
    "ReviewStateMachine",
    # Pipeline
    "DiagnosisPipeline",
    "patient_view",
]
