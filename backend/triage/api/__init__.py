"""API routers for the symptom triage service."""

from triage.api.catalog import router as catalog_router
from triage.api.diagnosis import router as diagnosis_router
from triage.api.symptoms import router as symptoms_router

__all__ = [
    "catalog_router",
    "diagnosis_router",
    "symptoms_router",
]
