"""Core application configuration and utilities."""

from triage.core.audit import AuditAction, AuditEvent, log_audit, log_denied_transition
from triage.core.config import settings
from triage.core.database import Base, get_session
from triage.core.errors import (
    AuthorizationError,
    DependencyError,
    InvalidStateError,
    NotFoundError,
    OwnershipConflictError,
    TriageError,
    ValidationError,
)
from triage.core.security import ActorId, RequireAuth, verify_api_key

__all__ = [
    # Config
    "settings",
    # Database
    "Base",
    "get_session",
    # Security
    "ActorId",
    "RequireAuth",
    "verify_api_key",
    # Audit
    "AuditAction",
    "AuditEvent",
    "log_audit",
    "log_denied_transition",
    # Errors
    "TriageError",
    "ValidationError",
    "DependencyError",
    "AuthorizationError",
    "InvalidStateError",
    "OwnershipConflictError",
    "NotFoundError",
]
