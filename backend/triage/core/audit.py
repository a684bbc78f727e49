"""Audit logging for clinical decisions and security events.

Two layers exist:
- AuditLogEntry rows (see triage.models.diagnosis) are the durable,
  append-only trail of every successful session transition.
- This module emits structured AuditEvent records to the ``audit`` logger
  for everything else worth reconstructing: denied transitions, emergency
  detections, catalog writes.

The ``audit`` logger should be routed to a secure, append-only sink in
production.
"""

import logging
from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field

# Separate audit logger for security-critical events
audit_logger = logging.getLogger("audit")


class AuditAction(str, Enum):
    """Types of auditable actions."""

    # Diagnosis session lifecycle (persisted names)
    DIAGNOSIS_CREATE = "diagnosis_create"
    DIAGNOSIS_CLAIM = "diagnosis_claim"
    DIAGNOSIS_APPROVE = "diagnosis_approve"
    DIAGNOSIS_MODIFY = "diagnosis_modify"
    DIAGNOSIS_REJECT = "diagnosis_reject"

    # Guard failures
    TRANSITION_DENIED = "transition_denied"

    # Emergency short-circuit
    EMERGENCY_FLAG = "emergency_flag"

    # Reference data
    CATALOG_WRITE = "catalog_write"

    # Authentication
    AUTH_SUCCESS = "auth_success"
    AUTH_FAILURE = "auth_failure"


class AuditEvent(BaseModel):
    """Audit event record.

    Contains all relevant context for an auditable action.
    """

    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    action: AuditAction = Field(..., description="Type of action performed")
    resource_type: str = Field(..., description="Type of resource touched")
    resource_id: str | None = Field(None, description="ID of specific resource")
    patient_id: str | None = Field(None, description="Patient ID if applicable")
    actor_id: str | None = Field(None, description="User who performed action")
    details: dict | None = Field(None, description="Additional context")
    success: bool = Field(True, description="Whether action succeeded")


def log_audit(
    action: AuditAction,
    resource_type: str,
    resource_id: str | None = None,
    patient_id: str | None = None,
    actor_id: str | None = None,
    details: dict | None = None,
    success: bool = True,
) -> AuditEvent:
    """Log an audit event.

    Args:
        action: Type of action being audited
        resource_type: The type of resource being touched
        resource_id: Specific resource identifier
        patient_id: Patient ID if this is patient data
        actor_id: User performing the action
        details: Additional context
        success: Whether the action succeeded

    Returns:
        The created AuditEvent
    """
    event = AuditEvent(
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        patient_id=patient_id,
        actor_id=actor_id,
        details=details,
        success=success,
    )

    log_level = logging.INFO if success else logging.WARNING
    audit_logger.log(
        log_level,
        f"AUDIT: {action.value} {resource_type}"
        f"{f'/{resource_id}' if resource_id else ''}"
        f"{f' actor={actor_id}' if actor_id else ''}"
        f" success={success}",
        extra={"audit_event": event.model_dump()},
    )

    return event


def log_denied_transition(
    session_id: str,
    action: str,
    actor_id: str,
    reason: str,
) -> AuditEvent:
    """Log a transition attempt that failed its guard.

    Successful transitions are persisted as AuditLogEntry rows; denied ones
    leave this trace instead so every clinical decision attempt can be
    reconstructed.
    """
    return log_audit(
        action=AuditAction.TRANSITION_DENIED,
        resource_type="diagnosis_session",
        resource_id=session_id,
        actor_id=actor_id,
        details={"attempted_action": action, "reason": reason},
        success=False,
    )


def log_auth_event(
    success: bool,
    actor_id: str | None = None,
    reason: str | None = None,
) -> AuditEvent:
    """Log an authentication event."""
    action = AuditAction.AUTH_SUCCESS if success else AuditAction.AUTH_FAILURE
    details = {"reason": reason} if reason else None

    return log_audit(
        action=action,
        resource_type="auth",
        actor_id=actor_id,
        details=details,
        success=success,
    )
