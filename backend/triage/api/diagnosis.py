"""Diagnosis submission and clinician review endpoints."""

import logging
from typing import Annotated

from fastapi import APIRouter, Body, Query, status

from triage.api.deps import Catalog, Notifier, Roles, Store
from triage.api.errors import to_http_exception
from triage.core.errors import AuthorizationError, TriageError
from triage.core.security import ActorId, RequireAuth
from triage.schemas.base import ReviewAction, Role, SessionStatus
from triage.schemas.diagnosis import (
    AuditLogEntryRead,
    DiagnosisOutcome,
    DiagnosisRequest,
    DiagnosisSessionRead,
    EmergencyResponse,
    PatientDiagnosisView,
    TransitionPayload,
    TransitionResult,
)
from triage.services.pipeline import DiagnosisPipeline, patient_view
from triage.services.review import ReviewStateMachine
from triage.services.roles import RoleDirectory

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/diagnosis", tags=["Diagnosis"])


def _require_clinician(roles: RoleDirectory, actor_id: str) -> None:
    if roles.get_role(actor_id) not in (Role.DOCTOR, Role.ADMIN):
        raise AuthorizationError("Clinician role required")


@router.post(
    "",
    response_model=DiagnosisOutcome | EmergencyResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit symptoms",
    description=(
        "Run the full triage pipeline. Returns an emergency payload when red flags "
        "are present, otherwise the pending diagnosis session."
    ),
)
def submit_diagnosis(
    request: DiagnosisRequest,
    reader: Catalog,
    store: Store,
    patient_id: ActorId,
    _auth: RequireAuth,
) -> DiagnosisOutcome | EmergencyResponse:
    logger.info(f"Diagnosis submitted by patient_id={patient_id}")
    try:
        return DiagnosisPipeline(reader, store).submit(patient_id, request)
    except TriageError as e:
        raise to_http_exception(e) from e


@router.get(
    "/pending",
    response_model=list[DiagnosisSessionRead],
    summary="Review queue",
    description="List sessions awaiting clinician review, oldest first.",
)
def list_pending(
    store: Store,
    roles: Roles,
    actor_id: ActorId,
    _auth: RequireAuth,
    include_claimed: Annotated[bool, Query(description="Also list under_review sessions")] = False,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
) -> list[DiagnosisSessionRead]:
    try:
        _require_clinician(roles, actor_id)
        statuses = [SessionStatus.PENDING]
        if include_claimed:
            statuses.append(SessionStatus.UNDER_REVIEW)
        sessions = store.list_sessions(status=statuses, limit=limit)
    except TriageError as e:
        raise to_http_exception(e) from e
    return [DiagnosisSessionRead.model_validate(s) for s in sessions]


@router.get(
    "/{session_id}",
    response_model=PatientDiagnosisView,
    summary="View a diagnosis",
    description="Patient-facing view; drug suggestions are withheld until allowed.",
)
def get_diagnosis(
    session_id: str,
    store: Store,
    roles: Roles,
    actor_id: ActorId,
    _auth: RequireAuth,
) -> PatientDiagnosisView:
    try:
        return patient_view(store, roles, session_id, actor_id)
    except TriageError as e:
        raise to_http_exception(e) from e


@router.get(
    "/{session_id}/audit",
    response_model=list[AuditLogEntryRead],
    summary="Audit trail",
    description="Every recorded event for a session, oldest first.",
)
def get_audit_trail(
    session_id: str,
    store: Store,
    roles: Roles,
    actor_id: ActorId,
    _auth: RequireAuth,
) -> list[AuditLogEntryRead]:
    try:
        _require_clinician(roles, actor_id)
        store.get_session(session_id)
        entries = store.list_audit_entries(session_id)
    except TriageError as e:
        raise to_http_exception(e) from e
    return [AuditLogEntryRead.model_validate(entry) for entry in entries]


@router.post(
    "/{session_id}/{action}",
    response_model=TransitionResult,
    summary="Review transition",
    description="Apply claim, approve, modify or reject to a session.",
)
def transition_diagnosis(
    session_id: str,
    action: ReviewAction,
    store: Store,
    roles: Roles,
    notifier: Notifier,
    actor_id: ActorId,
    _auth: RequireAuth,
    payload: Annotated[TransitionPayload | None, Body()] = None,
) -> TransitionResult:
    machine = ReviewStateMachine(store, roles, notifier)
    try:
        return machine.transition_session(session_id, action, actor_id, payload)
    except TriageError as e:
        raise to_http_exception(e) from e
