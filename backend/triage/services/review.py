"""Clinician review state machine for diagnosis sessions.

    pending --claim--> under_review
    pending | under_review --approve--> approved   (+ prescription)
    pending | under_review --modify---> modified   (+ prescription)
    pending | under_review --reject---> rejected

Terminal states accept nothing. Every successful transition writes its
status update, optional prescription and one AuditLogEntry in a single
transaction; the patient is notified only after that commits.

Concurrent transitions are serialized with an optimistic conditional
update on (status, doctor_id): of two doctors claiming the same pending
session, exactly one update matches and the other gets
OwnershipConflictError.
"""

import logging
import re

from pydantic import ValidationError as PydanticValidationError

from triage.core.audit import AuditAction, log_audit, log_denied_transition
from triage.core.errors import (
    AuthorizationError,
    InvalidStateError,
    OwnershipConflictError,
    ValidationError,
)
from triage.models.diagnosis import DiagnosisSession
from triage.schemas.base import PrescriptionStatus, ReviewAction, SessionStatus
from triage.schemas.diagnosis import (
    AuditLogEntryRead,
    DiagnosisSessionRead,
    Medication,
    PrescriptionRead,
    TransitionPayload,
    TransitionResult,
)
from triage.services.notifications import NotificationSender, build_review_message
from triage.services.roles import RoleDirectory
from triage.services.session_store import DatabaseSessionStore

logger = logging.getLogger(__name__)

# action -> (allowed source states, target state)
TRANSITIONS: dict[ReviewAction, tuple[frozenset[SessionStatus], SessionStatus]] = {
    ReviewAction.CLAIM: (frozenset({SessionStatus.PENDING}), SessionStatus.UNDER_REVIEW),
    ReviewAction.APPROVE: (
        frozenset({SessionStatus.PENDING, SessionStatus.UNDER_REVIEW}),
        SessionStatus.APPROVED,
    ),
    ReviewAction.MODIFY: (
        frozenset({SessionStatus.PENDING, SessionStatus.UNDER_REVIEW}),
        SessionStatus.MODIFIED,
    ),
    ReviewAction.REJECT: (
        frozenset({SessionStatus.PENDING, SessionStatus.UNDER_REVIEW}),
        SessionStatus.REJECTED,
    ),
}

AUDIT_ACTIONS: dict[ReviewAction, AuditAction] = {
    ReviewAction.CLAIM: AuditAction.DIAGNOSIS_CLAIM,
    ReviewAction.APPROVE: AuditAction.DIAGNOSIS_APPROVE,
    ReviewAction.MODIFY: AuditAction.DIAGNOSIS_MODIFY,
    ReviewAction.REJECT: AuditAction.DIAGNOSIS_REJECT,
}

MAX_NOTES_LENGTH = 5000
_ANGLE_BRACKETS = re.compile(r"[<>]")


def sanitize_notes(notes: str | None) -> str | None:
    """Trim clinician notes and strip markup characters."""
    if notes is None:
        return None
    cleaned = _ANGLE_BRACKETS.sub("", notes.strip())[:MAX_NOTES_LENGTH]
    return cleaned or None


def suggested_medications(session: DiagnosisSession) -> list[Medication]:
    """Medications the scorer suggested for a session, placeholders excluded."""
    medications: list[Medication] = []
    for condition in session.conditions or []:
        drug = condition.get("drug_recommendation")
        if not drug or drug.get("is_placeholder"):
            continue
        medications.append(
            Medication(
                name=drug["drug_name"],
                dosage=drug["dosage"],
                frequency=drug.get("frequency"),
                duration=drug.get("duration"),
                instructions=drug.get("notes"),
            )
        )
    return medications


def condition_names(session: DiagnosisSession) -> list[str]:
    return [c["name"] for c in session.conditions or [] if c.get("name")]


class ReviewStateMachine:
    """Applies clinician transitions to diagnosis sessions.

    Usage:
        machine = ReviewStateMachine(store, roles, notifier)
        result = machine.transition_session(session_id, "claim", doctor_id)
    """

    def __init__(
        self,
        store: DatabaseSessionStore,
        roles: RoleDirectory,
        notifier: NotificationSender,
    ) -> None:
        self._store = store
        self._roles = roles
        self._notifier = notifier

    def transition_session(
        self,
        session_id: str,
        action: ReviewAction | str,
        actor_id: str,
        payload: TransitionPayload | dict | None = None,
    ) -> TransitionResult:
        """Apply one transition and return the updated session and its audit entry.

        Raises:
            ValidationError: Unknown action or missing/invalid payload.
            AuthorizationError: Actor is not a doctor.
            NotFoundError: Unknown session.
            InvalidStateError: Session is terminal or not in a source state.
            OwnershipConflictError: Another doctor owns or won the session.
            DependencyError: The store failed; nothing was committed.
        """
        try:
            return self._transition(session_id, action, actor_id, payload)
        except (AuthorizationError, InvalidStateError, ValidationError) as e:
            log_denied_transition(
                session_id=session_id,
                action=str(getattr(action, "value", action)),
                actor_id=actor_id,
                reason=e.message,
            )
            raise

    def _transition(
        self,
        session_id: str,
        action: ReviewAction | str,
        actor_id: str,
        payload: TransitionPayload | dict | None,
    ) -> TransitionResult:
        action = self._parse_action(action)
        payload = self._parse_payload(payload)

        if not self._roles.is_doctor(actor_id):
            raise AuthorizationError(
                f"Only doctors may {action.value} a diagnosis",
                details={"actor_id": actor_id},
            )

        session = self._store.get_session(session_id)
        current = SessionStatus(session.status)
        self._check_state(session, current, action, actor_id)

        notes = sanitize_notes(payload.doctor_notes)
        medications = self._medications_for(action, session, payload)
        if action == ReviewAction.REJECT and not (payload.reason and payload.reason.strip()):
            raise ValidationError("A reason is required to reject a diagnosis")

        target = TRANSITIONS[action][1]
        values: dict = {"status": target, "doctor_id": actor_id}
        if notes is not None:
            values["doctor_notes"] = notes

        details: dict = {"from_status": current.value, "to_status": target.value}
        if notes:
            details["doctor_notes"] = notes
        if action == ReviewAction.REJECT:
            details["reason"] = payload.reason.strip()

        prescription = None
        with self._store.transaction():
            won = self._store.conditional_update(
                session_id,
                expected_status=current,
                values=values,
                expected_doctor_id=session.doctor_id if current == SessionStatus.UNDER_REVIEW else None,
            )
            if not won:
                raise OwnershipConflictError(
                    "Diagnosis session was changed by another clinician",
                    details={"session_id": session_id},
                )

            if medications is not None:
                prescription = self._store.add_prescription(
                    session,
                    doctor_id=actor_id,
                    medications=[m.model_dump() for m in medications],
                    diagnosis_text=(", ".join(condition_names(session)) or "Unspecified")[:500],
                    instructions=notes,
                    status=PrescriptionStatus(target.value),
                )
                details["prescription_id"] = prescription.id
                details["medication_count"] = len(medications)

            entry = self._store.add_audit_entry(
                session_id=session_id,
                actor_id=actor_id,
                action=AUDIT_ACTIONS[action].value,
                details=details,
            )

        updated = self._store.get_session(session_id)
        log_audit(
            action=AUDIT_ACTIONS[action],
            resource_type="diagnosis_session",
            resource_id=session_id,
            patient_id=updated.patient_id,
            actor_id=actor_id,
            details={"to_status": target.value},
        )
        logger.info(f"Session {session_id}: {current.value} -> {target.value} by {actor_id}")

        if action != ReviewAction.CLAIM:
            self._notify_patient(updated, action, notes)

        return TransitionResult(
            session=DiagnosisSessionRead.model_validate(updated),
            audit_entry=AuditLogEntryRead.model_validate(entry),
            prescription=PrescriptionRead.model_validate(prescription) if prescription else None,
        )

    @staticmethod
    def _parse_action(action: ReviewAction | str) -> ReviewAction:
        try:
            return ReviewAction(action)
        except ValueError:
            raise ValidationError(f"Unknown review action: {action}") from None

    @staticmethod
    def _parse_payload(payload: TransitionPayload | dict | None) -> TransitionPayload:
        if payload is None:
            return TransitionPayload()
        if isinstance(payload, TransitionPayload):
            return payload
        try:
            return TransitionPayload.model_validate(payload)
        except PydanticValidationError as e:
            raise ValidationError(
                "Invalid transition payload",
                details={"errors": e.errors(include_url=False, include_context=False)},
            ) from e

    @staticmethod
    def _check_state(
        session: DiagnosisSession,
        current: SessionStatus,
        action: ReviewAction,
        actor_id: str,
    ) -> None:
        if current.is_terminal:
            raise InvalidStateError(
                f"Diagnosis session is already {current.value}",
                details={"status": current.value},
            )

        if current == SessionStatus.UNDER_REVIEW and session.doctor_id != actor_id:
            raise OwnershipConflictError(
                "Diagnosis session is under review by another clinician",
                details={"status": current.value},
            )

        allowed, _ = TRANSITIONS[action]
        if current not in allowed:
            raise InvalidStateError(
                f"Cannot {action.value} a session that is {current.value}",
                details={"status": current.value},
            )

    @staticmethod
    def _medications_for(
        action: ReviewAction,
        session: DiagnosisSession,
        payload: TransitionPayload,
    ) -> list[Medication] | None:
        if action == ReviewAction.MODIFY:
            if not payload.medications:
                raise ValidationError("Modify requires at least one medication")
            return payload.medications
        if action == ReviewAction.APPROVE:
            medications = payload.medications or suggested_medications(session)
            if not medications:
                raise ValidationError(
                    "No medications to approve; supply medications or use modify"
                )
            return medications
        return None

    def _notify_patient(
        self,
        session: DiagnosisSession,
        action: ReviewAction,
        notes: str | None,
    ) -> None:
        notification_type, title, message = build_review_message(
            action, condition_names(session), notes
        )
        try:
            self._notifier.notify(
                user_id=session.patient_id,
                type=notification_type,
                title=title,
                message=message,
                payload={"diagnosis_session_id": session.id, "status": SessionStatus(session.status).value},
            )
        except Exception as e:
            logger.warning(f"Notification for session {session.id} not sent: {e}")
