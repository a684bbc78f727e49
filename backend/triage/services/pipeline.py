"""Symptom-to-session pipeline and the patient-facing view of a session.

    text -> emergency pre-check -> normalize -> score -> gate
         -> emergency payload (EmergencyFlag only)
          | pending DiagnosisSession (+ ConfidenceLog, AuditLogEntry)
"""

import logging

from triage.core.audit import AuditAction, log_audit
from triage.core.config import settings
from triage.core.errors import AuthorizationError
from triage.schemas.base import RecommendedAction, Role, SessionStatus
from triage.schemas.catalog import ScoredCondition, ScoringResult, SymptomMatch
from triage.schemas.diagnosis import (
    ConfidenceEvaluation,
    DiagnosisOutcome,
    DiagnosisRequest,
    EmergencyResponse,
    PatientDiagnosisView,
    PrescriptionRead,
)
from triage.services.catalog import CatalogReader
from triage.services.confidence_gate import ConfidenceGate, get_confidence_gate
from triage.services.emergency import EmergencyAssessment, EmergencyDetector, get_emergency_detector
from triage.services.normalizer import SymptomNormalizer, validate_symptom_text
from triage.services.roles import RoleDirectory
from triage.services.scorer import ConditionScorer
from triage.services.session_store import DatabaseSessionStore

logger = logging.getLogger(__name__)

NO_SYMPTOMS_MESSAGE = "No matching symptoms found"

TIER_MESSAGES: dict[RecommendedAction, str] = {
    RecommendedAction.PROCEED_WITH_AI_RECOMMENDATION: (
        "Suggested conditions and medication are shown below. "
        "A doctor may still review this diagnosis."
    ),
    RecommendedAction.PROCEED_WITH_DOCTOR_REVIEW: (
        "Your results have been sent to a doctor for review. "
        "Recommendations will be shown once a doctor has reviewed them."
    ),
    RecommendedAction.CONSULT_DOCTOR_DIRECTLY: (
        "We could not reach a confident result. Please consult a doctor directly."
    ),
}

REVIEWED_MESSAGE = "Your diagnosis has been reviewed by a doctor. See your prescription below."
REJECTED_MESSAGE = (
    "Your diagnosis submission has been reviewed. Please book a consultation "
    "with a healthcare provider for further evaluation."
)


def visible_conditions(
    conditions: list[ScoredCondition],
    action: RecommendedAction,
) -> list[ScoredCondition]:
    """Strip what the patient may not see for a gate tier.

    The AI tier shows everything. The review tier shows conditions without
    drug suggestions. The consult tier shows nothing.
    """
    if action == RecommendedAction.PROCEED_WITH_AI_RECOMMENDATION:
        return conditions
    if action == RecommendedAction.PROCEED_WITH_DOCTOR_REVIEW:
        return [c.model_copy(update={"drug_recommendation": None}) for c in conditions]
    return []


class DiagnosisPipeline:
    """Runs one patient submission end to end.

    Each call is independent; the only shared state is read-only catalog
    data and the session store.
    """

    def __init__(
        self,
        reader: CatalogReader,
        store: DatabaseSessionStore,
        gate: ConfidenceGate | None = None,
        detector: EmergencyDetector | None = None,
    ) -> None:
        self._store = store
        self._normalizer = SymptomNormalizer(reader)
        self._scorer = ConditionScorer(reader)
        self._gate = gate or get_confidence_gate()
        self._detector = detector or get_emergency_detector()

    def submit(
        self,
        patient_id: str,
        request: DiagnosisRequest,
    ) -> DiagnosisOutcome | EmergencyResponse:
        """Normalize, score and gate a submission, then persist or short-circuit.

        Raises:
            ValidationError: Malformed or oversized input.
            DependencyError: Catalog or session store unavailable.
        """
        text = validate_symptom_text(request.text, request.locale)

        # Raw text first, so red flags win even without catalog matches
        assessment = self._detector.detect([text])
        if assessment.is_emergency:
            return self._emergency(patient_id, text, assessment)

        matches = self._normalizer.normalize_symptoms(text, request.locale)
        if matches:
            scoring = self._scorer.score_conditions(
                [m.symptom_id for m in matches],
                age=request.age,
                gender=request.gender,
            )
        else:
            scoring = ScoringResult(results=[], message=NO_SYMPTOMS_MESSAGE)

        presenting = [text, *(m.name for m in matches)]
        gate = self._gate.with_threshold(request.confidence_threshold)
        evaluation = gate.evaluate_confidence(scoring.results, presenting)
        if evaluation.emergency:
            assessment = self._detector.detect([*presenting, *(r.name for r in scoring.results)])
            return self._emergency(patient_id, text, assessment)

        session_id = self._persist(patient_id, request, text, matches, scoring, evaluation)
        action = evaluation.recommended_action

        logger.info(
            f"Diagnosis session {session_id} created for patient {patient_id}: "
            f"{len(scoring.results)} conditions, action={action.value}"
        )
        return DiagnosisOutcome(
            session_id=session_id,
            status=SessionStatus.PENDING,
            symptoms=matches,
            results=visible_conditions(scoring.results, action),
            validation=evaluation,
            message=scoring.message or TIER_MESSAGES[action],
        )

    def _persist(
        self,
        patient_id: str,
        request: DiagnosisRequest,
        text: str,
        matches: list[SymptomMatch],
        scoring: ScoringResult,
        evaluation: ConfidenceEvaluation,
    ) -> str:
        validation = evaluation.model_dump(mode="json")
        with self._store.transaction():
            record = self._store.create_session(
                patient_id=patient_id,
                symptoms={
                    "raw_text": text,
                    "locale": request.locale,
                    "matched": [m.model_dump(mode="json") for m in matches],
                },
                conditions=[c.model_dump(mode="json") for c in scoring.results],
                validation=validation,
            )
            self._store.add_confidence_log(record.id, validation, len(scoring.results))
            self._store.add_audit_entry(
                session_id=record.id,
                actor_id=patient_id,
                action=AuditAction.DIAGNOSIS_CREATE.value,
                details={
                    "recommended_action": evaluation.recommended_action.value,
                    "highest_confidence": evaluation.confidence.highest,
                },
            )
            session_id = record.id

        log_audit(
            action=AuditAction.DIAGNOSIS_CREATE,
            resource_type="diagnosis_session",
            resource_id=session_id,
            patient_id=patient_id,
            actor_id=patient_id,
        )
        return session_id

    def _emergency(
        self,
        patient_id: str,
        text: str,
        assessment: EmergencyAssessment,
    ) -> EmergencyResponse:
        severity = assessment.severity or 5
        message = " ".join(assessment.messages)
        with self._store.transaction():
            flag = self._store.add_emergency_flag(
                patient_id=patient_id,
                raw_text=text,
                flags=assessment.flags,
                severity=severity,
                message=message,
            )
            flag_id = flag.id

        log_audit(
            action=AuditAction.EMERGENCY_FLAG,
            resource_type="emergency_flag",
            resource_id=flag_id,
            patient_id=patient_id,
            actor_id=patient_id,
            details={"flags": assessment.flags, "severity": severity},
        )
        logger.warning(f"Emergency detected for patient {patient_id}: {assessment.flags}")

        return EmergencyResponse(
            flags=assessment.flags,
            guidance=assessment.messages,
            severity=severity,
            emergency_numbers=list(settings.emergency_numbers),
            flag_id=flag_id,
        )


def patient_view(
    store: DatabaseSessionStore,
    roles: RoleDirectory,
    session_id: str,
    viewer_id: str,
) -> PatientDiagnosisView:
    """Build what a viewer may see of a session.

    Patients see only their own sessions; doctors and admins see any.

    Raises:
        NotFoundError: Unknown session.
        AuthorizationError: Viewer is neither the patient nor a clinician.
    """
    session = store.get_session(session_id)
    if viewer_id != session.patient_id and roles.get_role(viewer_id) not in (Role.DOCTOR, Role.ADMIN):
        raise AuthorizationError("Not allowed to view this diagnosis")

    status = SessionStatus(session.status)
    evaluation = ConfidenceEvaluation.model_validate(session.validation) if session.validation else None
    action = evaluation.recommended_action if evaluation else None
    conditions = [ScoredCondition.model_validate(c) for c in session.conditions or []]

    if status in (SessionStatus.APPROVED, SessionStatus.MODIFIED):
        prescription = store.get_prescription(session_id)
        shown = [c.model_copy(update={"drug_recommendation": None}) for c in conditions]
        return PatientDiagnosisView(
            session_id=session_id,
            status=status,
            recommended_action=action,
            conditions=[c.model_dump(mode="json") for c in shown],
            recommendations_visible=True,
            prescription=PrescriptionRead.model_validate(prescription) if prescription else None,
            message=REVIEWED_MESSAGE,
        )

    if status == SessionStatus.REJECTED:
        return PatientDiagnosisView(
            session_id=session_id,
            status=status,
            recommended_action=action,
            message=REJECTED_MESSAGE,
        )

    tier = action or RecommendedAction.CONSULT_DOCTOR_DIRECTLY
    return PatientDiagnosisView(
        session_id=session_id,
        status=status,
        recommended_action=action,
        conditions=[c.model_dump(mode="json") for c in visible_conditions(conditions, tier)],
        recommendations_visible=tier == RecommendedAction.PROCEED_WITH_AI_RECOMMENDATION,
        message=TIER_MESSAGES[tier],
    )
