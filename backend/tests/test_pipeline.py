"""Tests for the end-to-end diagnosis pipeline and patient visibility."""

import pytest
from conftest import ADMIN_ID, DOCTOR_ID, OTHER_PATIENT_ID, PATIENT_ID, FakeNotificationSender
from sqlalchemy import select
from sqlalchemy.orm import Session

from triage.core.errors import AuthorizationError, ValidationError
from triage.models import AuditLogEntry, ConfidenceLog, DiagnosisSession, EmergencyFlag
from triage.schemas.base import RecommendedAction, SessionStatus
from triage.schemas.diagnosis import DiagnosisOutcome, DiagnosisRequest, EmergencyResponse
from triage.services.catalog import DatabaseCatalogReader
from triage.services.confidence_gate import NO_MATCHES_FLAG, ConfidenceGate
from triage.services.emergency import EmergencyDetector, EmergencyPattern
from triage.services.pipeline import (
    NO_SYMPTOMS_MESSAGE,
    REJECTED_MESSAGE,
    DiagnosisPipeline,
    patient_view,
)
from triage.services.review import ReviewStateMachine
from triage.services.roles import DatabaseRoleDirectory
from triage.services.session_store import DatabaseSessionStore


@pytest.fixture
def store(seeded_session: Session) -> DatabaseSessionStore:
    return DatabaseSessionStore(seeded_session)


@pytest.fixture
def pipeline(seeded_session: Session, store: DatabaseSessionStore) -> DiagnosisPipeline:
    return DiagnosisPipeline(DatabaseCatalogReader(seeded_session), store)


def run(pipeline: DiagnosisPipeline, text: str, age: int | None = 25) -> DiagnosisOutcome | EmergencyResponse:
    return pipeline.submit(PATIENT_ID, DiagnosisRequest(text=text, age=age))


class TestTiers:
    """Tests for each confidence tier end to end."""

    def test_ai_tier(self, pipeline: DiagnosisPipeline) -> None:
        """Test a confident result shows conditions and drugs."""
        outcome = run(pipeline, "headache, fever")

        assert isinstance(outcome, DiagnosisOutcome)
        assert outcome.status == SessionStatus.PENDING
        assert [s.name for s in outcome.symptoms] == ["fever", "headache"]
        assert [r.name for r in outcome.results] == ["Influenza", "Migraine", "Common Cold"]
        assert outcome.results[0].probability == pytest.approx(0.75)
        assert outcome.results[1].probability == pytest.approx(0.225)
        assert outcome.results[2].probability == pytest.approx(0.12)
        assert outcome.validation.recommended_action == RecommendedAction.PROCEED_WITH_AI_RECOMMENDATION
        assert outcome.results[0].drug_recommendation.drug_name == "Paracetamol"

    def test_review_tier_withholds_drugs(self, pipeline: DiagnosisPipeline, store: DatabaseSessionStore) -> None:
        """Test the middle tier hides drug suggestions but stores them."""
        outcome = run(pipeline, "runny nose, sneezing")

        assert outcome.validation.recommended_action == RecommendedAction.PROCEED_WITH_DOCTOR_REVIEW
        assert outcome.results[0].name == "Common Cold"
        assert all(r.drug_recommendation is None for r in outcome.results)

        stored = store.get_session(outcome.session_id)
        assert stored.conditions[0]["drug_recommendation"]["drug_name"] == "Paracetamol"

    def test_consult_tier_shows_nothing(self, pipeline: DiagnosisPipeline) -> None:
        """Test low confidence still creates a session but shows no results."""
        outcome = run(pipeline, "burning urination")

        assert outcome.validation.recommended_action == RecommendedAction.CONSULT_DOCTOR_DIRECTLY
        assert outcome.validation.passed is False
        assert outcome.results == []
        assert outcome.session_id

    def test_no_symptoms_creates_consult_session(self, pipeline: DiagnosisPipeline, store: DatabaseSessionStore) -> None:
        """Test unmatched text yields a consult-tier session and a message."""
        outcome = run(pipeline, "xyzzy plugh")

        assert outcome.symptoms == []
        assert outcome.message == NO_SYMPTOMS_MESSAGE
        assert NO_MATCHES_FLAG in outcome.validation.flags
        assert store.get_session(outcome.session_id).status == SessionStatus.PENDING

    def test_alias_only_submission(self, pipeline: DiagnosisPipeline) -> None:
        """Test naming a condition injects its top symptoms."""
        outcome = run(pipeline, "I think I have the flu")

        assert {s.name for s in outcome.symptoms} == {"fever", "headache", "muscle aches"}
        assert outcome.results[0].name == "Influenza"

    def test_invalid_input(self, pipeline: DiagnosisPipeline) -> None:
        """Test blank text never reaches the catalog."""
        with pytest.raises(ValidationError):
            run(pipeline, "   ")


class TestPersistence:
    """Tests for records written by a submission."""

    def test_session_log_and_audit_written(self, pipeline: DiagnosisPipeline, seeded_session: Session) -> None:
        """Test a session, its confidence log and a creation entry are stored."""
        outcome = run(pipeline, "headache, fever")

        session = seeded_session.get(DiagnosisSession, outcome.session_id)
        assert session.patient_id == PATIENT_ID
        assert session.symptoms["raw_text"] == "headache, fever"
        assert len(session.conditions) == 3

        log = seeded_session.execute(
            select(ConfidenceLog).where(ConfidenceLog.diagnosis_session_id == outcome.session_id)
        ).scalar_one()
        assert log.highest_confidence == pytest.approx(0.75)
        assert log.recommended_action == "proceed_with_ai_recommendation"

        entry = seeded_session.execute(
            select(AuditLogEntry).where(AuditLogEntry.diagnosis_id == outcome.session_id)
        ).scalar_one()
        assert entry.action == "diagnosis_create"
        assert entry.actor_id == PATIENT_ID

    def test_stricter_threshold_routes_to_review(
        self, pipeline: DiagnosisPipeline, seeded_session: Session
    ) -> None:
        """Test a per-request threshold above the top score withholds results and is logged."""
        outcome = pipeline.submit(
            PATIENT_ID, DiagnosisRequest(text="headache, fever", age=25, confidence_threshold=0.8)
        )

        assert outcome.validation.recommended_action == RecommendedAction.PROCEED_WITH_DOCTOR_REVIEW
        assert all(r.drug_recommendation is None for r in outcome.results)

        log = seeded_session.execute(
            select(ConfidenceLog).where(ConfidenceLog.diagnosis_session_id == outcome.session_id)
        ).scalar_one()
        assert log.confidence_threshold == pytest.approx(0.8)

    def test_looser_threshold_shows_recommendation(
        self, pipeline: DiagnosisPipeline, seeded_session: Session
    ) -> None:
        """Test a per-request threshold below the top score surfaces the AI tier."""
        outcome = pipeline.submit(
            PATIENT_ID, DiagnosisRequest(text="runny nose, sneezing", confidence_threshold=0.5)
        )

        assert outcome.validation.recommended_action == RecommendedAction.PROCEED_WITH_AI_RECOMMENDATION
        assert outcome.results[0].drug_recommendation.drug_name == "Paracetamol"

        log = seeded_session.execute(
            select(ConfidenceLog).where(ConfidenceLog.diagnosis_session_id == outcome.session_id)
        ).scalar_one()
        assert log.confidence_threshold == pytest.approx(0.5)


class TestEmergency:
    """Tests for the emergency short-circuit."""

    def test_raw_text_emergency(self, pipeline: DiagnosisPipeline, seeded_session: Session) -> None:
        """Test red flags in raw text return an emergency payload only."""
        outcome = run(pipeline, "crushing chest pain and shortness of breath")

        assert isinstance(outcome, EmergencyResponse)
        assert outcome.flags == ["chest_pain_with_dyspnea"]
        assert outcome.severity == 5
        assert outcome.emergency_numbers
        assert seeded_session.execute(select(DiagnosisSession)).scalars().all() == []

        flag = seeded_session.get(EmergencyFlag, outcome.flag_id)
        assert flag.patient_id == PATIENT_ID
        assert flag.flags == ["chest_pain_with_dyspnea"]

    def test_gate_emergency_from_condition_names(self, seeded_session: Session, store: DatabaseSessionStore) -> None:
        """Test red flags found only after scoring still short-circuit."""
        detector = EmergencyDetector(
            [EmergencyPattern(code="influenza_watch", symptoms=("influenza",), message="Go now", severity=4)]
        )
        pipeline = DiagnosisPipeline(
            DatabaseCatalogReader(seeded_session),
            store,
            gate=ConfidenceGate(detector=detector),
            detector=detector,
        )

        outcome = run(pipeline, "headache, fever")

        assert isinstance(outcome, EmergencyResponse)
        assert outcome.flags == ["influenza_watch"]
        assert outcome.severity == 4
        assert seeded_session.execute(select(DiagnosisSession)).scalars().all() == []


class TestPatientView:
    """Tests for what a viewer may see of a session."""

    def test_ai_tier_view(self, pipeline: DiagnosisPipeline, store: DatabaseSessionStore, seeded_session: Session) -> None:
        """Test the patient sees AI-tier drugs."""
        session_id = run(pipeline, "headache, fever").session_id
        view = patient_view(store, DatabaseRoleDirectory(seeded_session), session_id, PATIENT_ID)

        assert view.recommendations_visible is True
        assert view.conditions[0]["drug_recommendation"]["drug_name"] == "Paracetamol"

    def test_review_tier_view(self, pipeline: DiagnosisPipeline, store: DatabaseSessionStore, seeded_session: Session) -> None:
        """Test review-tier drugs stay hidden until a doctor acts."""
        session_id = run(pipeline, "runny nose, sneezing").session_id
        view = patient_view(store, DatabaseRoleDirectory(seeded_session), session_id, PATIENT_ID)

        assert view.recommendations_visible is False
        assert view.conditions
        assert all(c["drug_recommendation"] is None for c in view.conditions)

    def test_approved_view_shows_prescription(
        self, pipeline: DiagnosisPipeline, store: DatabaseSessionStore, seeded_session: Session
    ) -> None:
        """Test an approved session shows the prescription, not AI drugs."""
        roles = DatabaseRoleDirectory(seeded_session)
        session_id = run(pipeline, "runny nose, sneezing").session_id
        ReviewStateMachine(store, roles, FakeNotificationSender()).transition_session(
            session_id, "approve", DOCTOR_ID
        )

        view = patient_view(store, roles, session_id, PATIENT_ID)
        assert view.status == SessionStatus.APPROVED
        assert view.prescription is not None
        assert view.prescription.medications[0]["name"] == "Paracetamol"
        assert all(c["drug_recommendation"] is None for c in view.conditions)

    def test_rejected_view(self, pipeline: DiagnosisPipeline, store: DatabaseSessionStore, seeded_session: Session) -> None:
        """Test a rejected session shows only the consultation message."""
        roles = DatabaseRoleDirectory(seeded_session)
        session_id = run(pipeline, "headache, fever").session_id
        ReviewStateMachine(store, roles, FakeNotificationSender()).transition_session(
            session_id, "reject", DOCTOR_ID, {"reason": "Needs exam"}
        )

        view = patient_view(store, roles, session_id, PATIENT_ID)
        assert view.conditions == []
        assert view.prescription is None
        assert view.message == REJECTED_MESSAGE

    def test_other_patient_refused(self, pipeline: DiagnosisPipeline, store: DatabaseSessionStore, seeded_session: Session) -> None:
        """Test patients cannot view each other's sessions."""
        session_id = run(pipeline, "headache, fever").session_id
        with pytest.raises(AuthorizationError):
            patient_view(store, DatabaseRoleDirectory(seeded_session), session_id, OTHER_PATIENT_ID)

    @pytest.mark.parametrize("viewer", [DOCTOR_ID, ADMIN_ID])
    def test_clinicians_may_view(
        self, pipeline: DiagnosisPipeline, store: DatabaseSessionStore, seeded_session: Session, viewer: str
    ) -> None:
        """Test doctors and admins may view any session."""
        session_id = run(pipeline, "headache, fever").session_id
        view = patient_view(store, DatabaseRoleDirectory(seeded_session), session_id, viewer)
        assert view.session_id == session_id
