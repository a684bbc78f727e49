"""Tests for diagnosis submission and review endpoints."""

import pytest
from conftest import ADMIN_ID, DOCTOR_ID, OTHER_DOCTOR_ID, OTHER_PATIENT_ID, PATIENT_ID, FakeNotificationSender, actor
from httpx import AsyncClient

BASE = "/api/v1/diagnosis"
MISSING_ID = "00000000-0000-0000-0000-000000000000"


async def submit(client: AsyncClient, text: str = "headache, fever") -> dict:
    response = await client.post(BASE, json={"text": text, "age": 25}, headers=actor(PATIENT_ID))
    assert response.status_code == 201
    return response.json()


class TestSubmitDiagnosis:
    """Tests for POST /diagnosis."""

    @pytest.mark.asyncio
    async def test_submit_creates_session(self, client: AsyncClient) -> None:
        """Test a submission returns a pending session."""
        data = await submit(client)
        assert data["emergency"] is False
        assert data["status"] == "pending"
        assert data["results"][0]["name"] == "Influenza"
        assert data["validation"]["recommended_action"] == "proceed_with_ai_recommendation"

    @pytest.mark.asyncio
    async def test_emergency_payload(self, client: AsyncClient) -> None:
        """Test red flags return the emergency payload."""
        data = await submit(client, "chest pain and shortness of breath")
        assert data["emergency"] is True
        assert data["action"] == "seek_emergency_care"
        assert data["flags"] == ["chest_pain_with_dyspnea"]
        assert "session_id" not in data

    @pytest.mark.asyncio
    async def test_missing_actor_401(self, client: AsyncClient) -> None:
        """Test submissions need an acting user."""
        response = await client.post(BASE, json={"text": "fever"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_blank_text_400(self, client: AsyncClient) -> None:
        """Test blank text maps to 400 with a structured detail."""
        response = await client.post(BASE, json={"text": "   "}, headers=actor(PATIENT_ID))
        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "ValidationError"

    @pytest.mark.asyncio
    async def test_age_out_of_range_422(self, client: AsyncClient) -> None:
        """Test schema validation rejects impossible ages."""
        response = await client.post(BASE, json={"text": "fever", "age": 200}, headers=actor(PATIENT_ID))
        assert response.status_code == 422


class TestViewDiagnosis:
    """Tests for GET /diagnosis/{id} and the audit trail."""

    @pytest.mark.asyncio
    async def test_patient_views_own_session(self, client: AsyncClient) -> None:
        """Test the patient sees their session."""
        session_id = (await submit(client))["session_id"]
        response = await client.get(f"{BASE}/{session_id}", headers=actor(PATIENT_ID))
        assert response.status_code == 200
        assert response.json()["recommendations_visible"] is True

    @pytest.mark.asyncio
    async def test_other_patient_403(self, client: AsyncClient) -> None:
        """Test other patients are refused."""
        session_id = (await submit(client))["session_id"]
        response = await client.get(f"{BASE}/{session_id}", headers=actor(OTHER_PATIENT_ID))
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_unknown_session_404(self, client: AsyncClient) -> None:
        """Test unknown and malformed ids are 404."""
        for session_id in (MISSING_ID, "not-a-uuid"):
            response = await client.get(f"{BASE}/{session_id}", headers=actor(PATIENT_ID))
            assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_audit_trail(self, client: AsyncClient) -> None:
        """Test clinicians read every recorded entry; patients cannot."""
        session_id = (await submit(client))["session_id"]
        await client.post(f"{BASE}/{session_id}/claim", headers=actor(DOCTOR_ID))

        response = await client.get(f"{BASE}/{session_id}/audit", headers=actor(ADMIN_ID))
        assert response.status_code == 200
        assert {e["action"] for e in response.json()} == {"diagnosis_create", "diagnosis_claim"}

        response = await client.get(f"{BASE}/{session_id}/audit", headers=actor(PATIENT_ID))
        assert response.status_code == 403


class TestReviewQueue:
    """Tests for GET /diagnosis/pending."""

    @pytest.mark.asyncio
    async def test_pending_listing(self, client: AsyncClient) -> None:
        """Test claimed sessions are listed only on request."""
        first = (await submit(client))["session_id"]
        second = (await submit(client, "runny nose, sneezing"))["session_id"]
        await client.post(f"{BASE}/{first}/claim", headers=actor(DOCTOR_ID))

        response = await client.get(f"{BASE}/pending", headers=actor(DOCTOR_ID))
        assert [s["id"] for s in response.json()] == [second]

        response = await client.get(f"{BASE}/pending?include_claimed=true", headers=actor(DOCTOR_ID))
        assert {s["id"] for s in response.json()} == {first, second}

    @pytest.mark.asyncio
    async def test_limit_covers_claimed_sessions(self, client: AsyncClient) -> None:
        """Test the limit bounds the combined pending and claimed listing."""
        claimed = (await submit(client))["session_id"]
        await submit(client, "runny nose, sneezing")
        await submit(client, "burning urination")
        await client.post(f"{BASE}/{claimed}/claim", headers=actor(DOCTOR_ID))

        response = await client.get(
            f"{BASE}/pending?include_claimed=true&limit=2", headers=actor(DOCTOR_ID)
        )
        assert response.status_code == 200
        assert len(response.json()) == 2

    @pytest.mark.asyncio
    async def test_patients_cannot_list(self, client: AsyncClient) -> None:
        """Test the review queue is clinician-only."""
        response = await client.get(f"{BASE}/pending", headers=actor(PATIENT_ID))
        assert response.status_code == 403


class TestTransitions:
    """Tests for POST /diagnosis/{id}/{action}."""

    @pytest.mark.asyncio
    async def test_claim_then_approve(self, client: AsyncClient, notifier: FakeNotificationSender) -> None:
        """Test the happy path notifies the patient once."""
        session_id = (await submit(client))["session_id"]

        response = await client.post(f"{BASE}/{session_id}/claim", headers=actor(DOCTOR_ID))
        assert response.status_code == 200
        assert response.json()["session"]["status"] == "under_review"

        response = await client.post(
            f"{BASE}/{session_id}/approve",
            json={"doctor_notes": "Rest and fluids"},
            headers=actor(DOCTOR_ID),
        )
        assert response.status_code == 200
        data = response.json()
        assert data["session"]["status"] == "approved"
        assert data["prescription"]["status"] == "approved"
        assert len(notifier.sent) == 1

        view = (await client.get(f"{BASE}/{session_id}", headers=actor(PATIENT_ID))).json()
        assert view["prescription"]["id"] == data["prescription"]["id"]

    @pytest.mark.asyncio
    async def test_conflict_409(self, client: AsyncClient) -> None:
        """Test a second claimant gets a conflict."""
        session_id = (await submit(client))["session_id"]
        await client.post(f"{BASE}/{session_id}/claim", headers=actor(DOCTOR_ID))

        response = await client.post(f"{BASE}/{session_id}/claim", headers=actor(OTHER_DOCTOR_ID))
        assert response.status_code == 409
        assert response.json()["detail"]["error"] == "OwnershipConflictError"

    @pytest.mark.asyncio
    async def test_patient_forbidden(self, client: AsyncClient) -> None:
        """Test patients cannot transition sessions."""
        session_id = (await submit(client))["session_id"]
        response = await client.post(f"{BASE}/{session_id}/claim", headers=actor(PATIENT_ID))
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_reject_without_reason_400(self, client: AsyncClient) -> None:
        """Test reject needs a reason."""
        session_id = (await submit(client))["session_id"]
        response = await client.post(f"{BASE}/{session_id}/reject", json={}, headers=actor(DOCTOR_ID))
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_action_422(self, client: AsyncClient) -> None:
        """Test actions outside the closed set fail path validation."""
        session_id = (await submit(client))["session_id"]
        response = await client.post(f"{BASE}/{session_id}/escalate", headers=actor(DOCTOR_ID))
        assert response.status_code == 422
