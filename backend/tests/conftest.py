"""Pytest configuration and fixtures for backend tests."""

from collections.abc import AsyncGenerator, Generator
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from triage.api.deps import get_notification_sender
from triage.core.database import Base, get_session
from triage.main import app
from triage.schemas.base import NotificationType, Role
from triage.scripts.seed_catalog import load_catalog_fixture, seed_catalog
from triage.services.catalog import (
    AliasRecord,
    CatalogReader,
    ConditionLink,
    ConditionRecord,
    DrugRecord,
    SymptomRecord,
    WeightedSymptom,
)
from triage.services.confidence_gate import reset_confidence_gate
from triage.services.emergency import reset_emergency_detector
from triage.services.notifications import NotificationSender
from triage.services.roles import DatabaseRoleDirectory

PATIENT_ID = "patient-1"
OTHER_PATIENT_ID = "patient-2"
DOCTOR_ID = "doctor-1"
OTHER_DOCTOR_ID = "doctor-2"
ADMIN_ID = "admin-1"

# One in-memory database shared across threads (TestClient runs sync
# dependencies in a worker thread)
_test_engine = create_engine(
    "sqlite:///:memory:",
    echo=False,
    future=True,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
_TestSession = sessionmaker(
    bind=_test_engine,
    autoflush=False,
    expire_on_commit=False,
)


@pytest.fixture(autouse=True)
def reset_singletons() -> Generator[None, None, None]:
    """Rebuild the gate and detector from settings for every test."""
    reset_confidence_gate()
    reset_emergency_detector()
    yield
    reset_confidence_gate()
    reset_emergency_detector()


@pytest.fixture
def db_session() -> Generator[Session, None, None]:
    """Create a database session with all tables on a fresh schema."""
    Base.metadata.create_all(bind=_test_engine)
    session = _TestSession()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=_test_engine)


@pytest.fixture
def catalog_data() -> dict:
    """Symptom catalog fixture data."""
    return load_catalog_fixture()


@pytest.fixture
def seeded_session(db_session: Session, catalog_data: dict) -> Session:
    """Database session with the catalog fixture and user roles loaded."""
    seed_catalog(db_session, catalog_data)

    roles = DatabaseRoleDirectory(db_session)
    roles.assign_role(PATIENT_ID, Role.PATIENT)
    roles.assign_role(OTHER_PATIENT_ID, Role.PATIENT)
    roles.assign_role(DOCTOR_ID, Role.DOCTOR)
    roles.assign_role(OTHER_DOCTOR_ID, Role.DOCTOR)
    roles.assign_role(ADMIN_ID, Role.ADMIN)
    db_session.commit()
    return db_session


class FakeNotificationSender(NotificationSender):
    """Records notifications instead of enqueueing them."""

    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []

    def notify(
        self,
        user_id: str,
        type: NotificationType,
        title: str,
        message: str,
        payload: dict | None = None,
    ) -> None:
        self.sent.append(
            {
                "user_id": user_id,
                "type": type,
                "title": title,
                "message": message,
                "payload": payload or {},
            }
        )


@pytest.fixture
def notifier() -> FakeNotificationSender:
    return FakeNotificationSender()


class FakeCatalogReader(CatalogReader):
    """In-memory catalog for unit tests.

    Args:
        symptoms: symptom id -> name
        conditions: ConditionRecord list
        links: (condition_id, symptom_id, weight) tuples
        aliases: (condition_id, alias) tuples
        drugs: condition id -> DrugRecord
    """

    def __init__(
        self,
        symptoms: dict[str, str] | None = None,
        conditions: list[ConditionRecord] | None = None,
        links: list[tuple[str, str, float]] | None = None,
        aliases: list[tuple[str, str]] | None = None,
        drugs: dict[str, DrugRecord] | None = None,
    ) -> None:
        self.symptoms = symptoms or {}
        self.conditions = {c.id: c for c in conditions or []}
        self.links = links or []
        self.aliases = aliases or []
        self.drugs = drugs or {}
        self.calls: list[str] = []

    def list_symptoms(self) -> list[SymptomRecord]:
        self.calls.append("list_symptoms")
        return [SymptomRecord(id=sid, name=name) for sid, name in self.symptoms.items()]

    def get_condition_links(self, symptom_ids: list[str]) -> list[ConditionLink]:
        self.calls.append("get_condition_links")
        result = []
        for condition_id, symptom_id, weight in self.links:
            if symptom_id not in symptom_ids:
                continue
            condition = self.conditions[condition_id]
            result.append(
                ConditionLink(
                    condition_id=condition.id,
                    condition_name=condition.name,
                    description=condition.description,
                    prevalence=condition.prevalence,
                    is_rare=condition.is_rare,
                    symptom_id=symptom_id,
                    weight=weight,
                )
            )
        return result

    def get_condition(self, condition_id: str) -> ConditionRecord | None:
        self.calls.append("get_condition")
        return self.conditions.get(condition_id)

    def get_top_symptoms(self, condition_id: str, limit: int = 3) -> list[WeightedSymptom]:
        self.calls.append("get_top_symptoms")
        linked = [
            WeightedSymptom(symptom_id=sid, name=self.symptoms[sid], weight=weight)
            for cid, sid, weight in self.links
            if cid == condition_id
        ]
        linked.sort(key=lambda s: (-s.weight, s.name))
        return linked[:limit]

    def list_aliases(self) -> list[AliasRecord]:
        self.calls.append("list_aliases")
        return [AliasRecord(condition_id=cid, alias=alias) for cid, alias in self.aliases]

    def get_primary_drug(self, condition_id: str) -> DrugRecord | None:
        self.calls.append("get_primary_drug")
        return self.drugs.get(condition_id)


class FakeRedis:
    """Dict-backed stand-in for the few Redis commands the cache uses."""

    def __init__(self) -> None:
        self.store: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self.store.get(key)

    def set(self, key: str, value: str, ex: int | None = None) -> bool:
        self.store[key] = value
        return True

    def incr(self, key: str) -> int:
        value = int(self.store.get(key, "0")) + 1
        self.store[key] = str(value)
        return value

    def ping(self) -> bool:
        return True


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
async def client(
    seeded_session: Session,
    notifier: FakeNotificationSender,
) -> AsyncGenerator[AsyncClient, None]:
    """Create async test client bound to the seeded test database."""

    def override_get_session() -> Generator[Session, None, None]:
        yield seeded_session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_notification_sender] = lambda: notifier

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    # Clean up overrides
    app.dependency_overrides.clear()


def actor(user_id: str) -> dict[str, str]:
    """Headers identifying the acting user."""
    return {"X-Actor-Id": user_id}
