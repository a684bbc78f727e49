"""Seed script for loading the symptom catalog fixture into the database.

Usage:
    python -m triage.scripts.seed_catalog

Loads symptoms, conditions, weighted condition-symptom links, aliases and
drug recommendations from fixtures/symptom_catalog.json for local
development and testing.
"""

import json
import logging
from pathlib import Path
from typing import Any

from redis import Redis
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from triage.core.config import settings
from triage.core.database import close_db, get_session_factory
from triage.core.redis import get_redis
from triage.models import (
    Condition,
    ConditionAlias,
    ConditionSymptom,
    DrugRecommendation,
    Symptom,
)
from triage.services.catalog import invalidate_catalog_cache, refresh_catalog_cache

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# scripts -> triage -> backend
_BACKEND_DIR = Path(__file__).resolve().parent.parent.parent
FIXTURES_DIR = _BACKEND_DIR / "fixtures"
CATALOG_FILE = FIXTURES_DIR / "symptom_catalog.json"


def load_catalog_fixture(path: Path = CATALOG_FILE) -> dict[str, Any]:
    """Load catalog data from the JSON fixture file."""
    if not path.exists():
        raise FileNotFoundError(f"Catalog fixture not found: {path}")

    with open(path) as f:
        data: dict[str, Any] = json.load(f)
        return data


def clear_catalog(session: Session) -> None:
    """Clear existing catalog data, children first."""
    session.execute(DrugRecommendation.__table__.delete())
    session.execute(ConditionAlias.__table__.delete())
    session.execute(ConditionSymptom.__table__.delete())
    session.execute(Condition.__table__.delete())
    session.execute(Symptom.__table__.delete())
    session.flush()
    logger.info("Cleared existing catalog data")


def seed_symptoms(session: Session, symptoms_data: list[dict]) -> dict[str, Symptom]:
    """Seed symptoms.

    Returns:
        Mapping of lower-cased symptom name to Symptom for link creation.
    """
    symptom_map: dict[str, Symptom] = {}
    for item in symptoms_data:
        name = item["name"].strip().lower()
        symptom = Symptom(name=name, description=item.get("description", ""))
        session.add(symptom)
        symptom_map[name] = symptom

    session.flush()
    logger.info(f"Seeded {len(symptom_map)} symptoms")
    return symptom_map


def seed_conditions(
    session: Session,
    conditions_data: list[dict],
    symptom_map: dict[str, Symptom],
) -> dict[str, int]:
    """Seed conditions with their links, aliases and drugs.

    Returns:
        Counts of each record type created.
    """
    counts = {"conditions": 0, "links": 0, "aliases": 0, "drugs": 0}

    for item in conditions_data:
        condition = Condition(
            name=item["name"],
            description=item.get("description", ""),
            prevalence=item.get("prevalence", 0.1),
            is_rare=item.get("is_rare", False),
        )
        session.add(condition)
        session.flush()
        counts["conditions"] += 1

        for symptom_name, weight in item.get("symptoms", {}).items():
            symptom = symptom_map.get(symptom_name.lower())
            if symptom is None:
                logger.warning(f"Unknown symptom '{symptom_name}' for {condition.name}, skipped")
                continue
            session.add(
                ConditionSymptom(condition_id=condition.id, symptom_id=symptom.id, weight=weight)
            )
            counts["links"] += 1

        for alias in item.get("aliases", []):
            session.add(ConditionAlias(condition_id=condition.id, alias=alias.strip().lower()))
            counts["aliases"] += 1

        for drug in item.get("drugs", []):
            session.add(DrugRecommendation(condition_id=condition.id, **drug))
            counts["drugs"] += 1

    session.flush()
    logger.info(
        f"Seeded {counts['conditions']} conditions, {counts['links']} links, "
        f"{counts['aliases']} aliases, {counts['drugs']} drug recommendations"
    )
    return counts


def verify_seed(session: Session) -> dict[str, int]:
    """Count catalog rows after seeding."""
    stats = {
        "symptoms": session.scalar(select(func.count(Symptom.id))) or 0,
        "conditions": session.scalar(select(func.count(Condition.id))) or 0,
        "condition_symptoms": session.scalar(select(func.count(ConditionSymptom.id))) or 0,
    }
    logger.info(
        f"Verification: {stats['symptoms']} symptoms, {stats['conditions']} conditions, "
        f"{stats['condition_symptoms']} links in database"
    )
    return stats


def seed_catalog(
    session: Session,
    data: dict[str, Any] | None = None,
    clear_existing: bool = True,
    redis_client: Redis | None = None,
) -> dict[str, int]:
    """Seed the catalog within one transaction.

    Args:
        session: Database session; committed on success.
        data: Catalog data, loaded from the fixture file when omitted.
        clear_existing: If True, clear existing catalog data first.
        redis_client: Catalog cache to invalidate before and after the commit.
            A failed first invalidation rolls the seed back.
    """
    data = data if data is not None else load_catalog_fixture()

    try:
        if clear_existing:
            clear_catalog(session)
        symptom_map = seed_symptoms(session, data.get("symptoms", []))
        seed_conditions(session, data.get("conditions", []), symptom_map)
        if redis_client is not None:
            invalidate_catalog_cache(redis_client)
        session.commit()
    except Exception:
        session.rollback()
        raise

    if redis_client is not None:
        refresh_catalog_cache(redis_client)

    return verify_seed(session)


def main() -> None:
    """Entry point for running the seed script."""
    logger.info("Starting catalog seed...")
    try:
        redis_client = get_redis() if settings.catalog_cache_enabled else None
        with get_session_factory()() as session:
            seed_catalog(session, redis_client=redis_client)
    finally:
        close_db()
    logger.info("Catalog seed completed successfully!")


if __name__ == "__main__":
    main()
