"""Symptom catalog access.

The inference pipeline reads reference data through a CatalogReader and
never writes it. CatalogAdminService is the only writer; every write bumps
the cache generation before and after it commits so a CachedCatalogReader never serves data older than
the last committed catalog change.
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import asdict, dataclass
from typing import Any

from redis import Redis
from redis.exceptions import RedisError
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from triage.core.audit import AuditAction, log_audit
from triage.core.config import settings
from triage.core.database import is_record_id
from triage.core.errors import DependencyError, NotFoundError, ValidationError
from triage.models.catalog import (
    Condition,
    ConditionAlias,
    ConditionSymptom,
    DrugRecommendation,
    Symptom,
)
from triage.schemas.catalog import (
    ConditionAliasCreate,
    ConditionCreate,
    ConditionSymptomCreate,
    DrugRecommendationCreate,
    SymptomCreate,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SymptomRecord:
    """A catalog symptom as seen by the normalizer."""

    id: str
    name: str


@dataclass(frozen=True)
class ConditionRecord:
    """A catalog condition."""

    id: str
    name: str
    description: str
    prevalence: float
    is_rare: bool


@dataclass(frozen=True)
class ConditionLink:
    """One condition-symptom association joined to its condition."""

    condition_id: str
    condition_name: str
    description: str
    prevalence: float
    is_rare: bool
    symptom_id: str
    weight: float


@dataclass(frozen=True)
class WeightedSymptom:
    """A symptom linked to a condition, with its evidentiary weight."""

    symptom_id: str
    name: str
    weight: float


@dataclass(frozen=True)
class AliasRecord:
    """A lower-cased free-text synonym for a condition."""

    condition_id: str
    alias: str


@dataclass(frozen=True)
class DrugRecord:
    """A catalog drug recommendation."""

    drug_name: str
    dosage: str
    frequency: str | None = None
    duration: str | None = None
    notes: str | None = None


class CatalogReader(ABC):
    """Read-only access to symptom/condition reference data.

    Implementations raise DependencyError when the backing store is
    unreachable. They never return partial results in that case.
    """

    @abstractmethod
    def list_symptoms(self) -> list[SymptomRecord]:
        """Return every catalog symptom."""

    @abstractmethod
    def get_condition_links(self, symptom_ids: list[str]) -> list[ConditionLink]:
        """Return all condition links referencing any of the symptom ids."""

    @abstractmethod
    def get_condition(self, condition_id: str) -> ConditionRecord | None:
        """Return one condition, or None if unknown."""

    @abstractmethod
    def get_top_symptoms(self, condition_id: str, limit: int = 3) -> list[WeightedSymptom]:
        """Return a condition's symptoms ordered by weight, highest first."""

    @abstractmethod
    def list_aliases(self) -> list[AliasRecord]:
        """Return every condition alias."""

    @abstractmethod
    def get_primary_drug(self, condition_id: str) -> DrugRecord | None:
        """Return the condition's primary drug recommendation, if any."""

    def find_conditions_by_alias(self, text: str) -> list[str]:
        """Return ids of conditions with an alias appearing verbatim in text.

        Matching is lower-cased and on word boundaries, so "uti" does not
        hit "routine". Each condition appears once, in alias order.
        """
        haystack = text.lower()
        found: list[str] = []
        for record in self.list_aliases():
            if not record.alias or record.condition_id in found:
                continue
            if re.search(rf"\b{re.escape(record.alias)}\b", haystack):
                found.append(record.condition_id)
        return found


class DatabaseCatalogReader(CatalogReader):
    """CatalogReader backed by the catalog tables."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def _run(self, description: str, query: Callable[[], Any]) -> Any:
        try:
            return query()
        except SQLAlchemyError as e:
            logger.error(f"Catalog lookup failed ({description}): {e}")
            raise DependencyError(
                "Symptom catalog is unavailable",
                details={"operation": description},
            ) from e

    def list_symptoms(self) -> list[SymptomRecord]:
        def query() -> list[SymptomRecord]:
            rows = self._session.execute(
                select(Symptom.id, Symptom.name).order_by(Symptom.name)
            ).all()
            return [SymptomRecord(id=row.id, name=row.name) for row in rows]

        return self._run("list_symptoms", query)

    def get_condition_links(self, symptom_ids: list[str]) -> list[ConditionLink]:
        symptom_ids = [sid for sid in symptom_ids if is_record_id(sid)]
        if not symptom_ids:
            return []

        def query() -> list[ConditionLink]:
            stmt = (
                select(ConditionSymptom, Condition)
                .join(Condition, ConditionSymptom.condition_id == Condition.id)
                .where(ConditionSymptom.symptom_id.in_(symptom_ids))
            )
            return [
                ConditionLink(
                    condition_id=condition.id,
                    condition_name=condition.name,
                    description=condition.description or "",
                    prevalence=condition.prevalence,
                    is_rare=condition.is_rare,
                    symptom_id=link.symptom_id,
                    weight=link.weight,
                )
                for link, condition in self._session.execute(stmt).all()
            ]

        return self._run("get_condition_links", query)

    def get_condition(self, condition_id: str) -> ConditionRecord | None:
        if not is_record_id(condition_id):
            return None

        def query() -> ConditionRecord | None:
            condition = self._session.get(Condition, condition_id)
            if condition is None:
                return None
            return ConditionRecord(
                id=condition.id,
                name=condition.name,
                description=condition.description or "",
                prevalence=condition.prevalence,
                is_rare=condition.is_rare,
            )

        return self._run("get_condition", query)

    def get_top_symptoms(self, condition_id: str, limit: int = 3) -> list[WeightedSymptom]:
        if not is_record_id(condition_id):
            return []

        def query() -> list[WeightedSymptom]:
            stmt = (
                select(ConditionSymptom.symptom_id, Symptom.name, ConditionSymptom.weight)
                .join(Symptom, ConditionSymptom.symptom_id == Symptom.id)
                .where(ConditionSymptom.condition_id == condition_id)
                .order_by(ConditionSymptom.weight.desc(), Symptom.name)
                .limit(limit)
            )
            return [
                WeightedSymptom(symptom_id=row.symptom_id, name=row.name, weight=row.weight)
                for row in self._session.execute(stmt).all()
            ]

        return self._run("get_top_symptoms", query)

    def list_aliases(self) -> list[AliasRecord]:
        def query() -> list[AliasRecord]:
            rows = self._session.execute(
                select(ConditionAlias.condition_id, ConditionAlias.alias).order_by(
                    ConditionAlias.alias
                )
            ).all()
            return [AliasRecord(condition_id=row.condition_id, alias=row.alias) for row in rows]

        return self._run("list_aliases", query)

    def get_primary_drug(self, condition_id: str) -> DrugRecord | None:
        if not is_record_id(condition_id):
            return None

        def query() -> DrugRecord | None:
            stmt = (
                select(DrugRecommendation)
                .where(DrugRecommendation.condition_id == condition_id)
                .order_by(
                    DrugRecommendation.priority,
                    DrugRecommendation.created_at,
                    DrugRecommendation.drug_name,
                )
                .limit(1)
            )
            drug = self._session.execute(stmt).scalars().first()
            if drug is None:
                return None
            return DrugRecord(
                drug_name=drug.drug_name,
                dosage=drug.dosage,
                frequency=drug.frequency,
                duration=drug.duration,
                notes=drug.notes,
            )

        return self._run("get_primary_drug", query)


# Redis keys for the read-through cache
CACHE_PREFIX = "triage:catalog"
GENERATION_KEY = f"{CACHE_PREFIX}:generation"


def invalidate_catalog_cache(redis_client: Redis) -> int:
    """Bump the catalog cache generation, orphaning every cached entry.

    Raises:
        DependencyError: If Redis cannot be reached. A catalog write must
            not commit while stale entries could still be served.
    """
    try:
        generation = int(redis_client.incr(GENERATION_KEY))
    except RedisError as e:
        logger.error(f"Catalog cache invalidation failed: {e}")
        raise DependencyError("Catalog cache invalidation failed") from e
    logger.info(f"Catalog cache generation bumped to {generation}")
    return generation


def refresh_catalog_cache(redis_client: Redis) -> None:
    """Bump the generation again once a catalog write has committed.

    Entries cached between the pre-commit bump and the commit hold the old
    data under the new generation; this orphans them. The write is already
    durable, so a failure here is logged rather than raised.
    """
    try:
        invalidate_catalog_cache(redis_client)
    except DependencyError:
        logger.error("Catalog cache not refreshed after commit; stale entries expire with their TTL")


class CachedCatalogReader(CatalogReader):
    """Read-through Redis cache in front of another CatalogReader.

    Entries are keyed by the current generation, so bumping the generation
    invalidates everything at once. When Redis is unavailable, reads fall
    through to the wrapped reader rather than failing.
    """

    def __init__(self, inner: CatalogReader, redis_client: Redis, ttl_seconds: int = 300) -> None:
        self._inner = inner
        self._redis = redis_client
        self._ttl = ttl_seconds

    def _generation(self) -> str:
        return self._redis.get(GENERATION_KEY) or "0"

    def _cached(self, name: str, args: tuple, loader: Callable[[], Any], decode: Callable[[Any], Any]) -> Any:
        try:
            key = f"{CACHE_PREFIX}:{self._generation()}:{name}:{json.dumps(args)}"
            raw = self._redis.get(key)
        except RedisError as e:
            logger.warning(f"Catalog cache read failed, reading through: {e}")
            return loader()

        if raw is not None:
            return decode(json.loads(raw))

        value = loader()
        try:
            self._redis.set(key, json.dumps(_encode(value)), ex=self._ttl)
        except RedisError as e:
            logger.warning(f"Catalog cache write failed: {e}")
        return value

    def list_symptoms(self) -> list[SymptomRecord]:
        return self._cached(
            "symptoms", (), self._inner.list_symptoms,
            lambda data: [SymptomRecord(**item) for item in data],
        )

    def get_condition_links(self, symptom_ids: list[str]) -> list[ConditionLink]:
        return self._cached(
            "links", tuple(sorted(set(symptom_ids))),
            lambda: self._inner.get_condition_links(symptom_ids),
            lambda data: [ConditionLink(**item) for item in data],
        )

    def get_condition(self, condition_id: str) -> ConditionRecord | None:
        return self._cached(
            "condition", (condition_id,),
            lambda: self._inner.get_condition(condition_id),
            lambda data: ConditionRecord(**data) if data else None,
        )

    def get_top_symptoms(self, condition_id: str, limit: int = 3) -> list[WeightedSymptom]:
        return self._cached(
            "top_symptoms", (condition_id, limit),
            lambda: self._inner.get_top_symptoms(condition_id, limit),
            lambda data: [WeightedSymptom(**item) for item in data],
        )

    def list_aliases(self) -> list[AliasRecord]:
        return self._cached(
            "aliases", (), self._inner.list_aliases,
            lambda data: [AliasRecord(**item) for item in data],
        )

    def get_primary_drug(self, condition_id: str) -> DrugRecord | None:
        return self._cached(
            "drug", (condition_id,),
            lambda: self._inner.get_primary_drug(condition_id),
            lambda data: DrugRecord(**data) if data else None,
        )


def _encode(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, list):
        return [asdict(item) for item in value]
    return asdict(value)


class CatalogAdminService:
    """Writes reference data on behalf of catalog administrators.

    Each write is flushed, then the cache generation is bumped, then the
    transaction commits and the generation is bumped once more. A failed
    first invalidation rolls the write back.
    """

    def __init__(self, session: Session, redis_client: Redis | None = None) -> None:
        self._session = session
        self._redis = redis_client

    def _write(self, record: Any, resource_type: str, actor_id: str | None) -> str:
        try:
            self._session.add(record)
            self._session.flush()
        except IntegrityError as e:
            self._session.rollback()
            raise ValidationError(
                f"Duplicate or inconsistent {resource_type}",
                details={"resource_type": resource_type},
            ) from e
        except SQLAlchemyError as e:
            self._session.rollback()
            raise DependencyError("Symptom catalog is unavailable") from e

        if self._redis is not None:
            try:
                invalidate_catalog_cache(self._redis)
            except DependencyError:
                self._session.rollback()
                raise

        try:
            self._session.commit()
        except SQLAlchemyError as e:
            self._session.rollback()
            raise DependencyError("Symptom catalog is unavailable") from e

        if self._redis is not None:
            refresh_catalog_cache(self._redis)

        log_audit(
            action=AuditAction.CATALOG_WRITE,
            resource_type=resource_type,
            resource_id=record.id,
            actor_id=actor_id,
        )
        logger.info(f"Catalog {resource_type} written: {record.id}")
        return record.id

    def _require_condition(self, condition_id: str) -> Condition:
        condition = self._session.get(Condition, condition_id) if is_record_id(condition_id) else None
        if condition is None:
            raise NotFoundError(f"Condition {condition_id} not found")
        return condition

    def create_symptom(self, data: SymptomCreate, actor_id: str | None = None) -> str:
        symptom = Symptom(name=data.name.strip().lower(), description=data.description)
        return self._write(symptom, "symptom", actor_id)

    def create_condition(self, data: ConditionCreate, actor_id: str | None = None) -> str:
        condition = Condition(
            name=data.name.strip(),
            description=data.description,
            prevalence=data.prevalence,
            is_rare=data.is_rare,
        )
        return self._write(condition, "condition", actor_id)

    def link_symptom(
        self,
        condition_id: str,
        data: ConditionSymptomCreate,
        actor_id: str | None = None,
    ) -> str:
        self._require_condition(condition_id)
        if not is_record_id(data.symptom_id) or self._session.get(Symptom, data.symptom_id) is None:
            raise NotFoundError(f"Symptom {data.symptom_id} not found")
        link = ConditionSymptom(
            condition_id=condition_id,
            symptom_id=data.symptom_id,
            weight=data.weight,
        )
        return self._write(link, "condition_symptom", actor_id)

    def add_alias(
        self,
        condition_id: str,
        data: ConditionAliasCreate,
        actor_id: str | None = None,
    ) -> str:
        self._require_condition(condition_id)
        alias = ConditionAlias(condition_id=condition_id, alias=data.alias.strip().lower())
        return self._write(alias, "condition_alias", actor_id)

    def add_drug_recommendation(
        self,
        condition_id: str,
        data: DrugRecommendationCreate,
        actor_id: str | None = None,
    ) -> str:
        self._require_condition(condition_id)
        drug = DrugRecommendation(condition_id=condition_id, **data.model_dump())
        return self._write(drug, "drug_recommendation", actor_id)

    def get_stats(self) -> dict[str, int]:
        """Count catalog records per table."""
        try:
            return {
                "symptoms": self._session.scalar(select(func.count(Symptom.id))) or 0,
                "conditions": self._session.scalar(select(func.count(Condition.id))) or 0,
                "condition_symptoms": self._session.scalar(select(func.count(ConditionSymptom.id))) or 0,
                "aliases": self._session.scalar(select(func.count(ConditionAlias.id))) or 0,
                "drug_recommendations": self._session.scalar(select(func.count(DrugRecommendation.id))) or 0,
            }
        except SQLAlchemyError as e:
            raise DependencyError("Symptom catalog is unavailable") from e


def build_catalog_reader(session: Session, redis_client: Redis | None = None) -> CatalogReader:
    """Build the catalog reader for a request.

    Wraps the database reader in the Redis cache when a client is given.
    """
    reader: CatalogReader = DatabaseCatalogReader(session)
    if redis_client is not None:
        reader = CachedCatalogReader(reader, redis_client, ttl_seconds=settings.catalog_cache_ttl_seconds)
    return reader
