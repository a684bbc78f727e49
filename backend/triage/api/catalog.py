"""Catalog administration endpoints."""

import logging

from fastapi import APIRouter, status

from triage.api.deps import DbSession, Roles
from triage.api.errors import to_http_exception
from triage.core.config import settings
from triage.core.errors import AuthorizationError, TriageError
from triage.core.redis import get_redis
from triage.core.security import ActorId, RequireAuth
from triage.schemas.base import Role
from triage.schemas.catalog import (
    CatalogRecordCreated,
    ConditionAliasCreate,
    ConditionCreate,
    ConditionSymptomCreate,
    DrugRecommendationCreate,
    SymptomCreate,
)
from triage.services.catalog import CatalogAdminService
from triage.services.roles import RoleDirectory

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/catalog", tags=["Catalog"])


def _admin_service(db: DbSession, roles: RoleDirectory, actor_id: str) -> CatalogAdminService:
    if not roles.has_role(actor_id, Role.ADMIN):
        raise AuthorizationError("Catalog administration requires the admin role")
    redis_client = get_redis() if settings.catalog_cache_enabled else None
    return CatalogAdminService(db, redis_client)


@router.post(
    "/symptoms",
    response_model=CatalogRecordCreated,
    status_code=status.HTTP_201_CREATED,
    summary="Add a symptom",
)
def create_symptom(
    data: SymptomCreate,
    db: DbSession,
    roles: Roles,
    actor_id: ActorId,
    _auth: RequireAuth,
) -> CatalogRecordCreated:
    try:
        record_id = _admin_service(db, roles, actor_id).create_symptom(data, actor_id)
    except TriageError as e:
        raise to_http_exception(e) from e
    return CatalogRecordCreated(id=record_id)


@router.post(
    "/conditions",
    response_model=CatalogRecordCreated,
    status_code=status.HTTP_201_CREATED,
    summary="Add a condition",
)
def create_condition(
    data: ConditionCreate,
    db: DbSession,
    roles: Roles,
    actor_id: ActorId,
    _auth: RequireAuth,
) -> CatalogRecordCreated:
    try:
        record_id = _admin_service(db, roles, actor_id).create_condition(data, actor_id)
    except TriageError as e:
        raise to_http_exception(e) from e
    return CatalogRecordCreated(id=record_id)


@router.post(
    "/conditions/{condition_id}/symptoms",
    response_model=CatalogRecordCreated,
    status_code=status.HTTP_201_CREATED,
    summary="Link a symptom to a condition",
)
def link_symptom(
    condition_id: str,
    data: ConditionSymptomCreate,
    db: DbSession,
    roles: Roles,
    actor_id: ActorId,
    _auth: RequireAuth,
) -> CatalogRecordCreated:
    try:
        record_id = _admin_service(db, roles, actor_id).link_symptom(condition_id, data, actor_id)
    except TriageError as e:
        raise to_http_exception(e) from e
    return CatalogRecordCreated(id=record_id)


@router.post(
    "/conditions/{condition_id}/aliases",
    response_model=CatalogRecordCreated,
    status_code=status.HTTP_201_CREATED,
    summary="Add a condition alias",
)
def add_alias(
    condition_id: str,
    data: ConditionAliasCreate,
    db: DbSession,
    roles: Roles,
    actor_id: ActorId,
    _auth: RequireAuth,
) -> CatalogRecordCreated:
    try:
        record_id = _admin_service(db, roles, actor_id).add_alias(condition_id, data, actor_id)
    except TriageError as e:
        raise to_http_exception(e) from e
    return CatalogRecordCreated(id=record_id)


@router.post(
    "/conditions/{condition_id}/drugs",
    response_model=CatalogRecordCreated,
    status_code=status.HTTP_201_CREATED,
    summary="Add a drug recommendation",
)
def add_drug_recommendation(
    condition_id: str,
    data: DrugRecommendationCreate,
    db: DbSession,
    roles: Roles,
    actor_id: ActorId,
    _auth: RequireAuth,
) -> CatalogRecordCreated:
    try:
        record_id = _admin_service(db, roles, actor_id).add_drug_recommendation(
            condition_id, data, actor_id
        )
    except TriageError as e:
        raise to_http_exception(e) from e
    return CatalogRecordCreated(id=record_id)


@router.get(
    "/stats",
    summary="Catalog statistics",
    description="Record counts per catalog table.",
)
def catalog_stats(db: DbSession, _auth: RequireAuth) -> dict[str, int]:
    try:
        return CatalogAdminService(db).get_stats()
    except TriageError as e:
        raise to_http_exception(e) from e
