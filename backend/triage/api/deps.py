"""Shared FastAPI dependencies for the triage routers."""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.orm import Session

from triage.core.config import settings
from triage.core.database import get_session
from triage.core.redis import get_redis
from triage.services.catalog import CatalogReader, build_catalog_reader
from triage.services.notifications import NotificationSender, QueueNotificationSender
from triage.services.roles import DatabaseRoleDirectory, RoleDirectory
from triage.services.session_store import DatabaseSessionStore

# Type alias for database session dependency
DbSession = Annotated[Session, Depends(get_session)]


def get_catalog_reader(db: DbSession) -> CatalogReader:
    """Catalog reader, cached in Redis when enabled."""
    redis_client = get_redis() if settings.catalog_cache_enabled else None
    return build_catalog_reader(db, redis_client)


def get_session_store(db: DbSession) -> DatabaseSessionStore:
    return DatabaseSessionStore(db)


def get_role_directory(db: DbSession) -> RoleDirectory:
    return DatabaseRoleDirectory(db)


def get_notification_sender() -> NotificationSender:
    return QueueNotificationSender()


Catalog = Annotated[CatalogReader, Depends(get_catalog_reader)]
Store = Annotated[DatabaseSessionStore, Depends(get_session_store)]
Roles = Annotated[RoleDirectory, Depends(get_role_directory)]
Notifier = Annotated[NotificationSender, Depends(get_notification_sender)]
