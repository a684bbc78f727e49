"""Role lookups used as guard inputs by the review state machine."""

import logging
from abc import ABC, abstractmethod

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from triage.core.errors import DependencyError
from triage.models.user import UserRole
from triage.schemas.base import Role

logger = logging.getLogger(__name__)


class RoleDirectory(ABC):
    """Answers which closed-set role a user holds."""

    @abstractmethod
    def get_role(self, user_id: str) -> Role | None:
        """Return the user's role, or None for unknown users."""

    def has_role(self, user_id: str, role: Role) -> bool:
        return self.get_role(user_id) == role

    def is_doctor(self, user_id: str) -> bool:
        return self.has_role(user_id, Role.DOCTOR)


class DatabaseRoleDirectory(RoleDirectory):
    """RoleDirectory over the user_roles table. Never cached."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def get_role(self, user_id: str) -> Role | None:
        try:
            role = self._session.execute(
                select(UserRole.role).where(UserRole.user_id == user_id)
            ).scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Role lookup failed for user_id={user_id}: {e}")
            raise DependencyError("Role directory is unavailable") from e
        return Role(role) if role is not None else None

    def assign_role(self, user_id: str, role: Role) -> UserRole:
        """Create or update a user's role (flushed, not committed)."""
        record = self._session.execute(
            select(UserRole).where(UserRole.user_id == user_id)
        ).scalar_one_or_none()
        if record is None:
            record = UserRole(user_id=user_id, role=role)
            self._session.add(record)
        else:
            record.role = role
        self._session.flush()
        return record
