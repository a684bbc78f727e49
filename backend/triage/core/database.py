"""Database configuration and session management."""

from collections.abc import Generator
from datetime import datetime
from uuid import UUID as PyUUID
from uuid import uuid4

from sqlalchemy import JSON, DateTime, create_engine, func
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from triage.core.config import settings

# Lazy initialized engine and session factory
_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None

# JSON documents: JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONDocument = JSON().with_variant(JSONB(), "postgresql")


def get_engine() -> Engine:
    """Get or create the SQLAlchemy engine.

    Created on first use so that importing models does not require the
    database driver (e.g. in unit tests running against SQLite).
    """
    global _engine
    if _engine is None:
        _engine = create_engine(
            settings.database_url,
            echo=settings.debug,
            future=True,
            pool_pre_ping=True,
        )
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """Get or create the session factory bound to the engine."""
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(
            bind=get_engine(),
            expire_on_commit=False,
            autoflush=False,
        )
    return _session_factory


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models.

    Provides common columns and configuration for all models:
    - id: UUID primary key (auto-generated)
    - created_at: Timestamp when record was created
    """

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )


def is_record_id(value: object) -> bool:
    """Check that a value is a well-formed primary key (UUID string).

    Lookups with anything else would fail inside the driver; callers treat
    such ids as unknown instead.
    """
    if not isinstance(value, str):
        return False
    try:
        PyUUID(value)
    except ValueError:
        return False
    return True


def get_session() -> Generator[Session, None, None]:
    """Dependency to get a database session.

    Usage in FastAPI:
        @router.get("/items")
        def get_items(session: Session = Depends(get_session)):
            ...
    """
    session = get_session_factory()()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db() -> None:
    """Create all tables.

    For development only - use Alembic migrations in production.
    """
    Base.metadata.create_all(bind=get_engine())


def close_db() -> None:
    """Dispose of pooled database connections."""
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
        _engine = None
        _session_factory = None
