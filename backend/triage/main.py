"""FastAPI application for the symptom triage and review service."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from triage import __version__
from triage.api import catalog_router, diagnosis_router, symptoms_router
from triage.core.config import settings
from triage.core.database import close_db, get_engine, init_db
from triage.core.queue import clear_queues
from triage.core.redis import close_redis, ping_redis
from triage.services.confidence_gate import get_confidence_gate

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Handles startup and shutdown events:
    - Startup: create tables in debug mode, build the confidence gate
    - Shutdown: close database and Redis connections, clear queues
    """
    if settings.debug:
        init_db()

    gate = get_confidence_gate()
    logger.info(
        f"Confidence gate ready: high={gate.high_threshold}, min={gate.min_threshold}"
    )

    yield

    clear_queues()
    close_redis()
    close_db()


app = FastAPI(
    title=settings.app_name,
    description=(
        "Symptom normalization, condition scoring, confidence gating and "
        "clinician review of AI-suggested diagnoses."
    ),
    version=__version__,
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(symptoms_router, prefix=settings.api_v1_prefix)
app.include_router(diagnosis_router, prefix=settings.api_v1_prefix)
app.include_router(catalog_router, prefix=settings.api_v1_prefix)


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, Any]:
    """Health check endpoint (liveness probe).

    Use /ready for readiness checks.
    """
    return {
        "status": "healthy",
        "service": "symptom-triage-review",
        "version": __version__,
        "timestamp": datetime.now(UTC).isoformat(),
    }


@app.get("/ready", tags=["Health"])
def readiness_check() -> dict[str, Any]:
    """Readiness check endpoint.

    Reports whether the database and Redis answer. Redis only backs
    notifications and the optional catalog cache, so the service is
    ready without it.
    """
    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
        database_ok = True
    except SQLAlchemyError as e:
        logger.warning(f"Database readiness check failed: {e}")
        database_ok = False

    return {
        "status": "ready" if database_ok else "degraded",
        "service": "symptom-triage-review",
        "version": __version__,
        "timestamp": datetime.now(UTC).isoformat(),
        "database": database_ok,
        "redis": ping_redis(),
    }


@app.get("/", tags=["Health"])
async def root() -> dict[str, str]:
    """Root endpoint with API info."""
    return {
        "service": "Symptom Triage Review API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
        "ready": "/ready",
    }
