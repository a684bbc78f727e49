"""API key verification and acting-user resolution.

Authentication proper is handled upstream; this service only checks the
shared API key (when enabled) and reads the acting user id that the
upstream gateway forwards.
"""

import logging
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Security, status
from fastapi.security import APIKeyHeader

from triage.core.audit import log_auth_event
from triage.core.config import settings

logger = logging.getLogger(__name__)

api_key_header = APIKeyHeader(
    name=settings.api_key_header,
    auto_error=False,
)


def verify_api_key(
    api_key: Annotated[str | None, Security(api_key_header)],
) -> str | None:
    """Verify API key if authentication is enabled.

    When auth is enabled:
    - Missing API key returns 401
    - Invalid API key returns 403

    When auth is disabled:
    - Returns None (no authentication required)

    Raises:
        HTTPException: 401 if missing key, 403 if invalid key
    """
    if not settings.auth_enabled:
        return None

    if api_key is None:
        logger.warning("Missing API key in request")
        log_auth_event(success=False, reason="missing_api_key")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing API key",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    if api_key != settings.api_key:
        logger.warning("Invalid API key attempt")
        log_auth_event(success=False, reason="invalid_api_key")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid API key",
        )

    return api_key


def get_actor_id(
    x_actor_id: Annotated[str | None, Header(alias=settings.actor_header)] = None,
) -> str:
    """Read the acting user id forwarded by the auth gateway.

    Raises:
        HTTPException: 401 if the header is missing or blank
    """
    if x_actor_id is None or not x_actor_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Missing {settings.actor_header} header",
        )
    return x_actor_id.strip()


RequireAuth = Annotated[str | None, Depends(verify_api_key)]
ActorId = Annotated[str, Depends(get_actor_id)]
