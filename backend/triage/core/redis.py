"""Redis connection management.

Redis backs two concerns: the notification job queue and the optional
catalog read-through cache. Session state never lives here.
"""

import logging

from redis import Redis
from redis.exceptions import RedisError

from triage.core.config import settings

logger = logging.getLogger(__name__)

_redis_client: Redis | None = None


def get_redis() -> Redis:
    """Get or create the shared Redis client (lazily on first call)."""
    global _redis_client
    if _redis_client is None:
        _redis_client = Redis.from_url(
            settings.redis_url,
            decode_responses=True,
        )
    return _redis_client


def close_redis() -> None:
    """Close the Redis connection during application shutdown."""
    global _redis_client
    if _redis_client is not None:
        _redis_client.close()
        _redis_client = None


def ping_redis() -> bool:
    """Report whether Redis answers a ping, for the readiness probe."""
    try:
        return bool(get_redis().ping())
    except RedisError as e:
        logger.warning(f"Redis ping failed: {e}")
        return False
