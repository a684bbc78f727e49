"""RQ queue access for fire-and-forget background work."""

from typing import Any

from redis import Redis
from rq import Queue
from rq.job import Job

from triage.core.config import settings

# Lazy initialized queues cache
_queues: dict[str, Queue] = {}

# RQ stores pickled job data, so its connection must not decode responses
_queue_connection: Redis | None = None


def get_queue_connection() -> Redis:
    """Get or create the raw (non-decoding) Redis connection used by RQ."""
    global _queue_connection
    if _queue_connection is None:
        _queue_connection = Redis.from_url(settings.redis_url)
    return _queue_connection


def get_queue(name: str = "default") -> Queue:
    """Get RQ queue with specified name.

    Queue instances are cached so each name shares one Redis connection.
    """
    if name not in _queues:
        _queues[name] = Queue(name=name, connection=get_queue_connection())
    return _queues[name]


def enqueue_job(
    func: Any,
    *args: Any,
    queue_name: str = "default",
    job_timeout: int = 600,
    **kwargs: Any,
) -> Job:
    """Enqueue a job to the Redis queue.

    Args:
        func: The function (or dotted path) to execute.
        *args: Positional arguments for the function.
        queue_name: Name of the queue. Defaults to "default".
        job_timeout: Job timeout in seconds.
        **kwargs: Keyword arguments for the function.

    Returns:
        RQ Job instance.
    """
    queue = get_queue(queue_name)
    return queue.enqueue(func, *args, job_timeout=job_timeout, **kwargs)


def clear_queues() -> None:
    """Drop cached queue instances (used on shutdown and in tests)."""
    global _queue_connection
    _queues.clear()
    if _queue_connection is not None:
        _queue_connection.close()
        _queue_connection = None
