"""Job scheduler / queue adapter.

    from webhook_relay.infra.queue import create_job_queue

    queue = create_job_queue(get_relay_settings(), get_redis_settings())
    queue.register_consumer(worker.handle, concurrency=10)
    await queue.start()
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .base import FailureRecord, JobHandler, JobOutcome, JobQueue, QueuedJob, QueueStats
from .memory import InMemoryJobQueue
from .redis import RedisJobQueue

if TYPE_CHECKING:
    from webhook_relay.core.settings import RedisSettings, RelaySettings


def create_job_queue(relay_settings: RelaySettings, redis_settings: RedisSettings | None = None) -> JobQueue:
    """Build the queue backend selected by ``RELAY_QUEUE_BACKEND``."""
    if relay_settings.queue_backend == "memory":
        return InMemoryJobQueue(
            relay_settings.queue_name,
            poll_interval=relay_settings.poll_interval_seconds,
            failure_history_size=relay_settings.failure_history_size,
        )
    return RedisJobQueue(
        relay_settings.queue_name,
        settings=redis_settings,
        poll_interval=relay_settings.poll_interval_seconds,
        failure_history_size=relay_settings.failure_history_size,
    )


__all__ = [
    "FailureRecord",
    "InMemoryJobQueue",
    "JobHandler",
    "JobOutcome",
    "JobQueue",
    "QueueStats",
    "QueuedJob",
    "RedisJobQueue",
    "create_job_queue",
]
