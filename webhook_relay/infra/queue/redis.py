"""Redis-backed durable job queue.

Key layout (all under ``{queue_name}:``):

    id          INCR counter for job ids
    job:{id}    JSON job body {"data": ..., "enqueued_at": ...}
    waiting     LIST of eligible job ids, consumed from the left
    delayed     ZSET of job ids scored by eligibility time (epoch ms)
    active      LIST of job ids currently held by a consumer
    completed   INCR counter
    retried     INCR counter
    failed      INCR counter
    failures    LIST of JSON failure records, newest first, trimmed

Consumers block on ``BLMOVE waiting active``, so a job stays visible in
``active`` until it is settled. Jobs left there by a crashed process are moved
back to the head of ``waiting`` when consumers start.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
import json
import logging
import time
from typing import TYPE_CHECKING, Any, cast

from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import RedisError

from webhook_relay.core.exceptions import QueueError

from .base import FailureRecord, JobOutcome, JobQueue, QueuedJob, QueueStats

if TYPE_CHECKING:
    from collections.abc import Awaitable

    from redis.commands.core import AsyncScript

    from webhook_relay.core.settings import RedisSettings

logger = logging.getLogger(__name__)

# Delayed jobs promoted per reserve call.
PROMOTE_BATCH = 100

# KEYS: delayed, waiting. ARGV: now_ms, batch size. Returns the number promoted.
PROMOTE_DUE_SCRIPT = """
local due = redis.call("ZRANGEBYSCORE", KEYS[1], "-inf", ARGV[1], "LIMIT", 0, ARGV[2])
for _, job_id in ipairs(due) do
    redis.call("ZREM", KEYS[1], job_id)
    redis.call("RPUSH", KEYS[2], job_id)
end
return #due
"""


def _now_ms() -> int:
    return int(time.time() * 1000)


class RedisJobQueue(JobQueue):
    """Job queue stored in Redis lists, a sorted set and counters.

    Example:
        queue = RedisJobQueue("webhook-relay", settings=get_redis_settings())
        await queue.connect()
        job_id = await queue.enqueue({"routeId": "..."}, delay_ms=2000)
    """

    backend_name = "redis"

    def __init__(
        self,
        name: str,
        *,
        settings: RedisSettings | None = None,
        client: Redis | None = None,
        poll_interval: float = 1.0,
        failure_history_size: int = 100,
        recover_stalled: bool = True,
    ) -> None:
        super().__init__(name, poll_interval=poll_interval, failure_history_size=failure_history_size)
        self._settings = settings
        self._client = client
        self._pool: ConnectionPool | None = None
        self._promote_script: AsyncScript | None = None
        self._owns_client = client is None
        self.recover_stalled = recover_stalled

    # ──────────────────────────────────────────────────────────────
    # Connection management
    # ──────────────────────────────────────────────────────────────

    async def connect(self) -> None:
        """Open the connection pool and verify the server answers.

        Raises:
            QueueError: If Redis is unreachable.
        """
        if self._client is not None:
            return
        if self._settings is None:
            msg = "RedisJobQueue needs either settings or a client"
            raise QueueError(msg)

        logger.info(
            "Connecting to Redis",
            extra={
                "host": self._settings.host,
                "port": self._settings.port,
                "db": self._settings.db,
                "queue": self.name,
            },
        )
        try:
            self._pool = ConnectionPool.from_url(
                self._settings.url,
                **self._settings.connection_pool_kwargs(),
            )
            self._client = Redis(connection_pool=self._pool)
            await cast("Awaitable[bool]", self._client.ping())
        except RedisError as e:
            logger.exception("Failed to connect to Redis", extra={"error": str(e)})
            await self._disconnect()
            msg = f"Cannot connect to Redis: {e}"
            raise QueueError(msg) from e
        logger.info("Redis connection established", extra={"queue": self.name})

    async def _disconnect(self) -> None:
        if not self._owns_client:
            return
        if self._client is not None:
            await cast("Any", self._client).aclose()
            self._client = None
        if self._pool is not None:
            await self._pool.aclose()
            self._pool = None
        self._promote_script = None

    @property
    def client(self) -> Redis:
        if self._client is None:
            msg = "Redis client not connected. Call connect() first."
            raise QueueError(msg)
        return self._client

    def _key(self, suffix: str) -> str:
        return f"{self.name}:{suffix}"

    def _job_key(self, job_id: str) -> str:
        return self._key(f"job:{job_id}")

    # ──────────────────────────────────────────────────────────────
    # Producer side
    # ──────────────────────────────────────────────────────────────

    async def enqueue(self, data: dict[str, Any], delay_ms: int = 0) -> str:
        now = datetime.now(UTC)
        body = json.dumps({"data": data, "enqueued_at": now.isoformat()})
        try:
            job_id = str(await self.client.incr(self._key("id")))
            pipe = self.client.pipeline()
            pipe.set(self._job_key(job_id), body)
            if delay_ms > 0:
                pipe.zadd(self._key("delayed"), {job_id: _now_ms() + delay_ms})
            else:
                pipe.rpush(self._key("waiting"), job_id)
            await pipe.execute()
        except RedisError as e:
            msg = f"Failed to enqueue job on {self.name}: {e}"
            raise QueueError(msg) from e

        logger.debug(
            "Job enqueued",
            extra={"queue": self.name, "job_id": job_id, "delay_ms": delay_ms},
        )
        return job_id

    # ──────────────────────────────────────────────────────────────
    # Consumer side
    # ──────────────────────────────────────────────────────────────

    async def _promote_due(self) -> int:
        """Move delayed jobs whose time has come onto the waiting list.

        Runs as one server-side script so a job id is always in either the
        delayed set or the waiting list.
        """
        if self._promote_script is None:
            self._promote_script = self.client.register_script(PROMOTE_DUE_SCRIPT)
        promoted = await self._promote_script(
            keys=[self._key("delayed"), self._key("waiting")],
            args=[_now_ms(), PROMOTE_BATCH],
        )
        return int(promoted)

    async def _reserve(self, timeout: float) -> QueuedJob | None:
        await self._promote_due()
        job_id = await self.client.blmove(
            self._key("waiting"), self._key("active"), timeout, "LEFT", "RIGHT"
        )
        if job_id is None:
            return None

        raw = await self.client.get(self._job_key(job_id))
        if raw is None:
            logger.warning(
                "Dropping job with missing body",
                extra={"queue": self.name, "job_id": job_id},
            )
            await self.client.lrem(self._key("active"), 1, job_id)
            return None

        try:
            body = json.loads(raw)
            return QueuedJob(
                id=str(job_id),
                data=body.get("data") or {},
                enqueued_at=datetime.fromisoformat(body["enqueued_at"]),
            )
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning(
                "Failing job with unreadable body",
                extra={"queue": self.name, "job_id": job_id, "error": str(e)},
            )
            await self._settle(
                QueuedJob(id=str(job_id), data={}),
                JobOutcome.FAILED,
                f"Unreadable job body: {e}",
            )
            return None

    async def _settle(self, job: QueuedJob, outcome: JobOutcome, reason: str | None = None) -> None:
        pipe = self.client.pipeline()
        pipe.lrem(self._key("active"), 1, job.id)
        pipe.delete(self._job_key(job.id))
        pipe.incr(self._key(outcome.value))
        if outcome is JobOutcome.FAILED and self.failure_history_size:
            record = FailureRecord(
                job_id=job.id,
                data=job.data,
                reason=reason or "unknown",
                failed_at=datetime.now(UTC),
            )
            pipe.lpush(self._key("failures"), json.dumps(record.to_json()))
            pipe.ltrim(self._key("failures"), 0, self.failure_history_size - 1)
        await pipe.execute()

    async def _recover(self) -> None:
        if not self.recover_stalled:
            return
        recovered = 0
        # RIGHT -> LEFT keeps the original order at the head of waiting.
        while await self.client.lmove(self._key("active"), self._key("waiting"), "RIGHT", "LEFT"):
            recovered += 1
        if recovered:
            logger.warning(
                "Requeued stalled jobs",
                extra={"queue": self.name, "recovered": recovered},
            )

    # ──────────────────────────────────────────────────────────────
    # Inspection
    # ──────────────────────────────────────────────────────────────

    async def stats(self) -> QueueStats:
        try:
            waiting, active, delayed, counters = await asyncio.gather(
                self.client.llen(self._key("waiting")),
                self.client.llen(self._key("active")),
                self.client.zcard(self._key("delayed")),
                self.client.mget(
                    [self._key("completed"), self._key("failed"), self._key("retried")]
                ),
            )
        except RedisError as e:
            msg = f"Failed to read stats for {self.name}: {e}"
            raise QueueError(msg) from e

        completed, failed, retried = (int(value or 0) for value in counters)
        return QueueStats(
            waiting=int(waiting),
            active=int(active),
            completed=completed,
            delayed=int(delayed),
            failed=failed,
            retried=retried,
        )

    async def recent_failures(self, limit: int = 20) -> list[FailureRecord]:
        if limit <= 0:
            return []
        try:
            raw = await self.client.lrange(self._key("failures"), 0, limit - 1)
        except RedisError as e:
            msg = f"Failed to read failures for {self.name}: {e}"
            raise QueueError(msg) from e
        return [FailureRecord.from_json(json.loads(item)) for item in raw]


__all__ = ["RedisJobQueue"]
