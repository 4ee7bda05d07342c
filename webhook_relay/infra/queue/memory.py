"""In-process job queue for tests and single-process development.

Jobs live in a heap keyed by (eligible_at, sequence), so jobs with equal
eligibility come out in enqueue order. Nothing survives a restart.
"""

from __future__ import annotations

import asyncio
from collections import deque
from datetime import UTC, datetime
import heapq
import itertools
import logging
from typing import Any

from .base import FailureRecord, JobOutcome, JobQueue, QueuedJob, QueueStats

logger = logging.getLogger(__name__)


class InMemoryJobQueue(JobQueue):
    """Job queue backed by a heap and an ``asyncio.Condition``."""

    backend_name = "memory"

    def __init__(
        self,
        name: str = "webhook-relay",
        *,
        poll_interval: float = 1.0,
        failure_history_size: int = 100,
    ) -> None:
        super().__init__(name, poll_interval=poll_interval, failure_history_size=failure_history_size)
        self._heap: list[tuple[float, int, QueuedJob]] = []
        self._seq = itertools.count()
        self._ids = itertools.count(1)
        self._available = asyncio.Condition()
        self._active: dict[str, QueuedJob] = {}
        self._completed = 0
        self._failed = 0
        self._retried = 0
        self._failures: deque[FailureRecord] = deque(maxlen=failure_history_size)

    async def enqueue(self, data: dict[str, Any], delay_ms: int = 0) -> str:
        loop = asyncio.get_running_loop()
        job = QueuedJob(id=str(next(self._ids)), data=data)
        eligible_at = loop.time() + max(delay_ms, 0) / 1000
        async with self._available:
            heapq.heappush(self._heap, (eligible_at, next(self._seq), job))
            self._available.notify()
        logger.debug(
            "Job enqueued",
            extra={"queue": self.name, "job_id": job.id, "delay_ms": delay_ms},
        )
        return job.id

    async def _reserve(self, timeout: float) -> QueuedJob | None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        async with self._available:
            while True:
                now = loop.time()
                if self._heap and self._heap[0][0] <= now:
                    _, _, job = heapq.heappop(self._heap)
                    self._active[job.id] = job
                    return job
                remaining = deadline - now
                if remaining <= 0:
                    return None
                if self._heap:
                    remaining = min(remaining, self._heap[0][0] - now)
                try:
                    await asyncio.wait_for(self._available.wait(), remaining)
                except TimeoutError:
                    pass

    async def _settle(self, job: QueuedJob, outcome: JobOutcome, reason: str | None = None) -> None:
        self._active.pop(job.id, None)
        if outcome is JobOutcome.COMPLETED:
            self._completed += 1
        elif outcome is JobOutcome.RETRIED:
            self._retried += 1
        else:
            self._failed += 1
            if self.failure_history_size:
                self._failures.appendleft(
                    FailureRecord(
                        job_id=job.id,
                        data=job.data,
                        reason=reason or "unknown",
                        failed_at=datetime.now(UTC),
                    )
                )

    async def stats(self) -> QueueStats:
        now = asyncio.get_running_loop().time()
        waiting = sum(1 for eligible_at, _, _ in self._heap if eligible_at <= now)
        return QueueStats(
            waiting=waiting,
            active=len(self._active),
            completed=self._completed,
            delayed=len(self._heap) - waiting,
            failed=self._failed,
            retried=self._retried,
        )

    async def recent_failures(self, limit: int = 20) -> list[FailureRecord]:
        return list(itertools.islice(self._failures, max(limit, 0)))


__all__ = ["InMemoryJobQueue"]
