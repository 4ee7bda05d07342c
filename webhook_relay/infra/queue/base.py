"""Abstract job queue with a push-based consumer pool.

Backends implement storage primitives (``enqueue``, ``_reserve``, ``_settle``,
``stats``); this base class owns the worker tasks that pull eligible jobs and
hand them to the registered consumer, at most ``concurrency`` at a time.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from enum import Enum
import logging
from typing import Any

from webhook_relay.core.exceptions import DeliveryError, QueueError

logger = logging.getLogger(__name__)


class JobOutcome(str, Enum):
    """How a consumer invocation ended."""

    COMPLETED = "completed"
    RETRIED = "retried"
    FAILED = "failed"


@dataclass(frozen=True)
class QueuedJob:
    """A job handed to a consumer."""

    id: str
    data: dict[str, Any]
    enqueued_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass(frozen=True)
class QueueStats:
    """Point-in-time counts read from the backend."""

    waiting: int
    active: int
    completed: int
    delayed: int = 0
    failed: int = 0
    retried: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass(frozen=True)
class FailureRecord:
    """A job whose consumer invocation ended in a terminal failure."""

    job_id: str
    data: dict[str, Any]
    reason: str
    failed_at: datetime

    def to_json(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "data": self.data,
            "reason": self.reason,
            "failed_at": self.failed_at.isoformat(),
        }

    @classmethod
    def from_json(cls, raw: dict[str, Any]) -> FailureRecord:
        return cls(
            job_id=str(raw["job_id"]),
            data=raw.get("data") or {},
            reason=str(raw.get("reason", "")),
            failed_at=datetime.fromisoformat(raw["failed_at"]),
        )


JobHandler = Callable[[QueuedJob], Awaitable[None]]


class JobQueue(ABC):
    """Durable FIFO-with-delay queue feeding a bounded consumer pool.

    Ordering: jobs become eligible at ``enqueue time + delay`` and are handed
    out oldest-eligible first. Each reserved job is processed by exactly one
    consumer task; a task finishes its current job before reserving the next.

    Consumer outcome handling:
        - handler returns: the job is counted as completed.
        - handler raises ``DeliveryError`` with ``retry_scheduled`` set: the
          handler already enqueued a follow-up job, so this entry is counted
          as retried.
        - anything else: the job is counted as failed and a failure record
          is kept for inspection.
    """

    backend_name: str = "abstract"

    def __init__(
        self,
        name: str,
        *,
        poll_interval: float = 1.0,
        failure_history_size: int = 100,
    ) -> None:
        self.name = name
        self.poll_interval = poll_interval
        self.failure_history_size = failure_history_size
        self._handler: JobHandler | None = None
        self._concurrency = 0
        self._tasks: list[asyncio.Task[None]] = []
        self._stopping = asyncio.Event()

    # ──────────────────────────────────────────────────────────────
    # Backend primitives
    # ──────────────────────────────────────────────────────────────

    @abstractmethod
    async def enqueue(self, data: dict[str, Any], delay_ms: int = 0) -> str:
        """Store a job and return its id. ``delay_ms > 0`` defers eligibility."""

    @abstractmethod
    async def _reserve(self, timeout: float) -> QueuedJob | None:
        """Move the oldest eligible job to active, waiting up to ``timeout`` seconds."""

    @abstractmethod
    async def _settle(self, job: QueuedJob, outcome: JobOutcome, reason: str | None = None) -> None:
        """Remove a job from active and record its outcome."""

    @abstractmethod
    async def stats(self) -> QueueStats:
        """Read current counts from the backend."""

    @abstractmethod
    async def recent_failures(self, limit: int = 20) -> list[FailureRecord]:
        """Return the most recent terminal failures, newest first."""

    async def connect(self) -> None:
        """Open backend connections. Optional."""

    async def _recover(self) -> None:
        """Requeue jobs left active by a previous process. Optional."""

    async def _disconnect(self) -> None:
        """Release backend connections. Optional."""

    # ──────────────────────────────────────────────────────────────
    # Consumer pool
    # ──────────────────────────────────────────────────────────────

    @property
    def is_running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def register_consumer(self, handler: JobHandler, *, concurrency: int = 10) -> None:
        """Register the callback that processes jobs.

        Args:
            handler: Coroutine function invoked once per reserved job.
            concurrency: Maximum number of simultaneous handler invocations.
        """
        if concurrency < 1:
            msg = f"concurrency must be at least 1, got {concurrency}"
            raise ValueError(msg)
        if self.is_running:
            msg = "Cannot register a consumer while the queue is running"
            raise QueueError(msg)
        self._handler = handler
        self._concurrency = concurrency

    async def start(self) -> None:
        """Recover stalled jobs and spawn the consumer tasks."""
        if self._handler is None:
            msg = "No consumer registered"
            raise QueueError(msg)
        if self.is_running:
            return
        self._stopping.clear()
        await self._recover()
        self._tasks = [
            asyncio.create_task(self._consume(index), name=f"{self.name}-consumer-{index}")
            for index in range(self._concurrency)
        ]
        logger.info(
            "Job queue consumers started",
            extra={"queue": self.name, "backend": self.backend_name, "concurrency": self._concurrency},
        )

    async def close(self, timeout: float | None = None) -> None:
        """Stop consumers after their current job, then disconnect.

        Args:
            timeout: Seconds to wait for in-flight jobs before cancelling them.
                Defaults to twice the poll interval.
        """
        self._stopping.set()
        if self._tasks:
            wait_for = timeout if timeout is not None else self.poll_interval * 2
            _, pending = await asyncio.wait(self._tasks, timeout=wait_for)
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
                logger.warning(
                    "Cancelled in-flight jobs on shutdown",
                    extra={"queue": self.name, "cancelled": len(pending)},
                )
            self._tasks = []
        await self._disconnect()
        logger.info("Job queue closed", extra={"queue": self.name})

    async def _consume(self, index: int) -> None:
        while not self._stopping.is_set():
            try:
                job = await self._reserve(self.poll_interval)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception(
                    "Failed to reserve job",
                    extra={"queue": self.name, "consumer": index},
                )
                await asyncio.sleep(self.poll_interval)
                continue
            if job is None:
                continue
            await self._run(job)

    async def _run(self, job: QueuedJob) -> None:
        assert self._handler is not None
        outcome = JobOutcome.COMPLETED
        reason: str | None = None
        try:
            await self._handler(job)
        except DeliveryError as e:
            reason = str(e)
            outcome = JobOutcome.RETRIED if e.retry_scheduled else JobOutcome.FAILED
        except Exception as e:
            reason = str(e) or type(e).__name__
            outcome = JobOutcome.FAILED

        if outcome is JobOutcome.FAILED:
            logger.error(
                "Job failed",
                extra={"queue": self.name, "job_id": job.id, "reason": reason},
            )
        elif outcome is JobOutcome.RETRIED:
            logger.warning(
                "Job attempt failed, follow-up scheduled",
                extra={"queue": self.name, "job_id": job.id, "reason": reason},
            )

        try:
            await self._settle(job, outcome, reason)
        except Exception:
            logger.exception(
                "Failed to record job outcome",
                extra={"queue": self.name, "job_id": job.id, "outcome": outcome.value},
            )


__all__ = [
    "FailureRecord",
    "JobHandler",
    "JobOutcome",
    "JobQueue",
    "QueueStats",
    "QueuedJob",
]
