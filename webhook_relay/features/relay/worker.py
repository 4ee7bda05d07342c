"""Worker loop: runs one relay job through transform, delivery and retry.

Per-job states::

    received -> transforming -> delivering -> delivered
                                           -> retry_scheduled
                                           -> failed

Retries are new queue entries (attempt + 1, exponential delay), never an
in-process loop, so pending retries survive a worker restart.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pydantic import ValidationError

from webhook_relay.core.exceptions import DeliveryError, RouteNotFoundError
from webhook_relay.infra.logging import log_context

from .schemas import JobState, RelayJob, Route
from .transform import apply_transformation

if TYPE_CHECKING:
    from webhook_relay.infra.queue import JobQueue, QueuedJob

    from .client import DeliveryClient
    from .routes import RouteTable

logger = logging.getLogger(__name__)


def compute_retry_delay(delay_ms: int, attempt_number: int, max_delay_ms: int | None = None) -> int:
    """Backoff before the attempt following ``attempt_number``.

    ``delay_ms * 2 ** (attempt_number - 1)``, optionally capped at ``max_delay_ms``.
    """
    delay = delay_ms * 2 ** (attempt_number - 1)
    if max_delay_ms is not None:
        delay = min(delay, max_delay_ms)
    return delay


class RelayWorker:
    """Consumer callback registered on the job queue."""

    def __init__(
        self,
        routes: RouteTable,
        queue: JobQueue,
        client: DeliveryClient,
        *,
        max_retry_delay_ms: int | None = None,
    ) -> None:
        self.routes = routes
        self.queue = queue
        self.client = client
        self.max_retry_delay_ms = max_retry_delay_ms

    async def handle(self, queued: QueuedJob) -> None:
        """Queue consumer entry point."""
        try:
            job = RelayJob.model_validate(queued.data)
        except ValidationError as e:
            logger.warning("Discarding malformed job", extra={"job_id": queued.id})
            msg = f"Malformed relay job: {e.error_count()} validation error(s)"
            raise ValueError(msg) from e
        with log_context(
            job_id=queued.id,
            route_id=str(job.route_id),
            payload_id=str(job.payload.id),
            attempt=job.attempt_number,
        ):
            await self.process(job)

    async def process(self, job: RelayJob) -> JobState:
        """Run ``job`` to a terminal state for this attempt.

        Returns ``JobState.DELIVERED`` on success.

        Raises:
            RouteNotFoundError: The route was removed after the job was queued.
            DeliveryError: Transformation or delivery failed. ``retry_scheduled``
                tells whether a follow-up job was enqueued.
        """
        route = self.routes.get(job.route_id)
        if route is None:
            logger.error("Route not found, failing job without retry")
            raise RouteNotFoundError(str(job.route_id))

        try:
            payload = job.payload
            if route.transformation:
                logger.debug("Job state", extra={"state": JobState.TRANSFORMING.value})
                payload = apply_transformation(payload, route.transformation)

            logger.debug("Job state", extra={"state": JobState.DELIVERING.value})
            result = await self.client.deliver(route.destination_url, payload)
        except DeliveryError as e:
            await self._on_failure(job, route, e)
            raise

        logger.info(
            "Delivery succeeded",
            extra={"state": JobState.DELIVERED.value, "status_code": result.status_code},
        )
        return JobState.DELIVERED

    async def _on_failure(self, job: RelayJob, route: Route, error: DeliveryError) -> None:
        retry = route.retry_config
        if retry is None or job.attempt_number >= retry.max_attempts:
            logger.error(
                "Delivery failed permanently",
                extra={
                    "state": JobState.FAILED.value,
                    "error": str(error),
                    "max_attempts": retry.max_attempts if retry else 1,
                },
            )
            return

        delay_ms = compute_retry_delay(retry.delay_ms, job.attempt_number, self.max_retry_delay_ms)
        follow_up = job.next_attempt()
        await self.queue.enqueue(follow_up.model_dump(mode="json", by_alias=True), delay_ms=delay_ms)
        error.mark_retry(follow_up.attempt_number, delay_ms)
        logger.warning(
            "Delivery failed, retry scheduled",
            extra={
                "state": JobState.RETRY_SCHEDULED.value,
                "error": str(error),
                "next_attempt": follow_up.attempt_number,
                "delay_ms": delay_ms,
            },
        )


__all__ = ["RelayWorker", "compute_retry_delay"]
