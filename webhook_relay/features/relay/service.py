"""Relay engine: turns inbound events into one queued job per matching route.

The service owns the route table, the job queue and the delivery client, and
is shared by the HTTP front door (ingestion, route management, stats) and the
worker pool (delivery).
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
import logging
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from pydantic import ValidationError

from webhook_relay.core.exceptions import ValidationException
from webhook_relay.infra.queue import create_job_queue

from .client import DeliveryClient
from .routes import RouteTable
from .schemas import FailureRecordRead, RelayJob, Route, WebhookPayload
from .worker import RelayWorker

if TYPE_CHECKING:
    from webhook_relay.core.settings import RedisSettings, RelaySettings
    from webhook_relay.infra.queue import JobQueue, QueueStats

logger = logging.getLogger(__name__)


class RelayService:
    """Ingestion, route management and worker lifecycle for the relay."""

    def __init__(
        self,
        routes: RouteTable,
        queue: JobQueue,
        client: DeliveryClient,
        *,
        concurrency: int = 10,
        max_retry_delay_ms: int | None = None,
    ) -> None:
        self.routes = routes
        self.queue = queue
        self.client = client
        self.concurrency = concurrency
        self.worker = RelayWorker(routes, queue, client, max_retry_delay_ms=max_retry_delay_ms)

    # ──────────────────────────────────────────────────────────────
    # Lifecycle
    # ──────────────────────────────────────────────────────────────

    async def start(self, *, consumers: bool = True) -> None:
        """Connect the queue and, unless ``consumers`` is False, start the worker pool."""
        await self.queue.connect()
        if consumers:
            self.queue.register_consumer(self.worker.handle, concurrency=self.concurrency)
            await self.queue.start()
        logger.info(
            "Relay service started",
            extra={"routes": len(self.routes), "consumers": self.concurrency if consumers else 0},
        )

    async def close(self) -> None:
        """Stop workers, then close the queue connection and HTTP client."""
        await self.queue.close()
        await self.client.close()
        logger.info("Relay service stopped")

    # ──────────────────────────────────────────────────────────────
    # Ingestion
    # ──────────────────────────────────────────────────────────────

    async def relay(
        self,
        source: str,
        event: str,
        data: Mapping[str, Any],
        headers: Mapping[str, str] | None = None,
    ) -> list[str]:
        """Queue ``data`` for every enabled route matching ``source``/``event``.

        Never delivers inline. A webhook nobody subscribes to returns ``[]``.

        Returns:
            Queue job ids, in route-match order.

        Raises:
            ValidationException: ``source``/``event`` empty or ``data`` not a mapping.
        """
        try:
            payload = WebhookPayload(
                id=uuid4(),
                source=source,
                event=event,
                timestamp=datetime.now(UTC),
                data=dict(data) if isinstance(data, Mapping) else data,
                headers=dict(headers) if headers is not None else None,
            )
        except ValidationError as e:
            raise ValidationException(
                detail="Invalid webhook payload",
                extra={"errors": e.errors(include_url=False, include_context=False, include_input=False)},
            ) from e

        matches = self.routes.matching(source, event)
        if not matches:
            logger.info(
                "No routes matched",
                extra={"source": source, "event": event, "payload_id": str(payload.id)},
            )
            return []

        job_ids = []
        for route in matches:
            job = RelayJob(route_id=route.id, payload=payload, attempt_number=1)
            job_ids.append(await self.queue.enqueue(job.model_dump(mode="json", by_alias=True)))

        logger.info(
            "Relay queued",
            extra={
                "source": source,
                "event": event,
                "payload_id": str(payload.id),
                "queued": len(job_ids),
            },
        )
        return job_ids

    # ──────────────────────────────────────────────────────────────
    # Route management
    # ──────────────────────────────────────────────────────────────

    def add_route(self, route: Route) -> Route:
        return self.routes.add(route)

    def remove_route(self, route_id: UUID | str) -> bool:
        return self.routes.remove(route_id)

    def get_route(self, route_id: UUID | str) -> Route | None:
        return self.routes.get(route_id)

    def get_routes(self) -> list[Route]:
        return self.routes.list()

    # ──────────────────────────────────────────────────────────────
    # Inspection
    # ──────────────────────────────────────────────────────────────

    async def get_stats(self) -> QueueStats:
        return await self.queue.stats()

    async def recent_failures(self, limit: int = 20) -> list[FailureRecordRead]:
        """Terminal failures, newest first, with relay job fields pulled out."""
        records = await self.queue.recent_failures(limit)
        return [
            FailureRecordRead(
                job_id=record.job_id,
                route_id=record.data.get("routeId"),
                payload_id=(record.data.get("payload") or {}).get("id"),
                attempt_number=record.data.get("attemptNumber"),
                reason=record.reason,
                failed_at=record.failed_at,
            )
            for record in records
        ]


def create_relay_service(
    relay_settings: RelaySettings,
    redis_settings: RedisSettings | None = None,
    *,
    routes: Iterable[Route] | None = None,
    queue: JobQueue | None = None,
    client: DeliveryClient | None = None,
) -> RelayService:
    """Wire a RelayService from settings. Explicit collaborators override settings."""
    return RelayService(
        RouteTable(relay_settings.routes if routes is None else routes),
        queue or create_job_queue(relay_settings, redis_settings),
        client
        or DeliveryClient(
            relay_settings.delivery_timeout_seconds,
            send_idempotency_key=relay_settings.send_idempotency_key,
        ),
        concurrency=relay_settings.concurrency,
        max_retry_delay_ms=relay_settings.max_retry_delay_ms,
    )


__all__ = ["RelayService", "create_relay_service"]
