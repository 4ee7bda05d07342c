"""HTTP client for relaying payloads to route destinations."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
import time

import httpx

from webhook_relay import __version__
from webhook_relay.core.exceptions import DeliveryError
from webhook_relay.infra.logging import get_lazy_logger

from .schemas import WebhookPayload

logger = logging.getLogger(__name__)
lazy_logger = get_lazy_logger(__name__)


@dataclass
class DeliveryResult:
    """Result of a successful delivery."""

    status_code: int
    response_time_ms: int


class DeliveryClient:
    """POSTs payloads as JSON and treats anything but a 2xx as a failure.

    One ``httpx.AsyncClient`` is shared by all workers; it holds no per-call
    state, so no extra locking is needed.
    """

    def __init__(
        self,
        timeout_seconds: float = 30.0,
        *,
        send_idempotency_key: bool = False,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the delivery client.

        Args:
            timeout_seconds: Deadline for a whole delivery attempt, response body
                included. Also used as the per-phase httpx timeout.
            send_idempotency_key: Send the payload id as ``Idempotency-Key``.
            transport: Optional httpx transport (tests use ``httpx.MockTransport``).
        """
        self.timeout_seconds = timeout_seconds
        self.send_idempotency_key = send_idempotency_key
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds),
            headers={"User-Agent": f"webhook-relay/{__version__}"},
            limits=httpx.Limits(max_keepalive_connections=20, max_connections=100),
            transport=transport,
        )

    async def close(self) -> None:
        """Close the HTTP client and release connections."""
        await self._client.aclose()

    async def __aenter__(self) -> DeliveryClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _headers(self, payload: WebhookPayload) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.send_idempotency_key:
            headers["Idempotency-Key"] = str(payload.id)
        return headers

    async def deliver(self, url: str, payload: WebhookPayload) -> DeliveryResult:
        """Send ``payload`` to ``url``.

        Raises:
            DeliveryError: On timeout, transport error or non-2xx response.
        """
        start_time = time.perf_counter()
        body = payload.model_dump_json(by_alias=True)

        lazy_logger.debug(lambda: f"client.deliver: payload_id={payload.id}, url={url}")

        try:
            async with asyncio.timeout(self.timeout_seconds):
                response = await self._client.post(url, content=body, headers=self._headers(payload))
        except (httpx.TimeoutException, TimeoutError) as e:
            msg = f"Delivery to {url} timed out after {self.timeout_seconds}s"
            raise DeliveryError(msg) from e
        except httpx.HTTPError as e:
            msg = f"Delivery to {url} failed: {e}"
            raise DeliveryError(msg) from e

        response_time_ms = int((time.perf_counter() - start_time) * 1000)
        if not response.is_success:
            msg = f"Delivery to {url} returned HTTP {response.status_code}"
            raise DeliveryError(msg, status_code=response.status_code)

        logger.debug(
            "Destination accepted payload",
            extra={
                "payload_id": str(payload.id),
                "status_code": response.status_code,
                "response_time_ms": response_time_ms,
            },
        )
        return DeliveryResult(status_code=response.status_code, response_time_ms=response_time_ms)


__all__ = ["DeliveryClient", "DeliveryResult"]
