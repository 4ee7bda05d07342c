"""Pytest configuration and shared fixtures.

Organization:
    - Environment: settings sources pinned so tests never read a real conf/ or Redis
    - Factories: routes and payloads
    - Relay components: route table, in-memory queue, mocked delivery client, service
    - Helpers: polling until an async condition holds
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import UTC, datetime
import os
from typing import Any
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

# Ensure tests run without external infrastructure or local YAML files
_NO_CONF = os.path.join(os.path.dirname(__file__), "_no_conf")
for _prefix in ("APP_", "REDIS_", "RELAY_", "LOGGING_"):
    os.environ[f"{_prefix}CONFIG_DIR"] = _NO_CONF
os.environ["RELAY_QUEUE_BACKEND"] = "memory"
os.environ.setdefault("APP_ENVIRONMENT", "test")
os.environ.setdefault("LOG_FILE_ENABLED", "false")

from webhook_relay.core.settings import clear_settings_cache  # noqa: E402
from webhook_relay.features.relay.client import DeliveryClient, DeliveryResult  # noqa: E402
from webhook_relay.features.relay.routes import RouteTable  # noqa: E402
from webhook_relay.features.relay.schemas import Route, WebhookPayload  # noqa: E402
from webhook_relay.features.relay.service import RelayService  # noqa: E402
from webhook_relay.infra.queue import InMemoryJobQueue  # noqa: E402


@pytest.fixture(autouse=True)
def _fresh_settings() -> Any:
    """Drop cached settings so monkeypatched env vars take effect."""
    clear_settings_cache()
    yield
    clear_settings_cache()


# ============================================================================
# Factories
# ============================================================================


@pytest.fixture
def make_route() -> Callable[..., Route]:
    """Build a valid Route, overriding any field by its Python name."""

    def _make(**overrides: Any) -> Route:
        fields: dict[str, Any] = {
            "id": uuid4(),
            "name": "test route",
            "source_event": "github:push",
            "destination_url": "https://hooks.example.com/in",
        }
        fields.update(overrides)
        return Route(**fields)

    return _make


@pytest.fixture
def make_payload() -> Callable[..., WebhookPayload]:
    def _make(**overrides: Any) -> WebhookPayload:
        fields: dict[str, Any] = {
            "id": uuid4(),
            "source": "github",
            "event": "push",
            "timestamp": datetime(2025, 1, 1, tzinfo=UTC),
            "data": {"a": 1, "c": 2},
        }
        fields.update(overrides)
        return WebhookPayload(**fields)

    return _make


# ============================================================================
# Relay components
# ============================================================================


@pytest.fixture
def route_table() -> RouteTable:
    return RouteTable()


@pytest.fixture
async def memory_queue() -> AsyncGenerator[InMemoryJobQueue]:
    """In-memory queue with a short poll interval; closed after the test."""
    queue = InMemoryJobQueue("test-relay", poll_interval=0.05)
    yield queue
    await queue.close(timeout=1.0)


@pytest.fixture
def delivery_client() -> AsyncMock:
    """DeliveryClient double that accepts every payload."""
    client = AsyncMock(spec=DeliveryClient)
    client.deliver.return_value = DeliveryResult(status_code=200, response_time_ms=3)
    return client


@pytest.fixture
def relay_service(
    route_table: RouteTable,
    memory_queue: InMemoryJobQueue,
    delivery_client: AsyncMock,
) -> RelayService:
    """Service wired to the in-memory queue; consumers are not started."""
    return RelayService(route_table, memory_queue, delivery_client, concurrency=2)


# ============================================================================
# Helpers
# ============================================================================


@pytest.fixture
def wait_until() -> Callable[..., Awaitable[None]]:
    """Return a coroutine function polling a predicate until it holds."""

    async def _wait(
        predicate: Callable[[], Awaitable[bool]],
        timeout: float = 5.0,
        interval: float = 0.02,
    ) -> None:
        deadline = asyncio.get_running_loop().time() + timeout
        while not await predicate():
            if asyncio.get_running_loop().time() > deadline:
                pytest.fail(f"Condition not met within {timeout}s")
            await asyncio.sleep(interval)

    return _wait
