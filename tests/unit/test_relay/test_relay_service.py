"""Tests for the relay engine: ingestion, route management and the worker pool."""

from __future__ import annotations

import json

import httpx
import pytest

from webhook_relay.core.exceptions import ValidationException
from webhook_relay.core.settings import RelaySettings
from webhook_relay.features.relay.client import DeliveryClient
from webhook_relay.features.relay.routes import RouteTable
from webhook_relay.features.relay.schemas import RelayJob, RetryConfig
from webhook_relay.features.relay.service import RelayService, create_relay_service
from webhook_relay.infra.queue import InMemoryJobQueue


@pytest.mark.unit
@pytest.mark.asyncio
class TestRelay:
    async def test_single_matching_route_enqueues_one_job(self, relay_service, make_route, memory_queue):
        route = relay_service.add_route(make_route(source_event="github:push"))

        job_ids = await relay_service.relay("github", "push", {"x": 1})

        assert len(job_ids) == 1
        stats = await relay_service.get_stats()
        assert stats.waiting == 1

        queued = await memory_queue._reserve(0.1)
        job = RelayJob.model_validate(queued.data)
        assert queued.id == job_ids[0]
        assert job.route_id == route.id
        assert job.attempt_number == 1
        assert job.payload.source == "github"
        assert job.payload.event == "push"
        assert job.payload.data == {"x": 1}
        assert job.payload.timestamp.tzinfo is not None

    async def test_no_routes_returns_empty_sequence(self, relay_service):
        assert await relay_service.relay("any", "thing", {}) == []
        assert (await relay_service.get_stats()).waiting == 0

    async def test_one_job_per_match_in_route_order(self, relay_service, make_route, memory_queue):
        first = relay_service.add_route(make_route(source_event="*"))
        relay_service.add_route(make_route(source_event="stripe:*"))
        second = relay_service.add_route(make_route(source_event="github:*"))

        job_ids = await relay_service.relay("github", "issues", {"n": 1}, {"x-trace": "t1"})

        assert len(job_ids) == 2
        jobs = [RelayJob.model_validate((await memory_queue._reserve(0.1)).data) for _ in job_ids]
        assert [job.route_id for job in jobs] == [first.id, second.id]
        # Both jobs carry the same payload
        assert jobs[0].payload == jobs[1].payload
        assert jobs[0].payload.headers == {"x-trace": "t1"}

    async def test_disabled_route_gets_no_job(self, relay_service, make_route):
        relay_service.add_route(make_route(source_event="*", enabled=False))

        assert await relay_service.relay("github", "push", {}) == []

    async def test_relay_never_delivers_inline(self, relay_service, make_route, delivery_client):
        relay_service.add_route(make_route())

        await relay_service.relay("github", "push", {})

        delivery_client.deliver.assert_not_awaited()

    @pytest.mark.parametrize(
        ("source", "event", "data"),
        [("", "push", {}), ("github", "", {}), ("github", "push", ["not", "a", "mapping"])],
    )
    async def test_invalid_input_is_rejected(self, relay_service, source, event, data):
        with pytest.raises(ValidationException) as exc_info:
            await relay_service.relay(source, event, data)

        assert exc_info.value.status_code == 422
        assert exc_info.value.extra["errors"]


@pytest.mark.unit
class TestRouteManagement:
    def test_add_list_remove(self, relay_service, make_route):
        route = relay_service.add_route(make_route())

        assert relay_service.get_routes() == [route]
        assert relay_service.get_route(route.id) == route
        assert relay_service.remove_route(route.id) is True
        assert relay_service.get_routes() == []

    def test_create_relay_service_loads_configured_routes(self, make_route):
        route = make_route()
        settings = RelaySettings(queue_backend="memory", routes=[route], concurrency=4)

        service = create_relay_service(settings)

        assert service.get_routes() == [route]
        assert service.concurrency == 4
        assert isinstance(service.queue, InMemoryJobQueue)
        assert isinstance(service.client, DeliveryClient)


@pytest.mark.asyncio
class TestWorkerPool:
    """Relay engine and worker pool running against the in-memory queue."""

    @staticmethod
    def _service(routes: RouteTable, handler) -> RelayService:
        queue = InMemoryJobQueue("pool-test", poll_interval=0.05)
        client = DeliveryClient(5.0, transport=httpx.MockTransport(handler))
        return RelayService(routes, queue, client, concurrency=3)

    async def test_delivers_queued_jobs(self, make_route, wait_until):
        received = []

        def handler(request: httpx.Request) -> httpx.Response:
            received.append(json.loads(request.content))
            return httpx.Response(202)

        routes = RouteTable([make_route(transformation={"mapKeys": {"a": "b"}})])
        service = self._service(routes, handler)
        await service.start()
        try:
            await service.relay("github", "push", {"a": 1, "c": 2})

            async def delivered() -> bool:
                return (await service.get_stats()).completed == 1

            await wait_until(delivered)
        finally:
            await service.close()

        assert len(received) == 1
        assert received[0]["data"] == {"b": 1, "c": 2}
        assert received[0]["source"] == "github"

    async def test_always_failing_destination_gets_exactly_max_attempts(self, make_route, wait_until):
        attempts = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(request)
            return httpx.Response(503)

        route = make_route(retry_config=RetryConfig(max_attempts=3, delay_ms=100))
        service = self._service(RouteTable([route]), handler)
        await service.start()
        try:
            await service.relay("github", "push", {"x": 1})

            async def failed() -> bool:
                return (await service.get_stats()).failed == 1

            await wait_until(failed)
            stats = await service.get_stats()
            failures = await service.recent_failures()
        finally:
            await service.close()

        assert len(attempts) == 3
        assert stats.retried == 2
        assert stats.completed == 0
        assert stats.waiting == stats.delayed == stats.active == 0
        assert len(failures) == 1
        assert failures[0].route_id == str(route.id)
        assert failures[0].attempt_number == 3
        assert "HTTP 503" in failures[0].reason

    async def test_route_deleted_before_pickup_fails_without_retry(self, make_route, wait_until):
        attempts = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(request)
            return httpx.Response(200)

        route = make_route(retry_config=RetryConfig(max_attempts=5, delay_ms=100))
        service = self._service(RouteTable([route]), handler)
        await service.queue.connect()
        await service.relay("github", "push", {})
        service.remove_route(route.id)

        await service.start()
        try:

            async def failed() -> bool:
                return (await service.get_stats()).failed == 1

            await wait_until(failed)
            stats = await service.get_stats()
            failures = await service.recent_failures()
        finally:
            await service.close()

        assert attempts == []
        assert stats.retried == 0
        assert failures[0].reason == f"Route {route.id} not found"
