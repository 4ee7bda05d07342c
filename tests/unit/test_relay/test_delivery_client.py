"""Tests for the outbound delivery client using httpx.MockTransport."""

from __future__ import annotations

import asyncio
import json
import time

import httpx
import pytest

from webhook_relay.core.exceptions import DeliveryError
from webhook_relay.features.relay.client import DeliveryClient

URL = "https://hooks.example.com/in"


def _client(handler, **kwargs) -> DeliveryClient:
    return DeliveryClient(2.0, transport=httpx.MockTransport(handler), **kwargs)


@pytest.mark.unit
@pytest.mark.asyncio
class TestDeliveryClient:
    async def test_posts_payload_as_json(self, make_payload):
        captured: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(200, json={"ok": True})

        payload = make_payload(data={"x": 1}, headers={"x-github-event": "push"})
        async with _client(handler) as client:
            result = await client.deliver(URL, payload)

        assert result.status_code == 200
        request = captured[0]
        assert request.method == "POST"
        assert str(request.url) == URL
        assert request.headers["content-type"] == "application/json"
        assert "idempotency-key" not in request.headers
        body = json.loads(request.content)
        assert body["id"] == str(payload.id)
        assert body["data"] == {"x": 1}
        assert body["headers"] == {"x-github-event": "push"}

    @pytest.mark.parametrize("status_code", [200, 201, 202, 204])
    async def test_any_2xx_is_success(self, make_payload, status_code):
        async with _client(lambda request: httpx.Response(status_code)) as client:
            result = await client.deliver(URL, make_payload())

        assert result.status_code == status_code

    @pytest.mark.parametrize("status_code", [301, 400, 404, 500, 503])
    async def test_non_2xx_raises_delivery_error(self, make_payload, status_code):
        async with _client(lambda request: httpx.Response(status_code)) as client:
            with pytest.raises(DeliveryError) as exc_info:
                await client.deliver(URL, make_payload())

        assert exc_info.value.status_code == status_code
        assert exc_info.value.retry_scheduled is False

    async def test_timeout_raises_delivery_error(self, make_payload):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        async with _client(handler) as client:
            with pytest.raises(DeliveryError, match="timed out") as exc_info:
                await client.deliver(URL, make_payload())

        assert exc_info.value.status_code is None

    async def test_slow_streaming_body_hits_attempt_deadline(self, make_payload):
        async def trickle():
            for _ in range(20):
                await asyncio.sleep(0.1)
                yield b"x"

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=trickle())

        client = DeliveryClient(0.3, transport=httpx.MockTransport(handler))
        started = time.perf_counter()
        async with client:
            with pytest.raises(DeliveryError, match="timed out after 0.3s"):
                await client.deliver(URL, make_payload())

        assert time.perf_counter() - started < 1.5

    async def test_transport_error_raises_delivery_error(self, make_payload):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(DeliveryError, match="connection refused"):
                await client.deliver(URL, make_payload())

    async def test_idempotency_key_is_opt_in(self, make_payload):
        captured: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(204)

        payload = make_payload()
        async with _client(handler, send_idempotency_key=True) as client:
            await client.deliver(URL, payload)

        assert captured[0].headers["idempotency-key"] == str(payload.id)
