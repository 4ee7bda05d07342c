"""Tests for the Redis job queue against a mocked redis.asyncio client."""

from __future__ import annotations

from datetime import UTC, datetime
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from webhook_relay.core.exceptions import QueueError
from webhook_relay.infra.queue import FailureRecord, JobOutcome, QueuedJob, RedisJobQueue
from webhook_relay.infra.queue.redis import PROMOTE_BATCH, PROMOTE_DUE_SCRIPT


@pytest.fixture
def pipe() -> MagicMock:
    pipe = MagicMock()
    pipe.execute = AsyncMock(return_value=[])
    return pipe


@pytest.fixture
def mock_redis(pipe: MagicMock) -> MagicMock:
    """redis.asyncio.Redis double: commands are AsyncMocks, pipeline() is sync."""
    client = MagicMock()
    client.pipeline.return_value = pipe
    client.incr = AsyncMock(return_value=7)
    client.register_script.return_value = AsyncMock(return_value=0)
    client.blmove = AsyncMock(return_value=None)
    client.get = AsyncMock(return_value=None)
    client.lrem = AsyncMock(return_value=1)
    client.lmove = AsyncMock(return_value=None)
    client.llen = AsyncMock(return_value=0)
    client.zcard = AsyncMock(return_value=0)
    client.mget = AsyncMock(return_value=[None, None, None])
    client.lrange = AsyncMock(return_value=[])
    return client


@pytest.fixture
def queue(mock_redis: MagicMock) -> RedisJobQueue:
    return RedisJobQueue("relay", client=mock_redis, poll_interval=0.5, failure_history_size=100)


@pytest.mark.unit
@pytest.mark.asyncio
class TestEnqueue:
    async def test_immediate_job_goes_to_waiting(self, queue, mock_redis, pipe):
        job_id = await queue.enqueue({"routeId": "r1"})

        assert job_id == "7"
        mock_redis.incr.assert_awaited_once_with("relay:id")
        key, body = pipe.set.call_args.args
        assert key == "relay:job:7"
        assert json.loads(body)["data"] == {"routeId": "r1"}
        pipe.rpush.assert_called_once_with("relay:waiting", "7")
        pipe.zadd.assert_not_called()
        pipe.execute.assert_awaited_once()

    async def test_delayed_job_goes_to_sorted_set(self, queue, pipe):
        with patch("webhook_relay.infra.queue.redis._now_ms", return_value=1_000):
            await queue.enqueue({}, delay_ms=2_000)

        pipe.zadd.assert_called_once_with("relay:delayed", {"7": 3_000})
        pipe.rpush.assert_not_called()

    async def test_redis_failure_becomes_queue_error(self, queue, mock_redis):
        mock_redis.incr.side_effect = RedisConnectionError("connection refused")

        with pytest.raises(QueueError, match="connection refused"):
            await queue.enqueue({})


@pytest.mark.unit
@pytest.mark.asyncio
class TestReserve:
    async def test_promotes_due_jobs_with_one_script(self, queue, mock_redis):
        script = mock_redis.register_script.return_value
        script.return_value = 2

        with patch("webhook_relay.infra.queue.redis._now_ms", return_value=5_000):
            promoted = await queue._promote_due()

        assert promoted == 2
        mock_redis.register_script.assert_called_once_with(PROMOTE_DUE_SCRIPT)
        script.assert_awaited_once_with(
            keys=["relay:delayed", "relay:waiting"],
            args=[5_000, PROMOTE_BATCH],
        )

    async def test_promote_script_registered_once(self, queue, mock_redis):
        await queue._promote_due()
        await queue._promote_due()

        mock_redis.register_script.assert_called_once()
        assert mock_redis.register_script.return_value.await_count == 2

    async def test_reserve_moves_job_to_active(self, queue, mock_redis):
        mock_redis.blmove.return_value = "5"
        mock_redis.get.return_value = json.dumps(
            {"data": {"x": 1}, "enqueued_at": "2025-01-01T00:00:00+00:00"}
        )

        job = await queue._reserve(0.5)

        assert job == QueuedJob(id="5", data={"x": 1}, enqueued_at=datetime(2025, 1, 1, tzinfo=UTC))
        mock_redis.blmove.assert_awaited_once_with("relay:waiting", "relay:active", 0.5, "LEFT", "RIGHT")
        mock_redis.get.assert_awaited_once_with("relay:job:5")

    async def test_reserve_timeout_returns_none(self, queue, mock_redis):
        assert await queue._reserve(0.5) is None
        mock_redis.get.assert_not_awaited()

    async def test_missing_body_is_dropped_from_active(self, queue, mock_redis):
        mock_redis.blmove.return_value = "9"

        assert await queue._reserve(0.5) is None
        mock_redis.lrem.assert_awaited_once_with("relay:active", 1, "9")

    @pytest.mark.parametrize(
        "raw",
        [
            "{not json",
            json.dumps({"data": {"x": 1}}),
            json.dumps(["not", "an", "object"]),
        ],
    )
    async def test_unreadable_body_is_settled_as_failed(self, queue, mock_redis, pipe, raw):
        mock_redis.blmove.return_value = "9"
        mock_redis.get.return_value = raw

        assert await queue._reserve(0.5) is None

        pipe.lrem.assert_called_once_with("relay:active", 1, "9")
        pipe.delete.assert_called_once_with("relay:job:9")
        pipe.incr.assert_called_once_with("relay:failed")
        key, record = pipe.lpush.call_args.args
        assert key == "relay:failures"
        assert json.loads(record)["reason"].startswith("Unreadable job body")
        pipe.execute.assert_awaited_once()

    async def test_recover_moves_stalled_jobs_back(self, queue, mock_redis):
        mock_redis.lmove.side_effect = ["1", "2", None]

        await queue._recover()

        assert mock_redis.lmove.await_count == 3
        mock_redis.lmove.assert_awaited_with("relay:active", "relay:waiting", "RIGHT", "LEFT")

    async def test_recover_can_be_disabled(self, mock_redis):
        queue = RedisJobQueue("relay", client=mock_redis, recover_stalled=False)

        await queue._recover()

        mock_redis.lmove.assert_not_awaited()


@pytest.mark.unit
@pytest.mark.asyncio
class TestSettle:
    async def test_completed(self, queue, pipe):
        await queue._settle(QueuedJob(id="5", data={}), JobOutcome.COMPLETED)

        pipe.lrem.assert_called_once_with("relay:active", 1, "5")
        pipe.delete.assert_called_once_with("relay:job:5")
        pipe.incr.assert_called_once_with("relay:completed")
        pipe.lpush.assert_not_called()

    async def test_retried_is_counted_without_failure_record(self, queue, pipe):
        await queue._settle(QueuedJob(id="5", data={}), JobOutcome.RETRIED, "HTTP 500")

        pipe.incr.assert_called_once_with("relay:retried")
        pipe.lpush.assert_not_called()

    async def test_failed_keeps_bounded_record(self, queue, pipe):
        await queue._settle(QueuedJob(id="5", data={"routeId": "r1"}), JobOutcome.FAILED, "HTTP 400")

        pipe.incr.assert_called_once_with("relay:failed")
        key, raw = pipe.lpush.call_args.args
        assert key == "relay:failures"
        record = json.loads(raw)
        assert record["job_id"] == "5"
        assert record["reason"] == "HTTP 400"
        assert record["data"] == {"routeId": "r1"}
        pipe.ltrim.assert_called_once_with("relay:failures", 0, 99)


@pytest.mark.unit
@pytest.mark.asyncio
class TestInspection:
    async def test_stats(self, queue, mock_redis):
        mock_redis.llen.side_effect = lambda key: {"relay:waiting": 3, "relay:active": 1}[key]
        mock_redis.zcard.return_value = 2
        mock_redis.mget.return_value = ["10", None, "4"]

        stats = await queue.stats()

        assert stats.as_dict() == {
            "waiting": 3,
            "active": 1,
            "completed": 10,
            "delayed": 2,
            "failed": 0,
            "retried": 4,
        }
        mock_redis.mget.assert_awaited_once_with(["relay:completed", "relay:failed", "relay:retried"])

    async def test_recent_failures(self, queue, mock_redis):
        record = FailureRecord(
            job_id="5",
            data={"routeId": "r1"},
            reason="boom",
            failed_at=datetime(2025, 1, 1, tzinfo=UTC),
        )
        mock_redis.lrange.return_value = [json.dumps(record.to_json())]

        assert await queue.recent_failures(5) == [record]
        mock_redis.lrange.assert_awaited_once_with("relay:failures", 0, 4)

    async def test_stats_failure_becomes_queue_error(self, queue, mock_redis):
        mock_redis.zcard.side_effect = RedisConnectionError("down")

        with pytest.raises(QueueError):
            await queue.stats()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_client_required():
    queue = RedisJobQueue("relay")

    with pytest.raises(QueueError):
        queue.client  # noqa: B018
    with pytest.raises(QueueError):
        await queue.connect()
