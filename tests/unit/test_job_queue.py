"""Unit tests for job queue implementations."""

import json
import uuid
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from backend.chatbot.clock import ManualClock
from backend.chatbot.jobs.queue import EXPORT_LEAD, InMemoryJobQueue, RedisJobQueue


@pytest.mark.asyncio
async def test_redis_queue_pushes_envelope() -> None:
    client = MagicMock()
    client.lpush = AsyncMock(return_value=1)
    clock = ManualClock(datetime(2026, 1, 1, tzinfo=timezone.utc))
    queue = RedisJobQueue(client, "chatbot:jobs", clock)
    payload = {"session_id": str(uuid.uuid4()), "lead_id": str(uuid.uuid4())}

    await queue.enqueue(EXPORT_LEAD, payload)

    client.lpush.assert_awaited_once()
    name, raw = client.lpush.await_args.args
    assert name == "chatbot:jobs"
    envelope = json.loads(raw)
    assert envelope["kind"] == EXPORT_LEAD
    assert envelope["payload"] == payload
    assert envelope["enqueued_at"] == "2026-01-01T00:00:00+00:00"
    uuid.UUID(envelope["id"])


@pytest.mark.asyncio
async def test_redis_queue_propagates_failures() -> None:
    client = MagicMock()
    client.lpush = AsyncMock(side_effect=ConnectionError("redis down"))
    queue = RedisJobQueue(client, "chatbot:jobs")

    with pytest.raises(ConnectionError):
        await queue.enqueue(EXPORT_LEAD, {})


@pytest.mark.asyncio
async def test_in_memory_queue_copies_payload() -> None:
    queue = InMemoryJobQueue()
    payload = {"lead_id": "1"}

    await queue.enqueue(EXPORT_LEAD, payload)
    payload["lead_id"] = "2"

    assert queue.jobs == [(EXPORT_LEAD, {"lead_id": "1"})]
