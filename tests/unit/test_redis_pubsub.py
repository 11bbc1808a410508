"""Tests for the Redis change feed (publisher and message dispatch)."""

import json
from unittest.mock import AsyncMock

import pytest
import redis.asyncio as redis

from app.infrastructure.messaging.redis_pubsub import (
    ChangeEventPublisher,
    dispatch_change_message,
)

PAYLOAD = {"type": "INSERT", "table": "notes", "record": {"id": "n1", "user_id": "user-1"}}


@pytest.fixture
def service() -> AsyncMock:
    return AsyncMock()


async def test_pmessage_is_dispatched_to_owner(service: AsyncMock) -> None:
    message = {
        "type": "pmessage",
        "pattern": "db_changes:*",
        "channel": "db_changes:user-1",
        "data": json.dumps(PAYLOAD),
    }
    assert await dispatch_change_message(service, message) is True
    service.handle_change_payload.assert_awaited_once_with("user-1", PAYLOAD)


async def test_bytes_channel_is_decoded(service: AsyncMock) -> None:
    message = {"type": "pmessage", "channel": b"db_changes:user-2", "data": json.dumps(PAYLOAD)}
    assert await dispatch_change_message(service, message) is True
    service.handle_change_payload.assert_awaited_once_with("user-2", PAYLOAD)


@pytest.mark.parametrize(
    "message",
    [
        {"type": "psubscribe", "channel": "db_changes:*", "data": 1},
        {"type": "pmessage", "channel": "db_changes:", "data": "{}"},
        {"type": "pmessage", "channel": "db_changes:user-1", "data": "not json"},
        {"type": "pmessage", "channel": "db_changes:user-1", "data": "[1, 2]"},
        {"type": "pmessage", "channel": "db_changes:user-1"},
    ],
)
async def test_unusable_messages_are_skipped(service: AsyncMock, message: dict) -> None:
    assert await dispatch_change_message(service, message) is False
    service.handle_change_payload.assert_not_awaited()


async def test_publish_to_user_channel() -> None:
    client = AsyncMock()
    publisher = ChangeEventPublisher(client)
    assert await publisher.publish("user-1", PAYLOAD) is True
    channel, body = client.publish.await_args.args
    assert channel == "db_changes:user-1"
    assert json.loads(body) == PAYLOAD


async def test_publish_without_redis_returns_false() -> None:
    publisher = ChangeEventPublisher()
    assert not publisher.is_available()
    assert await publisher.publish("user-1", PAYLOAD) is False


async def test_publish_failure_returns_false() -> None:
    client = AsyncMock()
    client.publish.side_effect = redis.ConnectionError("gone")
    publisher = ChangeEventPublisher(client)
    assert await publisher.publish("user-1", PAYLOAD) is False
