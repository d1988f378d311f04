"""Redis publishing helpers used for WebSocket delivery."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from behaviormarket.db.models import Notification
from behaviormarket.notifications.push import (
    notification_payload,
    publish_broadcast,
    publish_user_event,
    push_notification_to_user,
    user_channel,
)
from behaviormarket.notifications.service import should_deliver


def _notification() -> Notification:
    return Notification(
        id=7,
        user_id=42,
        type="gamification",
        subtype="level_up",
        title="Level 3 reached!",
        description=None,
        action_url="/profile",
        read=False,
        notification_metadata={"level": 3},
        created_at=datetime(2024, 5, 15, 12, 0, tzinfo=timezone.utc),
    )


def test_user_channel() -> None:
    assert user_channel(42) == "ws:user:42"


def test_payload_shape() -> None:
    payload = notification_payload(_notification())
    assert payload["id"] == "7"
    assert payload["timestamp"] == "2024-05-15T12:00:00+00:00"
    assert payload["metadata"] == {"level": 3}
    assert payload["read"] is False


@pytest.mark.asyncio
async def test_publish_user_event() -> None:
    redis = AsyncMock()
    assert await publish_user_event(redis, 42, "xp_gained", {"amount": 10}) is True
    channel, message = redis.publish.call_args[0]
    assert channel == "ws:user:42"
    assert json.loads(message) == {"event": "xp_gained", "data": {"amount": 10}}


@pytest.mark.asyncio
async def test_publish_without_redis() -> None:
    assert await publish_user_event(None, 42, "xp_gained", {}) is False
    assert await publish_broadcast(None, "pubsub:global_stats", {}) is False


@pytest.mark.asyncio
async def test_publish_failure_is_reported_not_raised() -> None:
    redis = AsyncMock()
    redis.publish.side_effect = ConnectionError("redis down")
    assert await push_notification_to_user(redis, _notification()) is False
    assert await publish_broadcast(redis, "pubsub:marketplace_purchase", {"id": 1}) is False


@pytest.mark.asyncio
async def test_publish_broadcast() -> None:
    redis = AsyncMock()
    assert await publish_broadcast(redis, "pubsub:marketplace_purchase", {"amount": "10.00"}) is True
    redis.publish.assert_awaited_once_with("pubsub:marketplace_purchase", '{"amount": "10.00"}')


@pytest.mark.parametrize(
    ("preferences", "expected"),
    [
        (None, True),
        ({}, True),
        ({"notifications": {"in_app": True}}, True),
        ({"notifications": {"in_app": False}}, False),
    ],
)
def test_should_deliver(preferences, expected: bool) -> None:
    assert should_deliver(preferences) is expected
