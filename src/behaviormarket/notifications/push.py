"""Publish per-user events on Redis for delivery by the WebSocket bridge."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from redis.asyncio import Redis

    from behaviormarket.db.models import Notification

logger = logging.getLogger(__name__)


def user_channel(user_id: int) -> str:
    return f"ws:user:{user_id}"


def notification_payload(notification: Notification) -> dict[str, Any]:
    return {
        "id": str(notification.id),
        "type": notification.type,
        "subtype": notification.subtype,
        "title": notification.title,
        "description": notification.description,
        "timestamp": notification.created_at.isoformat() if notification.created_at else None,
        "read": bool(notification.read),
        "action_url": notification.action_url,
        "metadata": notification.notification_metadata or {},
    }


async def publish_user_event(redis: Redis | None, user_id: int, event: str, data: dict[str, Any]) -> bool:
    """Publish ``{"event", "data"}`` to ``ws:user:{user_id}``.

    Returns False (after logging) when Redis is missing or the publish fails.
    """
    if redis is None:
        return False
    try:
        await redis.publish(user_channel(user_id), json.dumps({"event": event, "data": data}, default=str))
    except Exception:
        logger.warning("Failed to publish %s to ws:user:%s", event, user_id, exc_info=True)
        return False
    return True


async def push_notification_to_user(redis: Redis | None, notification: Notification) -> bool:
    """Push an already-flushed notification to the user's sockets."""
    return await publish_user_event(redis, notification.user_id, "notification", notification_payload(notification))


async def publish_broadcast(redis: Redis | None, channel: str, data: dict[str, Any]) -> bool:
    """Publish a platform-wide event on a ``pubsub:*`` channel."""
    if redis is None:
        return False
    try:
        await redis.publish(channel, json.dumps(data, default=str))
    except Exception:
        logger.warning("Failed to publish to %s", channel, exc_info=True)
        return False
    return True
