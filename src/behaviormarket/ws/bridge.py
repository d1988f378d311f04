"""Relays Redis pub/sub events to WebSocket clients.

``ws:user:{id}`` carries per-user events from any process; the
``pubsub:*`` channels carry platform-wide events mapped onto WS channels.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

import redis.asyncio as aioredis
import structlog

from behaviormarket.ws.manager import ConnectionManager, manager

logger = structlog.get_logger()

USER_PATTERN = "ws:user:*"

CHANNEL_MAP: dict[str, str] = {
    "pubsub:global_stats": "dashboard",
    "pubsub:leaderboard_update": "leaderboard",
    "pubsub:marketplace_purchase": "marketplace",
    "pubsub:challenge_update": "challenges",
}


class PubSubBridge:
    """Listens on Redis and forwards each message to the connection manager."""

    def __init__(self, redis_client: aioredis.Redis, connections: ConnectionManager = manager) -> None:
        self.redis = redis_client
        self.connections = connections
        self._running = False

    async def handle_message(self, message: dict[str, Any]) -> int:
        """Deliver one pub/sub message. Returns the number of sockets reached."""
        redis_channel = message.get("channel", "")
        if isinstance(redis_channel, bytes):
            redis_channel = redis_channel.decode()

        try:
            data = message.get("data", b"")
            if isinstance(data, bytes):
                data = data.decode()
            payload = json.loads(data)
        except (json.JSONDecodeError, UnicodeDecodeError, TypeError):
            logger.warning("pubsub_invalid_message", channel=redis_channel)
            return 0
        if not isinstance(payload, dict):
            logger.warning("pubsub_non_object_payload", channel=redis_channel)
            return 0

        if message.get("type") == "pmessage" and redis_channel.startswith("ws:user:"):
            try:
                user_id = int(redis_channel.rsplit(":", 1)[-1])
            except ValueError:
                logger.warning("pubsub_invalid_user_id", channel=redis_channel)
                return 0
            return await self.connections.send_to_user_direct(
                user_id,
                {"type": payload.get("event", "notification"), "payload": payload.get("data", payload)},
            )

        ws_channel = CHANNEL_MAP.get(redis_channel)
        if ws_channel is None:
            return 0
        return await self.connections.broadcast_to_channel(
            ws_channel, {"type": redis_channel.split(":", 1)[-1], **payload}
        )

    async def start(self) -> None:
        self._running = True
        pubsub = self.redis.pubsub()
        await pubsub.subscribe(*CHANNEL_MAP)
        await pubsub.psubscribe(USER_PATTERN)
        logger.info("pubsub_bridge_started", channels=list(CHANNEL_MAP), patterns=[USER_PATTERN])

        try:
            while self._running:
                message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
                if message is None:
                    continue
                try:
                    await self.handle_message(message)
                except Exception:
                    logger.exception("pubsub_message_failed", channel=message.get("channel"))
        except asyncio.CancelledError:
            pass
        finally:
            await pubsub.unsubscribe()
            await pubsub.punsubscribe()
            await pubsub.aclose()
            logger.info("pubsub_bridge_stopped")

    async def stop(self) -> None:
        self._running = False
