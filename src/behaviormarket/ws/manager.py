"""WebSocket connection registry.

Tracks live sockets per user and per channel and fans messages out to
them. Sockets whose sends fail are dropped.
"""

from __future__ import annotations

import json
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any

import structlog
from fastapi import WebSocket

logger = structlog.get_logger()

VALID_CHANNELS = {"dashboard", "leaderboard", "marketplace", "challenges", "chat"}


def channel_key(channel: str, room: str | None = None) -> str:
    """Chat is partitioned by room: ``chat:{room}``. Other channels are global."""
    if channel == "chat" and room:
        return f"chat:{room}"
    return channel


@dataclass
class ClientConnection:
    """One accepted WebSocket."""

    websocket: WebSocket
    user_id: int
    subscriptions: set[str] = field(default_factory=set)
    connected_at: float = field(default_factory=time.time)
    last_activity: float = field(default_factory=time.time)
    messages_sent: int = 0


class ConnectionManager:
    """In-process registry of WebSocket clients."""

    def __init__(self) -> None:
        self._connections: dict[str, ClientConnection] = {}
        self._channels: dict[str, set[str]] = defaultdict(set)  # channel key -> conn ids
        self._user_connections: dict[int, set[str]] = defaultdict(set)

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    @property
    def online_users(self) -> int:
        return len(self._user_connections)

    async def connect(self, websocket: WebSocket, conn_id: str, user_id: int) -> None:
        await websocket.accept()
        self._connections[conn_id] = ClientConnection(websocket=websocket, user_id=user_id)
        self._user_connections[user_id].add(conn_id)
        logger.info("ws_connected", conn_id=conn_id, user_id=user_id)

    async def disconnect(self, conn_id: str) -> None:
        client = self._connections.pop(conn_id, None)
        if client is None:
            return

        for key in client.subscriptions:
            self._channels[key].discard(conn_id)
            if not self._channels[key]:
                del self._channels[key]

        self._user_connections[client.user_id].discard(conn_id)
        if not self._user_connections[client.user_id]:
            del self._user_connections[client.user_id]

        logger.info("ws_disconnected", conn_id=conn_id, user_id=client.user_id)

    async def subscribe(self, conn_id: str, channel: str, room: str | None = None) -> str | None:
        """Subscribe to a channel (or chat room). Returns the key, or None if invalid."""
        client = self._connections.get(conn_id)
        if client is None or channel not in VALID_CHANNELS:
            return None
        key = channel_key(channel, room)
        client.subscriptions.add(key)
        self._channels[key].add(conn_id)
        return key

    async def unsubscribe(self, conn_id: str, channel: str, room: str | None = None) -> bool:
        client = self._connections.get(conn_id)
        if client is None:
            return False
        key = channel_key(channel, room)
        client.subscriptions.discard(key)
        self._channels.get(key, set()).discard(conn_id)
        return True

    def touch(self, conn_id: str) -> None:
        client = self._connections.get(conn_id)
        if client is not None:
            client.last_activity = time.time()

    async def _send(self, conn_ids: list[str], payload: str) -> int:
        sent = 0
        failed: list[str] = []
        for conn_id in conn_ids:
            client = self._connections.get(conn_id)
            if client is None:
                continue
            try:
                await client.websocket.send_text(payload)
            except Exception:
                failed.append(conn_id)
                continue
            client.messages_sent += 1
            sent += 1

        for conn_id in failed:
            await self.disconnect(conn_id)
        return sent

    async def broadcast_to_channel(self, channel: str, message: dict[str, Any]) -> int:
        """Send ``{"channel", "data"}`` to every subscriber of a channel key."""
        conn_ids = list(self._channels.get(channel, ()))
        if not conn_ids:
            return 0
        return await self._send(conn_ids, json.dumps({"channel": channel, "data": message}, default=str))

    async def send_to_user_direct(self, user_id: int, message: dict[str, Any]) -> int:
        """Send to all of a user's sockets regardless of subscriptions."""
        conn_ids = list(self._user_connections.get(user_id, ()))
        if not conn_ids:
            return 0
        return await self._send(conn_ids, json.dumps(message, default=str))

    def get_stats(self) -> dict[str, Any]:
        return {
            "total_connections": len(self._connections),
            "unique_users": len(self._user_connections),
            "channels": {key: len(conns) for key, conns in self._channels.items() if conns},
        }


manager = ConnectionManager()
