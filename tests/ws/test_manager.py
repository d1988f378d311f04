"""Unit tests for the WebSocket ConnectionManager."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from behaviormarket.ws.manager import VALID_CHANNELS, ConnectionManager, channel_key


@pytest.fixture
def mgr() -> ConnectionManager:
    """Fresh ConnectionManager for each test."""
    return ConnectionManager()


def _make_ws(*, fail_send: bool = False) -> MagicMock:
    """Create a mock WebSocket."""
    ws = AsyncMock()
    ws.accept = AsyncMock()
    if fail_send:
        ws.send_text = AsyncMock(side_effect=RuntimeError("connection closed"))
    else:
        ws.send_text = AsyncMock()
    return ws


def test_channel_key() -> None:
    assert channel_key("chat", "general") == "chat:general"
    assert channel_key("chat") == "chat"
    assert channel_key("leaderboard", "ignored") == "leaderboard"


class TestConnect:
    async def test_connect_registers_client(self, mgr: ConnectionManager) -> None:
        ws = _make_ws()
        await mgr.connect(ws, "conn-1", user_id=42)
        ws.accept.assert_awaited_once()
        assert mgr.connection_count == 1
        assert mgr.online_users == 1

    async def test_connect_multiple_same_user(self, mgr: ConnectionManager) -> None:
        await mgr.connect(_make_ws(), "conn-1", user_id=42)
        await mgr.connect(_make_ws(), "conn-2", user_id=42)
        assert mgr.connection_count == 2
        assert mgr.get_stats()["unique_users"] == 1


class TestDisconnect:
    async def test_disconnect_cleans_up(self, mgr: ConnectionManager) -> None:
        await mgr.connect(_make_ws(), "conn-1", user_id=42)
        await mgr.subscribe("conn-1", "leaderboard")
        await mgr.disconnect("conn-1")
        assert mgr.connection_count == 0
        assert mgr.online_users == 0
        assert "leaderboard" not in mgr.get_stats()["channels"]

    async def test_disconnect_nonexistent(self, mgr: ConnectionManager) -> None:
        await mgr.disconnect("nonexistent")
        assert mgr.connection_count == 0


class TestSubscribe:
    async def test_subscribe_valid_channel(self, mgr: ConnectionManager) -> None:
        await mgr.connect(_make_ws(), "conn-1", user_id=42)
        assert await mgr.subscribe("conn-1", "marketplace") == "marketplace"
        assert mgr.get_stats()["channels"]["marketplace"] == 1

    async def test_subscribe_chat_room(self, mgr: ConnectionManager) -> None:
        await mgr.connect(_make_ws(), "conn-1", user_id=42)
        assert await mgr.subscribe("conn-1", "chat", "general") == "chat:general"
        assert mgr.get_stats()["channels"] == {"chat:general": 1}

    async def test_subscribe_invalid_channel(self, mgr: ConnectionManager) -> None:
        await mgr.connect(_make_ws(), "conn-1", user_id=42)
        assert await mgr.subscribe("conn-1", "gossip") is None

    async def test_subscribe_all_valid_channels(self, mgr: ConnectionManager) -> None:
        await mgr.connect(_make_ws(), "conn-1", user_id=42)
        for ch in VALID_CHANNELS:
            assert await mgr.subscribe("conn-1", ch) == ch
        assert len(mgr.get_stats()["channels"]) == len(VALID_CHANNELS)

    async def test_subscribe_nonexistent_connection(self, mgr: ConnectionManager) -> None:
        assert await mgr.subscribe("nonexistent", "dashboard") is None

    async def test_unsubscribe(self, mgr: ConnectionManager) -> None:
        await mgr.connect(_make_ws(), "conn-1", user_id=42)
        await mgr.subscribe("conn-1", "chat", "general")
        assert await mgr.unsubscribe("conn-1", "chat", "general") is True
        assert mgr.get_stats()["channels"] == {}


class TestBroadcast:
    async def test_broadcast_reaches_subscribers_only(self, mgr: ConnectionManager) -> None:
        ws1, ws2 = _make_ws(), _make_ws()
        await mgr.connect(ws1, "conn-1", user_id=1)
        await mgr.connect(ws2, "conn-2", user_id=2)
        await mgr.subscribe("conn-1", "leaderboard")

        sent = await mgr.broadcast_to_channel("leaderboard", {"type": "test"})
        assert sent == 1
        ws1.send_text.assert_awaited_once()
        ws2.send_text.assert_not_awaited()

    async def test_chat_rooms_are_isolated(self, mgr: ConnectionManager) -> None:
        ws1, ws2 = _make_ws(), _make_ws()
        await mgr.connect(ws1, "conn-1", user_id=1)
        await mgr.connect(ws2, "conn-2", user_id=2)
        await mgr.subscribe("conn-1", "chat", "general")
        await mgr.subscribe("conn-2", "chat", "fitness")

        assert await mgr.broadcast_to_channel("chat:general", {"message": "hi"}) == 1
        ws2.send_text.assert_not_awaited()

    async def test_broadcast_empty_channel(self, mgr: ConnectionManager) -> None:
        assert await mgr.broadcast_to_channel("dashboard", {"type": "test"}) == 0

    async def test_dead_connection_cleaned_up(self, mgr: ConnectionManager) -> None:
        await mgr.connect(_make_ws(fail_send=True), "conn-dead", user_id=1)
        await mgr.subscribe("conn-dead", "dashboard")

        assert await mgr.broadcast_to_channel("dashboard", {"type": "test"}) == 0
        assert mgr.connection_count == 0

    async def test_broadcast_message_format(self, mgr: ConnectionManager) -> None:
        ws = _make_ws()
        await mgr.connect(ws, "conn-1", user_id=1)
        await mgr.subscribe("conn-1", "marketplace")

        await mgr.broadcast_to_channel("marketplace", {"type": "marketplace_purchase", "amount": 50})
        parsed = json.loads(ws.send_text.call_args[0][0])
        assert parsed == {"channel": "marketplace", "data": {"type": "marketplace_purchase", "amount": 50}}


class TestSendToUser:
    async def test_send_to_all_user_sockets(self, mgr: ConnectionManager) -> None:
        ws1, ws2, other = _make_ws(), _make_ws(), _make_ws()
        await mgr.connect(ws1, "conn-1", user_id=42)
        await mgr.connect(ws2, "conn-2", user_id=42)
        await mgr.connect(other, "conn-3", user_id=99)

        sent = await mgr.send_to_user_direct(42, {"type": "notification"})
        assert sent == 2
        other.send_text.assert_not_awaited()

    async def test_send_to_offline_user(self, mgr: ConnectionManager) -> None:
        assert await mgr.send_to_user_direct(7, {"type": "notification"}) == 0
