"""WebSocket endpoint: token auth at connect, then JSON actions."""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from behaviormarket.auth.jwt import verify_token
from behaviormarket.ws.manager import channel_key, manager
from behaviormarket.ws.stats import safe_global_stats

logger = structlog.get_logger()

router = APIRouter()

MAX_CHAT_LENGTH = 500


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, token: str | None = Query(None)) -> None:
    """
    Client -> server::

        {"action": "subscribe", "channel": "leaderboard"}
        {"action": "subscribe", "channel": "chat", "room": "general"}
        {"action": "unsubscribe", "channel": "leaderboard"}
        {"action": "ping"}
        {"action": "activity_ping"}
        {"action": "chat", "room": "general", "message": "hi"}

    Server -> client::

        {"type": "welcome", "payload": {...}}
        {"channel": "leaderboard", "data": {...}}
        {"type": "<event>", "payload": {...}}      # per-user events
        {"type": "pong"} / {"type": "subscribed", ...} / {"type": "error", "message": ...}
    """
    if not token:
        await websocket.close(code=4001, reason="Authentication failed: Access token required")
        return
    try:
        payload = verify_token(token, expected_type="access")
        user_id = int(payload["sub"])
    except Exception as e:
        await websocket.close(code=4001, reason=f"Authentication failed: {e}")
        return

    conn_id = str(uuid.uuid4())
    await manager.connect(websocket, conn_id, user_id)

    try:
        await websocket.send_json(
            {
                "type": "welcome",
                "payload": {
                    "message": "Connected to BehaviorMarket live updates",
                    "stats": await safe_global_stats(),
                    "online_users": manager.online_users,
                },
            }
        )

        while True:
            raw = await websocket.receive_text()
            try:
                msg = json.loads(raw)
            except json.JSONDecodeError:
                await websocket.send_json({"type": "error", "message": "Invalid JSON"})
                continue
            if not isinstance(msg, dict):
                await websocket.send_json({"type": "error", "message": "Invalid message"})
                continue

            action = msg.get("action")
            channel = str(msg.get("channel", ""))
            room = msg.get("room")

            if action == "subscribe":
                key = await manager.subscribe(conn_id, channel, room)
                if key:
                    await websocket.send_json({"type": "subscribed", "channel": key})
                else:
                    await websocket.send_json({"type": "error", "message": f"Invalid channel: {channel}"})

            elif action == "unsubscribe":
                await manager.unsubscribe(conn_id, channel, room)
                await websocket.send_json({"type": "unsubscribed", "channel": channel_key(channel, room)})

            elif action == "ping":
                await websocket.send_json({"type": "pong"})

            elif action == "activity_ping":
                manager.touch(conn_id)

            elif action == "chat":
                text = str(msg.get("message", "")).strip()
                if not room or not text or len(text) > MAX_CHAT_LENGTH:
                    await websocket.send_json({"type": "error", "message": "Chat needs a room and a message"})
                    continue
                await manager.broadcast_to_channel(
                    channel_key("chat", room),
                    {
                        "type": "chat",
                        "room": room,
                        "user_id": user_id,
                        "message": text,
                        "timestamp": datetime.now(timezone.utc).isoformat(),
                    },
                )

            else:
                await websocket.send_json({"type": "error", "message": f"Unknown action: {action}"})

    except WebSocketDisconnect:
        await manager.disconnect(conn_id)
    except Exception:
        logger.exception("ws_error", conn_id=conn_id)
        await manager.disconnect(conn_id)
