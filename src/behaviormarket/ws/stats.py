"""Platform-wide live stats for the dashboard channel."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from behaviormarket.database import get_session_factory
from behaviormarket.db.models import BehaviorLog, Challenge, User
from behaviormarket.notifications.push import publish_broadcast
from behaviormarket.redis_client import get_optional_redis
from behaviormarket.ws.manager import ConnectionManager, manager

logger = structlog.get_logger()

STATS_CHANNEL = "pubsub:global_stats"


def empty_stats(connections: ConnectionManager = manager) -> dict[str, Any]:
    return {
        "online_users": connections.online_users,
        "today_behaviors": 0,
        "active_challenges": 0,
        "total_earnings": 0.0,
    }


async def collect_global_stats(db: AsyncSession, connections: ConnectionManager = manager) -> dict[str, Any]:
    now = datetime.now(timezone.utc)
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)

    today_behaviors = (
        await db.execute(select(func.count(BehaviorLog.id)).where(BehaviorLog.timestamp >= today))
    ).scalar_one()
    active_challenges = (
        await db.execute(
            select(func.count(Challenge.id)).where(Challenge.is_active.is_(True), Challenge.end_date >= now)
        )
    ).scalar_one()
    total_earnings = (await db.execute(select(func.coalesce(func.sum(User.total_earnings), 0)))).scalar_one()

    return {
        "online_users": connections.online_users,
        "today_behaviors": today_behaviors,
        "active_challenges": active_challenges,
        "total_earnings": float(total_earnings),
    }


async def safe_global_stats(connections: ConnectionManager = manager) -> dict[str, Any]:
    """Global stats from a fresh session, or zeros when the database is unavailable."""
    try:
        async with get_session_factory()() as db:
            return await collect_global_stats(db, connections)
    except Exception:
        logger.warning("global_stats_failed", exc_info=True)
        return empty_stats(connections)


async def run_stats_broadcaster(interval_seconds: int, connections: ConnectionManager = manager) -> None:
    """Publish global stats every ``interval_seconds`` until cancelled.

    Goes through Redis when available so every process relays it;
    otherwise broadcasts to the local dashboard subscribers directly.
    """
    logger.info("stats_broadcaster_started", interval=interval_seconds)
    while True:
        await asyncio.sleep(interval_seconds)
        if not connections.connection_count:
            continue
        stats = await safe_global_stats(connections)
        if not await publish_broadcast(get_optional_redis(), STATS_CHANNEL, stats):
            await connections.broadcast_to_channel("dashboard", {"type": "global_stats", **stats})
