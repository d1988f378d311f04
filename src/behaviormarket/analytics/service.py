"""Loads the data behind the analytics endpoints."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

from sqlalchemy import select

from behaviormarket.analytics.reports import (
    TIME_RANGE_DAYS,
    behavior_trends,
    category_breakdown,
    correlations,
    model_performance,
    personality,
)
from behaviormarket.db.models import BehaviorLog, Prediction

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


async def _logs_since(db: AsyncSession, user_id: int, since: datetime, *, rated_only: bool = False) -> list[BehaviorLog]:
    stmt = (
        select(BehaviorLog)
        .where(BehaviorLog.user_id == user_id, BehaviorLog.timestamp >= since)
        .order_by(BehaviorLog.timestamp.asc())
    )
    if rated_only:
        stmt = stmt.where(
            BehaviorLog.mood_rating.is_not(None),
            BehaviorLog.energy_level.is_not(None),
            BehaviorLog.stress_level.is_not(None),
        )
    return list((await db.execute(stmt)).scalars().all())


def _window_start(time_range: str, now: datetime | None) -> datetime:
    now = now or datetime.now(timezone.utc)
    return now - timedelta(days=TIME_RANGE_DAYS[time_range])


async def basic_analytics(
    db: AsyncSession, user_id: int, time_range: str = "30d", now: datetime | None = None
) -> dict[str, Any]:
    logs = await _logs_since(db, user_id, _window_start(time_range, now))
    return {
        "behavior_trends": behavior_trends(logs),
        "category_breakdown": category_breakdown(logs),
        "total_logs": len(logs),
        "time_range": time_range,
    }


async def correlation_analysis(
    db: AsyncSession, user_id: int, time_range: str = "30d", now: datetime | None = None
) -> dict[str, Any]:
    logs = await _logs_since(db, user_id, _window_start(time_range, now), rated_only=True)
    return {"correlations": correlations(logs), "time_range": time_range}


async def personality_insights(db: AsyncSession, user_id: int) -> dict[str, Any]:
    result = await db.execute(
        select(BehaviorLog)
        .where(BehaviorLog.user_id == user_id)
        .order_by(BehaviorLog.timestamp.desc())
        .limit(1000)
    )
    return {"personality_insights": personality(list(result.scalars().all()))}


async def prediction_model_performance(db: AsyncSession, user_id: int) -> dict[str, Any]:
    result = await db.execute(
        select(Prediction).where(
            Prediction.user_id == user_id,
            Prediction.actual_outcome.is_not(None),
            Prediction.accuracy.is_not(None),
        )
    )
    return {"predictive_accuracy": model_performance(list(result.scalars().all()))}
