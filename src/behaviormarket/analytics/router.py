"""Analytics endpoints: /api/analytics."""

from __future__ import annotations

from typing import Any, Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from behaviormarket.analytics.service import (
    basic_analytics,
    correlation_analysis,
    personality_insights,
    prediction_model_performance,
)
from behaviormarket.auth.dependencies import get_current_user
from behaviormarket.database import get_session
from behaviormarket.db.models import User
from behaviormarket.subscriptions.gating import enterprise_feature, premium_feature

router = APIRouter(prefix="/api/analytics", tags=["Analytics"])

TimeRange = Literal["7d", "30d", "90d", "1y"]


@router.get("/basic")
async def basic(
    time_range: TimeRange = Query("30d"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    return await basic_analytics(db, user.id, time_range)


@router.get("/correlations")
async def correlations(
    time_range: TimeRange = Query("30d"),
    user: User = Depends(premium_feature("correlation_analysis")),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    return await correlation_analysis(db, user.id, time_range)


@router.get("/personality")
async def personality(
    user: User = Depends(enterprise_feature("personality_insights")),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    return await personality_insights(db, user.id)


@router.get("/model-performance")
async def model_performance(
    user: User = Depends(premium_feature("advanced_analytics")),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    return await prediction_model_performance(db, user.id)
