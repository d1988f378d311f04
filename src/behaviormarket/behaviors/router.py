"""Behavior log endpoints: /api/behaviors."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from behaviormarket.auth.dependencies import get_current_user
from behaviormarket.behaviors.schemas import (
    BehaviorAnalyticsResponse,
    BehaviorCategory,
    BehaviorCreate,
    BehaviorCreatedResponse,
    BehaviorListResponse,
    BehaviorResponse,
    BehaviorUpdate,
)
from behaviormarket.behaviors.service import (
    apply_log_side_effects,
    create_behavior,
    delete_behavior,
    get_behavior_analytics,
    list_behaviors,
    update_behavior,
)
from behaviormarket.database import get_session
from behaviormarket.db.models import User
from behaviormarket.dependencies import get_optional_redis_dep
from behaviormarket.subscriptions.gating import check_usage_limit

router = APIRouter(prefix="/api/behaviors", tags=["Behaviors"])


@router.get("", response_model=BehaviorListResponse)
async def get_behaviors(
    category: BehaviorCategory | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> BehaviorListResponse:
    behaviors, total = await list_behaviors(db, user.id, category, limit, offset)
    return BehaviorListResponse(
        behaviors=[BehaviorResponse.model_validate(b) for b in behaviors],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.post("", response_model=BehaviorCreatedResponse, status_code=201)
async def log_behavior(
    body: BehaviorCreate,
    user: User = Depends(check_usage_limit("max_behavior_logs")),
    db: AsyncSession = Depends(get_session),
    redis: Redis | None = Depends(get_optional_redis_dep),
) -> BehaviorCreatedResponse:
    """Log a behavior. XP, streak and challenge updates are best-effort."""
    log = await create_behavior(db, user.id, body)
    behavior = BehaviorResponse.model_validate(log)
    effects = await apply_log_side_effects(db, redis, log)
    return BehaviorCreatedResponse(behavior=behavior, **effects)


@router.get("/analytics", response_model=BehaviorAnalyticsResponse)
async def behavior_analytics(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> BehaviorAnalyticsResponse:
    return BehaviorAnalyticsResponse(**await get_behavior_analytics(db, user.id))


@router.put("/{behavior_id}", response_model=BehaviorResponse)
async def edit_behavior(
    behavior_id: int,
    body: BehaviorUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> BehaviorResponse:
    try:
        log = await update_behavior(db, user.id, behavior_id, body)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    await db.commit()
    return BehaviorResponse.model_validate(log)


@router.delete("/{behavior_id}")
async def remove_behavior(
    behavior_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, str]:
    try:
        await delete_behavior(db, user.id, behavior_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    await db.commit()
    return {"message": "Behavior deleted successfully"}
