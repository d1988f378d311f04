"""Admin endpoints: /api/admin (admin role only)."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from behaviormarket.admin.service import (
    dashboard_stats,
    deactivate_user,
    list_transactions,
    list_users,
    pagination,
    revenue_analytics,
    set_user_tier,
    system_health,
)
from behaviormarket.auth.dependencies import require_admin
from behaviormarket.auth.schemas import UserResponse
from behaviormarket.database import get_session
from behaviormarket.users.schemas import TransactionResponse

logger = structlog.get_logger()

router = APIRouter(prefix="/api/admin", tags=["Admin"], dependencies=[Depends(require_admin)])


class TierOverride(BaseModel):
    tier: str


@router.get("/dashboard")
async def dashboard(db: AsyncSession = Depends(get_session)) -> dict[str, Any]:
    return {"stats": await dashboard_stats(db)}


@router.get("/users")
async def users(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    role: Literal["user", "company", "admin"] | None = Query(None),
    subscription_tier: Literal["free", "premium", "enterprise"] | None = Query(None),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    rows, total = await list_users(db, page, limit, role, subscription_tier)
    return {
        "users": [UserResponse.model_validate(u).model_dump(mode="json") for u in rows],
        "pagination": pagination(total, page, limit),
    }


@router.get("/transactions")
async def transactions(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    type: str | None = Query(None, max_length=32),  # noqa: A002
    status: str | None = Query(None, max_length=16),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    rows, total = await list_transactions(db, page, limit, type, status)
    return {
        "transactions": [TransactionResponse.model_validate(t).model_dump(mode="json") for t in rows],
        "pagination": pagination(total, page, limit),
    }


@router.get("/analytics/revenue")
async def revenue(
    period: Literal["7_days", "30_days", "90_days", "1_year"] = Query("30_days"),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    return {"analytics": await revenue_analytics(db, period)}


@router.put("/users/{user_id}/subscription")
async def override_subscription(
    user_id: int,
    body: TierOverride,
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    try:
        user = await set_user_tier(db, user_id, body.tier)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    await db.commit()
    return {
        "message": "User subscription updated successfully",
        "user": {"id": user.id, "email": user.email, "subscription_tier": user.subscription_tier},
    }


@router.put("/users/{user_id}/deactivate")
async def deactivate(user_id: int, db: AsyncSession = Depends(get_session)) -> dict[str, str]:
    try:
        await deactivate_user(db, user_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    await db.commit()
    return {"message": "User deactivated successfully"}


@router.get("/health")
async def health(db: AsyncSession = Depends(get_session)) -> Any:
    try:
        return await system_health(db)
    except Exception as e:
        logger.exception("admin_health_check_failed")
        return JSONResponse(
            status_code=500,
            content={"status": "unhealthy", "error": str(e), "timestamp": datetime.now(timezone.utc).isoformat()},
        )
