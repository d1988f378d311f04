"""User endpoints: /api/users."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from behaviormarket.auth.dependencies import get_current_user
from behaviormarket.auth.schemas import UserResponse
from behaviormarket.database import get_session
from behaviormarket.db.models import User
from behaviormarket.users.schemas import (
    DashboardResponse,
    EarningsResponse,
    ProfileResponse,
    ProfileUpdate,
    TransactionResponse,
)
from behaviormarket.users.service import get_dashboard, get_earnings, update_profile

router = APIRouter(prefix="/api/users", tags=["Users"])


@router.get("/dashboard", response_model=DashboardResponse)
async def dashboard(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> DashboardResponse:
    return DashboardResponse.model_validate(await get_dashboard(db, user), from_attributes=True)


@router.put("/profile", response_model=ProfileResponse)
async def edit_profile(
    body: ProfileUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> ProfileResponse:
    user = await update_profile(db, user, **body.model_dump(exclude_unset=True))
    await db.commit()
    return ProfileResponse(user=UserResponse.model_validate(user))


@router.get("/earnings", response_model=EarningsResponse)
async def earnings(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> EarningsResponse:
    rows, total = await get_earnings(db, user.id)
    return EarningsResponse(
        earnings=[TransactionResponse.model_validate(t) for t in rows],
        total_earnings=float(total),
    )
