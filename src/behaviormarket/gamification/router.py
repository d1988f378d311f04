"""Gamification endpoints: /api/gamification."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from behaviormarket.auth.dependencies import get_current_user, require_admin
from behaviormarket.database import get_session
from behaviormarket.db.models import User
from behaviormarket.gamification.challenge_service import (
    AlreadyJoinedError,
    ChallengeNotFoundError,
    create_challenge,
    join_challenge,
    list_active_challenges,
)
from behaviormarket.gamification.leaderboard_service import get_leaderboard
from behaviormarket.gamification.level_thresholds import LEVEL_THRESHOLDS, compute_level, get_level_reward
from behaviormarket.gamification.rules import get_streak_multiplier
from behaviormarket.gamification.schemas import (
    AllLevelsResponse,
    ChallengeListItem,
    ChallengeResponse,
    CreateChallengeRequest,
    GamificationSummaryResponse,
    LeaderboardResponse,
    LevelEntry,
    ParticipationResponse,
)
from behaviormarket.gamification.xp_service import get_or_create_gamification
from behaviormarket.subscriptions.gating import check_usage_limit

router = APIRouter(prefix="/api/gamification", tags=["Gamification"])


@router.get("/levels", response_model=AllLevelsResponse)
async def list_levels() -> AllLevelsResponse:
    return AllLevelsResponse(
        levels=[
            LevelEntry(level=i + 1, xp_required=xp, reward=get_level_reward(i + 1))
            for i, xp in enumerate(LEVEL_THRESHOLDS)
        ]
    )


@router.get("/leaderboard", response_model=LeaderboardResponse)
async def leaderboard(
    type: str = Query("xp", pattern="^(xp|streak|earnings)$"),  # noqa: A002
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_session),
) -> LeaderboardResponse:
    return LeaderboardResponse(type=type, entries=await get_leaderboard(db, type, limit))


@router.get("/me", response_model=GamificationSummaryResponse)
async def my_gamification(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> GamificationSummaryResponse:
    gam = await get_or_create_gamification(db, user.id)
    await db.commit()
    level_info = compute_level(gam.total_xp)
    return GamificationSummaryResponse(
        total_xp=gam.total_xp,
        **level_info,
        current_streak=gam.current_streak,
        longest_streak=gam.longest_streak,
        last_streak_date=gam.last_streak_date,
        streak_multiplier=get_streak_multiplier(gam.current_streak),
        badges=list(gam.badges or []),
    )


@router.get("/challenges", response_model=list[ChallengeListItem])
async def list_challenges(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> list[ChallengeListItem]:
    items = await list_active_challenges(db, user.id)
    return [
        ChallengeListItem(
            challenge=ChallengeResponse.model_validate(item["challenge"]),
            participation=(
                ParticipationResponse.model_validate(item["participation"]) if item["participation"] else None
            ),
        )
        for item in items
    ]


@router.post("/challenges", response_model=ChallengeResponse, status_code=201)
async def new_challenge(
    body: CreateChallengeRequest,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> ChallengeResponse:
    try:
        challenge = await create_challenge(db, body.template, body.difficulty)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return ChallengeResponse.model_validate(challenge)


@router.post("/challenges/{challenge_id}/join", response_model=ParticipationResponse, status_code=201)
async def join(
    challenge_id: int,
    user: User = Depends(check_usage_limit("max_challenges")),
    db: AsyncSession = Depends(get_session),
) -> ParticipationResponse:
    try:
        participation = await join_challenge(db, user.id, challenge_id)
    except ChallengeNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except AlreadyJoinedError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return ParticipationResponse.model_validate(participation)
