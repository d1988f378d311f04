"""Challenges: creation from templates, joining, progress and completion."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select

from behaviormarket.db.models import BehaviorLog, Challenge, Prediction, UserChallenge
from behaviormarket.gamification.rules import (
    ActivitySnapshot,
    build_challenge,
    compute_progress,
    is_challenge_complete,
)
from behaviormarket.gamification.xp_service import grant_xp
from behaviormarket.notifications.push import publish_broadcast
from behaviormarket.notifications.service import create_notification
from behaviormarket.users.service import credit_earnings

if TYPE_CHECKING:
    from redis.asyncio import Redis
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


class ChallengeNotFoundError(LookupError):
    """No challenge with the given id."""


class AlreadyJoinedError(Exception):
    """The user already participates in the challenge."""


async def create_challenge(
    db: AsyncSession,
    template: str,
    difficulty: str = "medium",
    now: datetime | None = None,
) -> Challenge:
    """Create a challenge from a template. Raises ValueError on bad input."""
    spec = build_challenge(template, difficulty)
    start = now or datetime.now(timezone.utc)
    challenge = Challenge(
        title=spec.title,
        description=spec.description,
        category=spec.category,
        difficulty=spec.difficulty,
        requirements=spec.requirements,
        reward_xp=spec.reward_xp,
        reward_money=spec.reward_money,
        start_date=start,
        end_date=start + timedelta(days=spec.duration_days),
        max_participants=100,
        current_participants=0,
        is_active=True,
    )
    db.add(challenge)
    await db.flush()
    return challenge


async def list_active_challenges(db: AsyncSession, user_id: int) -> list[dict[str, Any]]:
    """Active challenges with the caller's participation (if any) attached."""
    challenges = (
        await db.execute(
            select(Challenge).where(Challenge.is_active.is_(True)).order_by(Challenge.end_date.asc())
        )
    ).scalars().all()
    joined = {
        uc.challenge_id: uc
        for uc in (await db.execute(select(UserChallenge).where(UserChallenge.user_id == user_id))).scalars()
    }
    return [{"challenge": c, "participation": joined.get(c.id)} for c in challenges]


async def join_challenge(db: AsyncSession, user_id: int, challenge_id: int) -> UserChallenge:
    """
    Join a challenge.

    Raises, in order of checking:
        ChallengeNotFoundError: Unknown id.
        ValueError: Challenge inactive or full.
        AlreadyJoinedError: User already joined.
    """
    challenge = await db.get(Challenge, challenge_id)
    if challenge is None:
        msg = "Challenge not found"
        raise ChallengeNotFoundError(msg)
    if not challenge.is_active:
        msg = "Challenge is not active"
        raise ValueError(msg)
    if challenge.current_participants >= challenge.max_participants:
        msg = "Challenge is full"
        raise ValueError(msg)

    existing = await db.execute(
        select(UserChallenge.id).where(
            UserChallenge.user_id == user_id, UserChallenge.challenge_id == challenge_id
        )
    )
    if existing.scalar_one_or_none() is not None:
        msg = "Already joined this challenge"
        raise AlreadyJoinedError(msg)

    participation = UserChallenge(user_id=user_id, challenge_id=challenge_id, status="active", progress={})
    db.add(participation)
    challenge.current_participants += 1
    await db.flush()
    return participation


async def build_snapshot(db: AsyncSession, user_id: int, start: datetime, end: datetime) -> ActivitySnapshot:
    """Activity counters for a user between ``start`` and ``end``."""
    snapshot = ActivitySnapshot()
    rows = await db.execute(
        select(BehaviorLog.timestamp, BehaviorLog.category, BehaviorLog.mood_rating).where(
            BehaviorLog.user_id == user_id,
            BehaviorLog.timestamp >= start,
            BehaviorLog.timestamp <= end,
        )
    )
    for timestamp, category, mood in rows:
        day = timestamp.date()
        snapshot.logs_per_day[day] = snapshot.logs_per_day.get(day, 0) + 1
        snapshot.category_counts[category] = snapshot.category_counts.get(category, 0) + 1
        if mood is not None:
            snapshot.mood_logs += 1
            snapshot.mood_days.add(day)

    window = (Prediction.user_id == user_id, Prediction.created_at >= start, Prediction.created_at <= end)
    snapshot.predictions_generated = (await db.execute(select(func.count(Prediction.id)).where(*window))).scalar_one()
    snapshot.predictions_rated = (
        await db.execute(select(func.count(Prediction.id)).where(*window, Prediction.is_verified.is_(True)))
    ).scalar_one()
    return snapshot


async def update_challenge_progress(
    db: AsyncSession,
    redis: Redis | None,
    user_id: int,
    now: datetime | None = None,
) -> list[int]:
    """Recompute progress on the user's active challenges.

    Expired, unfinished challenges become ``abandoned``. Returns the ids of
    challenges completed by this call.
    """
    now = now or datetime.now(timezone.utc)
    rows = await db.execute(
        select(UserChallenge, Challenge)
        .join(Challenge, Challenge.id == UserChallenge.challenge_id)
        .where(UserChallenge.user_id == user_id, UserChallenge.status == "active")
    )

    completed: list[int] = []
    for participation, challenge in rows.all():
        window_end = min(challenge.end_date, now)
        snapshot = await build_snapshot(db, user_id, challenge.start_date, window_end)
        progress = compute_progress(challenge.requirements or {}, snapshot)
        participation.progress = progress

        if is_challenge_complete(challenge.requirements or {}, progress):
            await complete_challenge(db, redis, participation, challenge, now)
            completed.append(challenge.id)
        elif now > challenge.end_date:
            participation.status = "abandoned"

    await db.flush()
    return completed


async def complete_challenge(
    db: AsyncSession,
    redis: Redis | None,
    participation: UserChallenge,
    challenge: Challenge,
    now: datetime,
) -> None:
    participation.status = "completed"
    participation.completed_at = now
    user_id = participation.user_id
    logger.info("User %s completed challenge %s", user_id, challenge.id)

    if challenge.reward_xp > 0:
        await grant_xp(
            db,
            redis,
            user_id,
            challenge.reward_xp,
            "challenge",
            str(challenge.id),
            f"Challenge: {challenge.title}",
            f"challenge:{participation.id}",
        )
    if challenge.reward_money > 0:
        await credit_earnings(
            db,
            user_id,
            challenge.reward_money,
            f"Challenge reward: {challenge.title}",
            metadata={"source": "challenge", "challenge_id": challenge.id},
        )

    await create_notification(
        db,
        user_id,
        "gamification",
        "challenge_completed",
        "Challenge completed!",
        description=f"You earned {challenge.reward_xp} XP and ${challenge.reward_money}",
        metadata={"challenge_id": challenge.id, "title": challenge.title},
        redis=redis,
    )

    await publish_broadcast(
        redis, "pubsub:challenge_update", {"challenge_id": challenge.id, "user_id": user_id, "status": "completed"}
    )
