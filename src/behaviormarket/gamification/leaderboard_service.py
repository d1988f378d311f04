"""Leaderboards over XP, streaks and earnings."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import select

from behaviormarket.db.models import User, UserGamification

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

LEADERBOARD_TYPES = {
    "xp": "XP",
    "streak": "Day Streak",
    "earnings": "Earned",
}


async def get_leaderboard(db: AsyncSession, type_: str = "xp", limit: int = 10) -> list[dict[str, Any]]:
    """Top active users for a leaderboard type. Raises ValueError on unknown type."""
    if type_ not in LEADERBOARD_TYPES:
        msg = f"Invalid leaderboard type: {type_}"
        raise ValueError(msg)

    stmt = (
        select(User, UserGamification)
        .outerjoin(UserGamification, UserGamification.user_id == User.id)
        .where(User.is_active.is_(True), User.role == "user")
    )
    if type_ == "xp":
        stmt = stmt.where(UserGamification.total_xp > 0).order_by(UserGamification.total_xp.desc())
    elif type_ == "streak":
        stmt = stmt.where(UserGamification.current_streak > 0).order_by(UserGamification.current_streak.desc())
    else:
        stmt = stmt.order_by(User.total_earnings.desc())

    rows = (await db.execute(stmt.order_by(User.id.asc()).limit(limit))).all()

    board = []
    for rank, (user, gam) in enumerate(rows, start=1):
        if type_ == "xp":
            value: Any = gam.total_xp if gam else 0
        elif type_ == "streak":
            value = gam.current_streak if gam else 0
        else:
            value = user.total_earnings
        board.append(
            {
                "rank": rank,
                "user": {"id": user.id, "name": user.full_name, "avatar": user.avatar_url},
                "level": gam.level if gam else 1,
                "stats": {"value": value, "label": LEADERBOARD_TYPES[type_]},
            }
        )
    return board
