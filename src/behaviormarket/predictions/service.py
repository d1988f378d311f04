"""Prediction generation, verification, accuracy and the derived views."""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import func, select

from behaviormarket.db.models import BehaviorLog, Prediction
from behaviormarket.gamification.rules import PREDICTION_XP
from behaviormarket.gamification.xp_service import grant_xp
from behaviormarket.predictions.engine import MODEL_VERSION, PredictionEngine, target_date_for
from behaviormarket.predictions.insights import (
    advanced_analytics,
    generate_insights,
    prediction_recommendations,
    prediction_trends,
)
from behaviormarket.subscriptions.tiers import PREDICTION_LIMITS, normalize_tier

if TYPE_CHECKING:
    from redis.asyncio import Redis
    from sqlalchemy.ext.asyncio import AsyncSession

    from behaviormarket.db.models import User

logger = structlog.get_logger()

FEATURE_WINDOW = 100


class PredictionLimitError(PermissionError):
    """The user has used up their tier's lifetime prediction allowance."""

    def __init__(self, tier: str, limit: int) -> None:
        self.tier = tier
        self.limit = limit
        super().__init__(f"Your {tier} plan allows up to {limit} predictions")


async def recent_logs(db: AsyncSession, user_id: int, limit: int = FEATURE_WINDOW) -> list[BehaviorLog]:
    result = await db.execute(
        select(BehaviorLog)
        .where(BehaviorLog.user_id == user_id)
        .order_by(BehaviorLog.timestamp.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def list_predictions(db: AsyncSession, user_id: int, tier: str) -> list[Prediction]:
    """Newest predictions by target date: 5 on free, 50 otherwise."""
    limit = 5 if normalize_tier(tier) == "free" else 50
    result = await db.execute(
        select(Prediction)
        .where(Prediction.user_id == user_id)
        .order_by(Prediction.target_date.desc(), Prediction.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def generate_prediction(
    db: AsyncSession,
    user: User,
    prediction_type: str,
    category: str,
    timeframe: str = "1_day",
    engine: PredictionEngine | None = None,
    now: datetime | None = None,
) -> Prediction:
    """Run the engine over the user's recent logs and store the result.

    Raises PredictionLimitError once the tier's lifetime cap is reached.
    """
    now = now or datetime.now(timezone.utc)
    tier = normalize_tier(user.subscription_tier)
    limit = PREDICTION_LIMITS[tier]
    existing = (
        await db.execute(select(func.count(Prediction.id)).where(Prediction.user_id == user.id))
    ).scalar_one()
    if existing >= limit:
        raise PredictionLimitError(tier, limit)

    logs = await recent_logs(db, user.id)
    result = (engine or PredictionEngine()).generate(prediction_type, category, logs, tier, now)

    prediction = Prediction(
        user_id=user.id,
        prediction_type=prediction_type,
        category=category,
        prediction=result.prediction,
        confidence=result.confidence,
        timeframe=timeframe,
        target_date=target_date_for(timeframe, now),
        model_version=MODEL_VERSION,
        features=result.features,
        is_verified=False,
    )
    db.add(prediction)
    await db.flush()
    logger.info(
        "prediction_generated",
        user_id=user.id,
        prediction_id=prediction.id,
        prediction_type=prediction_type,
        confidence=result.confidence,
    )
    return prediction


async def award_prediction_xp(db: AsyncSession, redis: Redis | None, user_id: int, prediction_id: int) -> int:
    """Grant the prediction XP. Failures are logged and reported as 0."""
    try:
        async with db.begin_nested():
            granted = await grant_xp(
                db,
                redis,
                user_id,
                PREDICTION_XP,
                "prediction",
                str(prediction_id),
                "Generated a prediction",
                f"prediction:{prediction_id}",
            )
        await db.commit()
    except Exception:
        logger.warning("prediction_xp_failed", user_id=user_id, prediction_id=prediction_id, exc_info=True)
        await db.rollback()
        return 0
    return granted


async def get_accuracy(db: AsyncSession, user_id: int) -> dict[str, Any]:
    """Mean accuracy overall and per type over predictions that carry one."""
    result = await db.execute(
        select(Prediction.prediction_type, Prediction.accuracy).where(
            Prediction.user_id == user_id, Prediction.accuracy.is_not(None)
        )
    )
    rows = result.all()
    if not rows:
        return {"overall_accuracy": None, "total_verified": 0, "accuracy_by_type": {}}

    by_type: dict[str, list[float]] = defaultdict(list)
    for prediction_type, accuracy in rows:
        by_type[prediction_type].append(accuracy)
    return {
        "overall_accuracy": round(sum(a for _, a in rows) / len(rows), 4),
        "total_verified": len(rows),
        "accuracy_by_type": {t: round(sum(v) / len(v), 4) for t, v in by_type.items()},
    }


async def verify_prediction(
    db: AsyncSession,
    user_id: int,
    prediction_id: int,
    actual_outcome: dict[str, Any],
    accuracy: float,
) -> Prediction:
    """Record the real outcome of an owned prediction. Raises LookupError if not found."""
    result = await db.execute(
        select(Prediction).where(Prediction.id == prediction_id, Prediction.user_id == user_id)
    )
    prediction = result.scalar_one_or_none()
    if prediction is None:
        msg = "Prediction not found"
        raise LookupError(msg)

    prediction.actual_outcome = actual_outcome
    prediction.accuracy = accuracy
    prediction.is_verified = True
    await db.flush()
    logger.info("prediction_verified", user_id=user_id, prediction_id=prediction_id, accuracy=accuracy)
    return prediction


async def get_advanced_predictions(db: AsyncSession, user_id: int, now: datetime | None = None) -> dict[str, Any]:
    """Top 20 predictions by confidence with trends, plus log-derived analytics."""
    now = now or datetime.now(timezone.utc)
    result = await db.execute(
        select(Prediction)
        .where(Prediction.user_id == user_id)
        .order_by(Prediction.confidence.desc(), Prediction.id.desc())
        .limit(20)
    )
    predictions = list(result.scalars().all())
    logs = await recent_logs(db, user_id, limit=1000)

    enriched = []
    for prediction in predictions:
        trends = prediction_trends(prediction.category, logs, now)
        enriched.append(
            {
                "prediction": prediction,
                "trends": trends,
                "recommendations": prediction_recommendations(prediction, trends),
            }
        )
    return {"predictions": enriched, "analytics": advanced_analytics(logs, predictions)}


async def get_insights(db: AsyncSession, user_id: int) -> dict[str, Any]:
    """Raises InsufficientDataError (a ValueError) below the minimum log count."""
    return generate_insights(await recent_logs(db, user_id, limit=200))
