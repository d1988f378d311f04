"""Prediction endpoints: /api/predictions."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from behaviormarket.auth.dependencies import get_current_user
from behaviormarket.database import get_session
from behaviormarket.db.models import User
from behaviormarket.dependencies import get_optional_redis_dep
from behaviormarket.predictions.engine import PredictionEngine
from behaviormarket.predictions.insights import InsufficientDataError
from behaviormarket.predictions.schemas import (
    AccuracyResponse,
    AdvancedPrediction,
    AdvancedPredictionsResponse,
    GenerateRequest,
    InsightsResponse,
    PredictionEnvelope,
    PredictionListResponse,
    PredictionResponse,
    VerifyRequest,
)
from behaviormarket.predictions.service import (
    PredictionLimitError,
    award_prediction_xp,
    generate_prediction,
    get_accuracy,
    get_advanced_predictions,
    get_insights,
    list_predictions,
    verify_prediction,
)
from behaviormarket.subscriptions.gating import check_usage_limit, premium_feature

router = APIRouter(prefix="/api/predictions", tags=["Predictions"])


def get_prediction_engine() -> PredictionEngine:
    return PredictionEngine()


@router.get("", response_model=PredictionListResponse)
async def get_predictions(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> PredictionListResponse:
    predictions = await list_predictions(db, user.id, user.subscription_tier)
    return PredictionListResponse(
        predictions=[PredictionResponse.model_validate(p) for p in predictions],
        subscription_tier=user.subscription_tier,
    )


@router.post("/generate", response_model=PredictionEnvelope, status_code=201)
async def generate(
    body: GenerateRequest,
    user: User = Depends(check_usage_limit("max_predictions")),
    db: AsyncSession = Depends(get_session),
    redis: Redis | None = Depends(get_optional_redis_dep),
    engine: PredictionEngine = Depends(get_prediction_engine),
) -> PredictionEnvelope:
    try:
        prediction = await generate_prediction(
            db, user, body.prediction_type, body.category, body.timeframe, engine=engine
        )
    except PredictionLimitError as e:
        raise HTTPException(
            status_code=403,
            detail={"error": "Prediction limit reached", "message": str(e), "upgrade_required": True},
        ) from e
    await db.commit()

    response = PredictionEnvelope(
        message="Prediction generated successfully",
        prediction=PredictionResponse.model_validate(prediction),
    )
    await award_prediction_xp(db, redis, user.id, response.prediction.id)
    return response


@router.get("/accuracy", response_model=AccuracyResponse)
async def accuracy(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> AccuracyResponse:
    return AccuracyResponse(**await get_accuracy(db, user.id))


@router.get("/advanced", response_model=AdvancedPredictionsResponse)
async def advanced(
    user: User = Depends(premium_feature()),
    db: AsyncSession = Depends(get_session),
) -> AdvancedPredictionsResponse:
    data = await get_advanced_predictions(db, user.id)
    return AdvancedPredictionsResponse(
        predictions=[
            AdvancedPrediction(
                **PredictionResponse.model_validate(item["prediction"]).model_dump(),
                trends=item["trends"],
                recommendations=item["recommendations"],
            )
            for item in data["predictions"]
        ],
        analytics=data["analytics"],
    )


@router.get("/insights", response_model=InsightsResponse)
async def insights(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> InsightsResponse:
    try:
        return InsightsResponse(**await get_insights(db, user.id))
    except InsufficientDataError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


@router.post("/{prediction_id}/verify", response_model=PredictionEnvelope)
async def verify(
    prediction_id: int,
    body: VerifyRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> PredictionEnvelope:
    try:
        prediction = await verify_prediction(db, user.id, prediction_id, body.actual_outcome, body.accuracy)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    await db.commit()
    return PredictionEnvelope(
        message="Prediction verified successfully",
        prediction=PredictionResponse.model_validate(prediction),
    )
