"""Marketplace endpoints: /api/marketplace."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from behaviormarket.auth.dependencies import (
    MarketplaceCaller,
    get_current_user,
    get_marketplace_caller,
    require_company,
)
from behaviormarket.companies.service import get_user_company
from behaviormarket.config import get_settings
from behaviormarket.database import get_session
from behaviormarket.db.models import User
from behaviormarket.dependencies import get_optional_redis_dep
from behaviormarket.marketplace.schemas import (
    InsightTimeframe,
    MarketplaceTransactionsResponse,
    PurchaseRequest,
    PurchaseResponse,
    PurchaseSummary,
    TransactionSummary,
)
from behaviormarket.marketplace.service import (
    build_insights,
    get_purchase,
    list_marketplace_transactions,
    platform_stats,
    purchase_insights,
    trending,
)
from behaviormarket.notifications.push import publish_broadcast
from behaviormarket.users.schemas import TransactionResponse

router = APIRouter(prefix="/api/marketplace", tags=["Marketplace"])


@router.get("/insights")
async def insights(
    category: str | None = Query(None, max_length=100),
    demographic: str | None = Query(None, max_length=100),
    timeframe: InsightTimeframe = Query("30_days"),
    caller: MarketplaceCaller = Depends(get_marketplace_caller),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    return await build_insights(
        db, category=category, demographic=demographic, timeframe=timeframe, tier=caller.tier
    )


@router.post("/purchase", response_model=PurchaseResponse, status_code=201)
async def purchase(
    body: PurchaseRequest,
    user: User = Depends(require_company),
    db: AsyncSession = Depends(get_session),
    redis: Redis | None = Depends(get_optional_redis_dep),
) -> PurchaseResponse:
    try:
        company = await get_user_company(db, user)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e

    try:
        txn, split = await purchase_insights(
            db,
            user,
            company,
            body.insight_type,
            body.filters,
            body.amount,
            max_contributors=get_settings().marketplace_max_contributors,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()

    await publish_broadcast(
        redis,
        "pubsub:marketplace_purchase",
        {
            "insight_type": body.insight_type,
            "contributors": split.contributors,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )
    return PurchaseResponse(
        transaction=PurchaseSummary(
            id=txn.id,
            amount=float(txn.amount),
            status=txn.status,
            insight_type=body.insight_type,
            contributing_users=split.contributors,
            distributed=float(split.distributed),
            marketplace_fee=float(split.fee),
        ),
        download_url=f"/api/marketplace/download/{txn.id}",
    )


@router.get("/download/{transaction_id}")
async def download(
    transaction_id: int,
    user: User = Depends(require_company),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    """Re-fetch the insight snapshot recorded at purchase time."""
    try:
        company = await get_user_company(db, user)
        txn = await get_purchase(db, company.id, transaction_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail="Purchase not found") from e
    meta = txn.transaction_metadata or {}
    return {
        "transaction_id": txn.id,
        "insight_type": meta.get("insight_type"),
        "filters": meta.get("filters", {}),
        "purchased_at": meta.get("purchase_date"),
        "data": meta.get("snapshot", {}),
    }


@router.get("/transactions", response_model=MarketplaceTransactionsResponse)
async def transactions(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> MarketplaceTransactionsResponse:
    rows = await list_marketplace_transactions(db, user)
    return MarketplaceTransactionsResponse(
        transactions=[TransactionResponse.model_validate(t) for t in rows],
        summary=TransactionSummary(
            total_amount=float(sum(t.amount for t in rows)),
            total_transactions=len(rows),
        ),
    )


@router.get("/stats")
async def stats(db: AsyncSession = Depends(get_session)) -> dict[str, Any]:
    return {"stats": await platform_stats(db), "last_updated": datetime.now(timezone.utc).isoformat()}


@router.get("/trending")
async def trending_insights(db: AsyncSession = Depends(get_session)) -> dict[str, Any]:
    return {"trending": await trending(db), "period": "7_days"}
