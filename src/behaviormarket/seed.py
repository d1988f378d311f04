"""
Demo data: ``python -m behaviormarket.seed``.

Creates the demo user, company and admin accounts, 50 behavior logs for
the demo user and one medium challenge per template. Safe to re-run.
"""

from __future__ import annotations

import asyncio
import logging
import random
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from behaviormarket.auth.password import hash_password
from behaviormarket.auth.service import get_user_by_email, register_user
from behaviormarket.behaviors.schemas import BEHAVIOR_CATEGORIES
from behaviormarket.config import get_settings
from behaviormarket.database import close_db, get_session_factory, init_db
from behaviormarket.db.models import BehaviorLog, Challenge, Company, Subscription, User
from behaviormarket.gamification.challenge_service import create_challenge
from behaviormarket.gamification.rules import CHALLENGE_TEMPLATES

logger = logging.getLogger(__name__)

DEMO_PASSWORD = "Password123"
DEMO_LOG_COUNT = 50

SUBCATEGORIES = {
    "purchase": "groceries",
    "app_usage": "social_media",
    "sleep": "night",
    "exercise": "running",
    "food": "meal",
    "social": "friends",
    "work": "focus",
    "entertainment": "streaming",
    "health": "checkup",
    "travel": "commute",
}


async def _set_tier(db: AsyncSession, user: User, tier: str) -> None:
    user.subscription_tier = tier
    subscription = (
        await db.execute(select(Subscription).where(Subscription.user_id == user.id))
    ).scalar_one_or_none()
    if subscription is None:
        db.add(Subscription(user_id=user.id, tier=tier, status="active"))
    else:
        subscription.tier = tier


async def seed_accounts(db: AsyncSession) -> User:
    """Create the three demo accounts if missing. Returns the demo user."""
    demo = await get_user_by_email(db, "demo@example.com")
    if demo is None:
        demo = await register_user(
            db, email="demo@example.com", password=DEMO_PASSWORD, first_name="Demo", last_name="User"
        )
        demo.demographics = {"age_group": "25-34", "gender": "other", "location": "San Francisco, CA"}
        await _set_tier(db, demo, "premium")
        logger.info("Created demo user")

    if await get_user_by_email(db, "company@example.com") is None:
        company_user = await register_user(
            db,
            email="company@example.com",
            password=DEMO_PASSWORD,
            first_name="Company",
            last_name="Admin",
            role="company",
            company_name="Demo Analytics Corp",
            industry="Technology",
            company_size="medium",
        )
        await _set_tier(db, company_user, "enterprise")
        company = await db.get(Company, company_user.company_id)
        if company is not None:
            company.subscription_tier = "enterprise"
        logger.info("Created demo company")

    if await get_user_by_email(db, "admin@example.com") is None:
        admin = User(
            email="admin@example.com",
            password_hash=hash_password(DEMO_PASSWORD),
            first_name="System",
            last_name="Admin",
            role="admin",
            subscription_tier="enterprise",
            demographics={},
            preferences={},
        )
        db.add(admin)
        await db.flush()
        db.add(Subscription(user_id=admin.id, tier="enterprise", status="active"))
        logger.info("Created admin user")

    await db.flush()
    return demo


async def seed_behavior_logs(db: AsyncSession, user: User, rng: random.Random) -> int:
    existing = (
        await db.execute(select(func.count(BehaviorLog.id)).where(BehaviorLog.user_id == user.id))
    ).scalar_one()
    if existing:
        return 0

    now = datetime.now(timezone.utc)
    for _ in range(DEMO_LOG_COUNT):
        category = rng.choice(BEHAVIOR_CATEGORIES)
        timestamp = now - timedelta(seconds=rng.uniform(0, 30 * 24 * 3600))
        db.add(
            BehaviorLog(
                user_id=user.id,
                category=category,
                subcategory=SUBCATEGORIES[category],
                description=f"Demo {category.replace('_', ' ')} activity",
                value=Decimal(str(round(rng.uniform(0, 100), 2))),
                quantity=rng.randint(1, 10),
                duration=rng.randint(10, 130),
                mood_rating=rng.randint(3, 10),
                energy_level=rng.randint(2, 10),
                stress_level=rng.randint(1, 8),
                log_metadata={"seeded": True},
                timestamp=timestamp,
                source="manual",
                confidence=round(rng.uniform(0.8, 1.0), 2),
                created_at=timestamp,
            )
        )
    await db.flush()
    return DEMO_LOG_COUNT


async def seed_challenges(db: AsyncSession) -> int:
    now = datetime.now(timezone.utc)
    active = (
        await db.execute(
            select(func.count(Challenge.id)).where(Challenge.is_active.is_(True), Challenge.end_date >= now)
        )
    ).scalar_one()
    if active:
        return 0
    for template in CHALLENGE_TEMPLATES:
        await create_challenge(db, template, "medium", now)
    return len(CHALLENGE_TEMPLATES)


async def seed(db: AsyncSession, rng: random.Random | None = None) -> dict[str, int]:
    demo = await seed_accounts(db)
    logs = await seed_behavior_logs(db, demo, rng or random.Random(42))
    challenges = await seed_challenges(db)
    await db.commit()
    logger.info("Seeding complete: %d logs, %d challenges", logs, challenges)
    return {"behavior_logs": logs, "challenges": challenges}


async def main() -> None:
    logging.basicConfig(level=logging.INFO)
    await init_db(get_settings().database_url)
    try:
        async with get_session_factory()() as db:
            await seed(db)
    finally:
        await close_db()


if __name__ == "__main__":
    asyncio.run(main())
