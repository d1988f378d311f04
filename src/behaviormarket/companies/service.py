"""Company profile and API key management."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from behaviormarket.auth.api_keys import generate_api_key
from behaviormarket.db.models import Company

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from behaviormarket.db.models import User

logger = structlog.get_logger()

API_KEY_TIER = "enterprise"


async def get_user_company(db: AsyncSession, user: User) -> Company:
    """The company linked to a company-role user. Raises LookupError if none."""
    company = await db.get(Company, user.company_id) if user.company_id else None
    if company is None:
        msg = "Company not found"
        raise LookupError(msg)
    return company


async def update_company(db: AsyncSession, company: Company, changes: dict[str, Any]) -> Company:
    for name in ("name", "industry", "size", "preferences"):
        if name in changes and changes[name] is not None:
            setattr(company, name, changes[name])
    await db.flush()
    return company


async def issue_api_key(db: AsyncSession, company: Company) -> str:
    """Replace the company's API key and return the new full key.

    Only the prefix and hash are stored. Raises PermissionError below the
    enterprise company tier.
    """
    if company.subscription_tier != API_KEY_TIER:
        msg = "API access requires the enterprise company plan"
        raise PermissionError(msg)

    full_key, prefix, key_hash = generate_api_key()
    company.api_key_prefix = prefix
    company.api_key_hash = key_hash
    await db.flush()
    logger.info("api_key_issued", company_id=company.id, prefix=prefix)
    return full_key
