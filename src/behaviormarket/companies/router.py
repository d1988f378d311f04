"""Company endpoints: /api/companies."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from behaviormarket.auth.api_keys import key_prefix
from behaviormarket.auth.dependencies import require_company
from behaviormarket.companies.schemas import ApiKeyResponse, CompanyResponse, CompanyUpdate
from behaviormarket.companies.service import get_user_company, issue_api_key, update_company
from behaviormarket.database import get_session
from behaviormarket.db.models import Company, User

router = APIRouter(prefix="/api/companies", tags=["Companies"])


async def _company_for(user: User, db: AsyncSession) -> Company:
    try:
        return await get_user_company(db, user)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


@router.get("/me", response_model=CompanyResponse)
async def my_company(
    user: User = Depends(require_company),
    db: AsyncSession = Depends(get_session),
) -> CompanyResponse:
    return CompanyResponse.model_validate(await _company_for(user, db))


@router.put("/me", response_model=CompanyResponse)
async def edit_company(
    body: CompanyUpdate,
    user: User = Depends(require_company),
    db: AsyncSession = Depends(get_session),
) -> CompanyResponse:
    company = await update_company(db, await _company_for(user, db), body.model_dump(exclude_unset=True))
    await db.commit()
    return CompanyResponse.model_validate(company)


@router.post("/me/api-key", response_model=ApiKeyResponse, status_code=201)
async def create_api_key(
    user: User = Depends(require_company),
    db: AsyncSession = Depends(get_session),
) -> ApiKeyResponse:
    company = await _company_for(user, db)
    try:
        full_key = await issue_api_key(db, company)
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e)) from e
    await db.commit()
    return ApiKeyResponse(api_key=full_key, prefix=key_prefix(full_key))
