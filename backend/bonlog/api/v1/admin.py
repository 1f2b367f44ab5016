"""Admin endpoints — manual premium grants and the premium members overview."""

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from bonlog.api.deps import get_db, http_error, require_admin
from bonlog.billing.results import Err
from bonlog.models.user import User
from bonlog.schemas.admin import (
    ExtendPremiumRequest,
    GrantPremiumRequest,
    PremiumGrantResponse,
    PremiumStatsResponse,
    PremiumUserResponse,
    PremiumUsersListResponse,
    UserSearchResponse,
)
from bonlog.services import admin_service

router = APIRouter(prefix="/api/v1/admin/premium", tags=["admin"])


@router.get("/users", response_model=PremiumUsersListResponse)
async def list_premium_users(
    search: str | None = Query(None, description="Match on email or nickname"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> PremiumUsersListResponse:
    users, total = await admin_service.list_premium_users(db, search, limit, offset)
    return PremiumUsersListResponse(
        users=[PremiumUserResponse.model_validate(u) for u in users],
        total=total,
    )


@router.get("/search", response_model=UserSearchResponse)
async def search_users(
    q: str = Query("", max_length=255, description="Email or nickname fragment"),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> UserSearchResponse:
    """Look up users to grant premium to. Queries under two characters match nothing."""
    users = await admin_service.search_users(db, q)
    return UserSearchResponse(users=[PremiumUserResponse.model_validate(u) for u in users])


@router.get("/stats", response_model=PremiumStatsResponse)
async def premium_stats(
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> PremiumStatsResponse:
    stats = await admin_service.get_premium_stats(db)
    return PremiumStatsResponse.model_validate(stats)


@router.post("/users/{user_id}/grant", response_model=PremiumGrantResponse)
async def grant_premium(
    user_id: uuid.UUID,
    body: GrantPremiumRequest,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> PremiumGrantResponse:
    """Make a user premium for ``duration_days`` without a Stripe subscription."""
    result = await admin_service.grant_premium(db, admin, user_id, body.duration_days)
    if isinstance(result, Err):
        raise http_error(result)
    return PremiumGrantResponse(user_id=user_id, is_premium=True, premium_expires_at=result.value)


@router.post("/users/{user_id}/extend", response_model=PremiumGrantResponse)
async def extend_premium(
    user_id: uuid.UUID,
    body: ExtendPremiumRequest,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> PremiumGrantResponse:
    result = await admin_service.extend_premium(db, admin, user_id, body.additional_days)
    if isinstance(result, Err):
        raise http_error(result)
    return PremiumGrantResponse(user_id=user_id, is_premium=True, premium_expires_at=result.value)


@router.post("/users/{user_id}/revoke", response_model=PremiumGrantResponse)
async def revoke_premium(
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> PremiumGrantResponse:
    result = await admin_service.revoke_premium(db, admin, user_id)
    if isinstance(result, Err):
        raise http_error(result)
    return PremiumGrantResponse(user_id=user_id, is_premium=False, premium_expires_at=None)
