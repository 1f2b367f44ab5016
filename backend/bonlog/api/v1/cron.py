"""Scheduler-triggered job endpoints (expiry sweep, expiring-soon report)."""

import logging

from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from bonlog.api.deps import get_db
from bonlog.billing.cron_auth import verify_cron_auth
from bonlog.billing.expiry import find_expiring_soon, sweep_expired_premium
from bonlog.schemas.cron import ExpiringUser, ExpiringUsersResponse, SweepResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/cron", tags=["cron"])


async def require_cron_auth(
    authorization: str | None = Header(default=None),
    x_cron_timestamp: str | None = Header(default=None),
) -> None:
    """Reject requests without a valid cron secret or HMAC signature."""
    result = verify_cron_auth(authorization, x_cron_timestamp)
    if not result.valid:
        logger.warning("Rejected cron request: %s", result.error)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=result.error or "Unauthorized",
        )


@router.post(
    "/check-subscriptions",
    response_model=SweepResponse,
    dependencies=[Depends(require_cron_auth)],
)
async def check_subscriptions(db: AsyncSession = Depends(get_db)) -> SweepResponse:
    """Demote every premium user whose expiry has passed."""
    sweep = await sweep_expired_premium(db)
    await db.commit()
    return SweepResponse(
        success=True,
        processed_count=sweep.expired_count,
        cancelled_posts_count=sweep.cancelled_posts,
        user_ids=sweep.user_ids,
    )


@router.get(
    "/expiring-subscriptions",
    response_model=ExpiringUsersResponse,
    dependencies=[Depends(require_cron_auth)],
)
async def expiring_subscriptions(db: AsyncSession = Depends(get_db)) -> ExpiringUsersResponse:
    """Premium users whose membership ends within the next three days."""
    users = await find_expiring_soon(db)
    return ExpiringUsersResponse(
        users=[
            ExpiringUser(id=u.id, nickname=u.nickname, premium_expires_at=u.premium_expires_at)
            for u in users
        ]
    )
