"""Admin service — manual premium grants and the premium members overview.

Grants made here bypass Stripe entirely: ``stripe_subscription_id`` is never
touched, so the reconciliation job leaves them alone and only the expiry
sweeper (when an expiry is set) or another admin action ends them.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from bonlog.billing.results import ErrorCode, Ok, Result, err
from bonlog.billing.timeutils import utc_now
from bonlog.models.admin_log import AdminLog
from bonlog.models.payment import Payment
from bonlog.models.user import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PremiumStats:
    total_premium_users: int
    new_this_month: int
    expiring_in_7_days: int
    total_revenue: int


async def _log_action(
    db: AsyncSession,
    admin: User,
    action: str,
    target_id: uuid.UUID,
    details: dict | None = None,
) -> None:
    db.add(AdminLog(admin_id=admin.id, action=action, target_id=target_id, details=details))
    await db.flush()
    logger.info("Admin %s: %s on user %s %s", admin.id, action, target_id, details or "")


async def _get_target(db: AsyncSession, target_id: uuid.UUID) -> User | None:
    result = await db.execute(select(User).where(User.id == target_id))
    return result.scalar_one_or_none()


async def grant_premium(
    db: AsyncSession, admin: User, target_id: uuid.UUID, duration_days: int = 30
) -> Result[datetime]:
    """Make the target premium for ``duration_days`` from now."""
    if not admin.is_admin:
        return err(ErrorCode.FORBIDDEN)
    if duration_days <= 0:
        return err(ErrorCode.INVALID_REQUEST, "日数は1以上を指定してください")

    target = await _get_target(db, target_id)
    if target is None:
        return err(ErrorCode.USER_NOT_FOUND)

    expires_at = utc_now() + timedelta(days=duration_days)
    target.is_premium = True
    target.premium_expires_at = expires_at
    await _log_action(
        db,
        admin,
        "grant_premium",
        target_id,
        {"duration_days": duration_days, "expires_at": expires_at.isoformat()},
    )
    return Ok(expires_at)


async def revoke_premium(db: AsyncSession, admin: User, target_id: uuid.UUID) -> Result[None]:
    """End the target's premium immediately."""
    if not admin.is_admin:
        return err(ErrorCode.FORBIDDEN)

    target = await _get_target(db, target_id)
    if target is None:
        return err(ErrorCode.USER_NOT_FOUND)
    if not target.is_premium:
        return err(ErrorCode.NOT_PREMIUM)

    target.is_premium = False
    target.premium_expires_at = None
    await _log_action(db, admin, "revoke_premium", target_id)
    return Ok(None)


async def extend_premium(
    db: AsyncSession, admin: User, target_id: uuid.UUID, additional_days: int
) -> Result[datetime]:
    """Add days to the current expiry, or to now if already expired."""
    if not admin.is_admin:
        return err(ErrorCode.FORBIDDEN)
    if additional_days <= 0:
        return err(ErrorCode.INVALID_REQUEST, "日数は1以上を指定してください")

    target = await _get_target(db, target_id)
    if target is None:
        return err(ErrorCode.USER_NOT_FOUND)

    now = utc_now()
    base = target.premium_expires_at if target.premium_expires_at and target.premium_expires_at > now else now
    new_expires_at = base + timedelta(days=additional_days)

    target.is_premium = True
    target.premium_expires_at = new_expires_at
    await _log_action(
        db,
        admin,
        "extend_premium",
        target_id,
        {"additional_days": additional_days, "new_expires_at": new_expires_at.isoformat()},
    )
    return Ok(new_expires_at)


SEARCH_MIN_LENGTH = 2
SEARCH_LIMIT = 10


async def search_users(db: AsyncSession, query: str, limit: int = SEARCH_LIMIT) -> list[User]:
    """Find any user (free or premium) by email or nickname for the grant form."""
    query = query.strip()
    if len(query) < SEARCH_MIN_LENGTH:
        return []

    pattern = f"%{query}%"
    result = await db.execute(
        select(User)
        .where(or_(User.email.ilike(pattern), User.nickname.ilike(pattern)))
        .order_by(User.nickname)
        .limit(limit)
    )
    return list(result.scalars().all())


async def list_premium_users(
    db: AsyncSession, search: str | None = None, limit: int = 20, offset: int = 0
) -> tuple[list[User], int]:
    """Premium members, soonest expiry first, with the total match count."""
    conditions = [User.is_premium.is_(True)]
    if search:
        pattern = f"%{search}%"
        conditions.append(or_(User.email.ilike(pattern), User.nickname.ilike(pattern)))

    total = await db.scalar(select(func.count()).select_from(User).where(*conditions))
    result = await db.execute(
        select(User)
        .where(*conditions)
        .order_by(User.premium_expires_at.asc())
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all()), total or 0


async def get_premium_stats(db: AsyncSession, now: datetime | None = None) -> PremiumStats:
    now = now or utc_now()
    seven_days_later = now + timedelta(days=7)
    month_start = datetime(now.year, now.month, 1)

    total_premium = await db.scalar(
        select(func.count()).select_from(User).where(User.is_premium.is_(True))
    )
    expiring = await db.scalar(
        select(func.count())
        .select_from(User)
        .where(
            User.is_premium.is_(True),
            User.premium_expires_at >= now,
            User.premium_expires_at <= seven_days_later,
        )
    )
    new_this_month = await db.scalar(
        select(func.count())
        .select_from(User)
        .where(User.is_premium.is_(True), User.created_at >= month_start)
    )
    revenue = await db.scalar(
        select(func.coalesce(func.sum(Payment.amount), 0)).where(Payment.status == "succeeded")
    )
    return PremiumStats(
        total_premium_users=total_premium or 0,
        new_this_month=new_this_month or 0,
        expiring_in_7_days=expiring or 0,
        total_revenue=revenue or 0,
    )
