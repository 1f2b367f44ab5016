"""Entitlement reader — is a user premium, and what may they post.

Consulted before every gated write (posts, comments, scheduled posts,
analytics), so it only reads the user row: no Stripe call, no writes.
Unknown users get the free answer instead of an exception.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bonlog.billing.plans import FREE_LIMITS, MembershipLimits, MembershipType, limits_for
from bonlog.billing.timeutils import utc_now
from bonlog.models.user import User


@dataclass(frozen=True)
class PremiumStatus:
    is_premium: bool
    premium_expires_at: datetime | None
    has_stripe_subscription: bool


@dataclass(frozen=True)
class MembershipInfo:
    is_premium: bool
    limits: MembershipLimits


def is_entitled(
    is_premium: bool, premium_expires_at: datetime | None, now: datetime | None = None
) -> bool:
    """Active premium: flag set and expiry absent (admin grant) or in the future.

    The expiry is checked here too so that a missed sweep never extends
    premium past a known end date.
    """
    if not is_premium:
        return False
    if premium_expires_at is None:
        return True
    return premium_expires_at > (now or utc_now())


def _coerce_user_id(user_id: uuid.UUID | str) -> uuid.UUID | None:
    if isinstance(user_id, uuid.UUID):
        return user_id
    try:
        return uuid.UUID(str(user_id))
    except ValueError:
        return None


async def is_premium_user(db: AsyncSession, user_id: uuid.UUID | str) -> bool:
    """Return True if the user currently has premium access."""
    uid = _coerce_user_id(user_id)
    if uid is None:
        return False

    result = await db.execute(
        select(User.is_premium, User.premium_expires_at).where(User.id == uid)
    )
    row = result.one_or_none()
    if row is None:
        return False
    return is_entitled(row.is_premium, row.premium_expires_at)


async def get_membership_limits(db: AsyncSession, user_id: uuid.UUID | str) -> MembershipLimits:
    """Usage limits for the user's tier (free or premium)."""
    return limits_for(await is_premium_user(db, user_id))


async def get_membership_type(db: AsyncSession, user_id: uuid.UUID | str) -> MembershipType:
    return "premium" if await is_premium_user(db, user_id) else "free"


async def get_premium_status(db: AsyncSession, user_id: uuid.UUID | str) -> PremiumStatus | None:
    """Raw stored entitlement fields, or None for an unknown user."""
    uid = _coerce_user_id(user_id)
    if uid is None:
        return None

    result = await db.execute(
        select(User.is_premium, User.premium_expires_at, User.stripe_subscription_id).where(
            User.id == uid
        )
    )
    row = result.one_or_none()
    if row is None:
        return None
    return PremiumStatus(
        is_premium=row.is_premium,
        premium_expires_at=row.premium_expires_at,
        has_stripe_subscription=row.stripe_subscription_id is not None,
    )


async def get_membership_info(db: AsyncSession, user: User | None) -> MembershipInfo:
    """Membership summary for the current viewer; anonymous viewers are free."""
    if user is None:
        return MembershipInfo(is_premium=False, limits=FREE_LIMITS)
    premium = await is_premium_user(db, user.id)
    return MembershipInfo(is_premium=premium, limits=limits_for(premium))
