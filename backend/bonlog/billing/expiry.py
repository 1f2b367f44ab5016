"""Expiry sweeper — demote premium users whose recorded expiry has passed.

Safety net for missed or delayed Stripe webhooks: whatever the provider did,
nobody stays premium for longer than one sweep interval past a known expiry.
Only ``is_premium`` is touched; ``premium_expires_at`` stays as a record of
when the membership ended, and ``stripe_subscription_id`` is left for the
reconciliation job (and for resubscribing).
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from bonlog.billing.timeutils import utc_now
from bonlog.models.scheduled_post import ScheduledPost, ScheduledPostStatus
from bonlog.models.user import User

logger = logging.getLogger(__name__)

EXPIRING_SOON_WINDOW = timedelta(days=3)


@dataclass
class SweepResult:
    expired_count: int = 0
    cancelled_posts: int = 0
    user_ids: list[uuid.UUID] = field(default_factory=list)


def _expired_filter(now: datetime):
    return (
        User.is_premium.is_(True),
        User.premium_expires_at.is_not(None),
        User.premium_expires_at < now,
    )


async def sweep_expired_premium(
    db: AsyncSession, now: datetime | None = None
) -> SweepResult:
    """Set ``is_premium=False`` for every user whose expiry is in the past.

    Pending scheduled posts of the demoted users are cancelled in the same
    transaction, since publishing them is a premium feature. Both statements
    select their rows with the expiry condition itself rather than a list of
    IDs, so the sweep is two statements however many users it demotes. The
    caller commits; any database error propagates and aborts the whole sweep.
    """
    now = now or utc_now()

    # Posts first: once the users are demoted the filter no longer finds them.
    cancelled = await db.execute(
        update(ScheduledPost)
        .where(
            ScheduledPost.user_id.in_(select(User.id).where(*_expired_filter(now))),
            ScheduledPost.status == ScheduledPostStatus.PENDING.value,
        )
        .values(status=ScheduledPostStatus.CANCELLED.value)
        .execution_options(synchronize_session=False)
    )
    expired = await db.execute(
        update(User)
        .where(*_expired_filter(now))
        .values(is_premium=False)
        .returning(User.id)
        .execution_options(synchronize_session=False)
    )
    user_ids = list(expired.scalars().all())
    if not user_ids:
        logger.info("Expiry sweep: no expired premium memberships")
        return SweepResult()

    sweep = SweepResult(
        expired_count=len(user_ids),
        cancelled_posts=cancelled.rowcount,
        user_ids=user_ids,
    )
    logger.info(
        "Expiry sweep: %d users expired, %d scheduled posts cancelled",
        sweep.expired_count,
        sweep.cancelled_posts,
    )
    return sweep


async def find_expiring_soon(
    db: AsyncSession,
    within: timedelta = EXPIRING_SOON_WINDOW,
    now: datetime | None = None,
) -> list[User]:
    """Premium users whose expiry falls in ``(now, now + within]``."""
    now = now or utc_now()
    result = await db.execute(
        select(User)
        .where(
            User.is_premium.is_(True),
            User.premium_expires_at > now,
            User.premium_expires_at <= now + within,
        )
        .order_by(User.premium_expires_at)
    )
    return list(result.scalars().all())
