"""Reconcile local premium flags with Stripe's subscription state.

Runs in two modes:

* event mode: webhook handlers call :func:`apply_subscription` with the
  subscription object Stripe sent;
* batch mode: :func:`sync_subscriptions` re-reads every linked subscription
  from Stripe (``python -m bonlog.jobs.sync_subscriptions``), catching any
  change whose webhook never arrived.

Both converge on the same rule, so repeated or concurrent runs over the same
user produce at most a redundant write. Every write is conditioned on the
subscription ID it was derived from, so a run working from a stale snapshot
never touches a user who has since been linked to another subscription.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

import stripe
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from stripe import StripeClient

from bonlog.billing.stripe_client import get_subscription, is_resource_missing
from bonlog.billing.timeutils import ts_to_naive
from bonlog.models.user import User

logger = logging.getLogger(__name__)

PREMIUM_STATUSES = frozenset({"active", "trialing"})


@dataclass(frozen=True)
class EntitlementState:
    """The two columns entitlement checks read."""

    is_premium: bool
    premium_expires_at: datetime | None


@dataclass(frozen=True)
class UserSnapshot:
    """A subscribed user as loaded at the start of a batch run."""

    id: uuid.UUID
    nickname: str
    stripe_subscription_id: str
    state: EntitlementState


class ReconcileOutcome(str, Enum):
    UNCHANGED = "unchanged"
    UPDATED = "updated"
    CLEARED = "cleared"


@dataclass
class SyncSummary:
    """Counters reported at the end of a batch run."""

    checked: int = 0
    synced: int = 0
    errors: int = 0


def get_first_item(stripe_sub: stripe.Subscription):
    """Get the first subscription item, using bracket notation to avoid
    collision with Python dict .items() in newer Stripe API versions.
    """
    try:
        sub_items = stripe_sub["items"]
    except (KeyError, AttributeError):
        return None
    if sub_items and sub_items.data:
        return sub_items.data[0]
    return None


def get_current_period_end(stripe_sub: stripe.Subscription) -> datetime | None:
    """Read current_period_end from the subscription, or from its first item.

    In Stripe API 2025-08-27 (basil), current_period_start/end moved
    from the subscription object to the subscription item.
    """
    period_end = getattr(stripe_sub, "current_period_end", None)
    if period_end is None:
        item = get_first_item(stripe_sub)
        if item is not None:
            period_end = getattr(item, "current_period_end", None)
    return ts_to_naive(period_end)


def derive_entitlement(stripe_sub: stripe.Subscription) -> EntitlementState:
    """Map a Stripe subscription to the local entitlement columns.

    The period end is kept even for inactive subscriptions so the row records
    when the last paid period ran out.
    """
    return EntitlementState(
        is_premium=stripe_sub.status in PREMIUM_STATUSES,
        premium_expires_at=get_current_period_end(stripe_sub),
    )


async def apply_subscription(
    db: AsyncSession,
    user_id: uuid.UUID,
    current: EntitlementState,
    stripe_sub: stripe.Subscription,
) -> bool:
    """Write the entitlement derived from ``stripe_sub`` if it differs from ``current``.

    Only applies while the user is still linked to ``stripe_sub``. Returns True
    when a row was written.
    """
    target = derive_entitlement(stripe_sub)
    if target == current:
        return False

    result = await db.execute(
        update(User)
        .where(User.id == user_id, User.stripe_subscription_id == stripe_sub.id)
        .values(
            is_premium=target.is_premium,
            premium_expires_at=target.premium_expires_at,
        )
    )
    if result.rowcount == 0:
        logger.info(
            "User %s is no longer linked to subscription %s, skipping update",
            user_id,
            stripe_sub.id,
        )
        return False

    logger.info(
        "User %s entitlement: is_premium %s -> %s, expires %s -> %s (subscription %s, status=%s)",
        user_id,
        current.is_premium,
        target.is_premium,
        current.premium_expires_at,
        target.premium_expires_at,
        stripe_sub.id,
        stripe_sub.status,
    )
    return True


async def clear_subscription(
    db: AsyncSession, user_id: uuid.UUID, subscription_id: str
) -> bool:
    """Drop premium and the subscription link (subscription gone at Stripe).

    No-op when the user has meanwhile been linked to a different subscription.
    """
    result = await db.execute(
        update(User)
        .where(User.id == user_id, User.stripe_subscription_id == subscription_id)
        .values(
            is_premium=False,
            stripe_subscription_id=None,
            premium_expires_at=None,
        )
    )
    if result.rowcount == 0:
        return False
    logger.info("User %s subscription %s cleared", user_id, subscription_id)
    return True


async def reconcile_user(
    db: AsyncSession,
    snapshot: UserSnapshot,
    *,
    client: StripeClient | None = None,
) -> ReconcileOutcome:
    """Fetch the user's subscription from Stripe and reconcile.

    A ``resource_missing`` response is terminal: local subscription state is
    cleared regardless of what was stored, unless the user has been linked to
    another subscription since the snapshot was taken. Other Stripe errors
    propagate.
    """
    try:
        stripe_sub = await get_subscription(snapshot.stripe_subscription_id, client=client)
    except stripe.InvalidRequestError as e:
        if not is_resource_missing(e):
            raise
        logger.info(
            "Subscription %s for user %s (%s) no longer exists at Stripe",
            snapshot.stripe_subscription_id,
            snapshot.id,
            snapshot.nickname,
        )
        if await clear_subscription(db, snapshot.id, snapshot.stripe_subscription_id):
            return ReconcileOutcome.CLEARED
        logger.info(
            "User %s was relinked after subscription %s was loaded, leaving it alone",
            snapshot.id,
            snapshot.stripe_subscription_id,
        )
        return ReconcileOutcome.UNCHANGED

    if await apply_subscription(db, snapshot.id, snapshot.state, stripe_sub):
        return ReconcileOutcome.UPDATED
    return ReconcileOutcome.UNCHANGED


async def load_subscribed_users(db: AsyncSession) -> list[UserSnapshot]:
    """All users linked to a Stripe subscription."""
    result = await db.execute(
        select(
            User.id,
            User.nickname,
            User.stripe_subscription_id,
            User.is_premium,
            User.premium_expires_at,
        )
        .where(User.stripe_subscription_id.is_not(None))
        .order_by(User.created_at)
    )
    return [
        UserSnapshot(
            id=row.id,
            nickname=row.nickname,
            stripe_subscription_id=row.stripe_subscription_id,
            state=EntitlementState(row.is_premium, row.premium_expires_at),
        )
        for row in result.all()
    ]


async def sync_subscriptions(
    db: AsyncSession, *, client: StripeClient | None = None
) -> SyncSummary:
    """Reconcile every subscribed user, committing per user.

    A failure for one user (Stripe timeout, unexpected payload, DB error on
    that row) is rolled back, logged and counted; the run continues.
    """
    snapshots = await load_subscribed_users(db)
    summary = SyncSummary()
    logger.info("Stripe subscription sync started: %d users", len(snapshots))

    for snapshot in snapshots:
        summary.checked += 1
        try:
            outcome = await reconcile_user(db, snapshot, client=client)
            await db.commit()
        except Exception:
            await db.rollback()
            summary.errors += 1
            logger.exception(
                "Failed to reconcile user %s (%s), subscription %s",
                snapshot.id,
                snapshot.nickname,
                snapshot.stripe_subscription_id,
            )
            continue

        if outcome is not ReconcileOutcome.UNCHANGED:
            summary.synced += 1

    logger.info(
        "Stripe subscription sync finished: checked=%d synced=%d errors=%d",
        summary.checked,
        summary.synced,
        summary.errors,
    )
    return summary
