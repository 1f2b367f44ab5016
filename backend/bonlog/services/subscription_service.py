"""Subscription service — checkout, customer portal, and membership management.

Every public function takes the acting user from the caller's authenticated
session (``None`` when logged out) and returns an ``Ok``/``Err`` result.
Expected failures never raise; only unexpected errors (database down, a bug)
propagate.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime

import stripe
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from stripe import StripeClient

from bonlog.billing import stripe_client
from bonlog.billing.plans import PlanType, get_plan
from bonlog.billing.reconciliation import get_current_period_end
from bonlog.billing.results import Err, ErrorCode, Ok, Result, err
from bonlog.config import settings
from bonlog.models.payment import Payment
from bonlog.models.user import User
from bonlog.services.entitlement_service import is_entitled

logger = logging.getLogger(__name__)

PAYMENT_HISTORY_LIMIT = 20


@dataclass(frozen=True)
class CheckoutSession:
    url: str
    session_id: str


@dataclass(frozen=True)
class PortalSession:
    url: str


@dataclass(frozen=True)
class StripeSubscriptionView:
    """Live view of the subscription as Stripe reports it."""

    status: str
    current_period_end: datetime | None
    cancel_at_period_end: bool


@dataclass(frozen=True)
class SubscriptionStatus:
    is_premium: bool
    premium_expires_at: datetime | None
    subscription: StripeSubscriptionView | None


def _subscription_page_url(query: str = "") -> str:
    url = f"{settings.app_url}/settings/subscription"
    return f"{url}?{query}" if query else url


async def ensure_stripe_customer(
    db: AsyncSession, user: User, *, client: StripeClient | None = None
) -> str:
    """Return the user's Stripe customer ID, creating and storing it if missing.

    The new ID is committed before returning so a later failure in the same
    request cannot lose it; the next checkout then reuses it instead of
    creating a second customer.
    """
    if user.stripe_customer_id:
        return user.stripe_customer_id

    customer = await stripe_client.create_customer(
        email=user.email,
        name=user.nickname,
        user_id=str(user.id),
        client=client,
    )
    user.stripe_customer_id = customer.id
    await db.commit()
    logger.info("Linked Stripe customer %s to user %s", customer.id, user.id)
    return customer.id


async def create_checkout_session(
    db: AsyncSession,
    user: User | None,
    plan_type: PlanType | str = PlanType.MONTHLY,
    *,
    client: StripeClient | None = None,
) -> Result[CheckoutSession]:
    """Start a hosted Stripe Checkout for the monthly or yearly premium plan."""
    if user is None:
        return err(ErrorCode.UNAUTHENTICATED)

    try:
        plan = get_plan(plan_type)
    except ValueError:
        return err(ErrorCode.INVALID_REQUEST, "プランの種類が不正です")

    if is_entitled(user.is_premium, user.premium_expires_at):
        return err(ErrorCode.ALREADY_PREMIUM)

    if not plan.stripe_price_id:
        logger.error("Stripe price ID not configured for plan %s", plan.plan_type.value)
        return err(ErrorCode.PRICE_NOT_CONFIGURED)

    try:
        customer_id = await ensure_stripe_customer(db, user, client=client)
        session = await stripe_client.create_checkout_session(
            customer_id=customer_id,
            price_id=plan.stripe_price_id,
            success_url=_subscription_page_url("success=true"),
            cancel_url=_subscription_page_url("canceled=true"),
            user_id=str(user.id),
            client=client,
        )
    except stripe.StripeError as e:
        logger.error("Stripe checkout error for user %s: %s", user.id, e)
        return err(ErrorCode.PROVIDER_ERROR)

    return Ok(CheckoutSession(url=session.url, session_id=session.id))


async def create_customer_portal_session(
    db: AsyncSession,
    user: User | None,
    *,
    client: StripeClient | None = None,
) -> Result[PortalSession]:
    """Open the Stripe Customer Portal (payment method, plan change, cancel)."""
    if user is None:
        return err(ErrorCode.UNAUTHENTICATED)

    if not user.stripe_customer_id:
        return err(ErrorCode.NO_CUSTOMER)

    try:
        session = await stripe_client.create_portal_session(
            customer_id=user.stripe_customer_id,
            return_url=_subscription_page_url(),
            client=client,
        )
    except stripe.StripeError as e:
        logger.error("Stripe portal error for user %s: %s", user.id, e)
        return err(ErrorCode.PROVIDER_ERROR)

    return Ok(PortalSession(url=session.url))


async def get_subscription_status(
    db: AsyncSession,
    user: User | None,
    *,
    client: StripeClient | None = None,
) -> Result[SubscriptionStatus]:
    """Stored entitlement plus Stripe's live view of the subscription.

    If Stripe cannot be reached the live view is simply omitted.
    """
    if user is None:
        return err(ErrorCode.UNAUTHENTICATED)

    view = None
    if user.stripe_subscription_id:
        try:
            stripe_sub = await stripe_client.get_subscription(
                user.stripe_subscription_id, client=client
            )
            view = StripeSubscriptionView(
                status=stripe_sub.status,
                current_period_end=get_current_period_end(stripe_sub),
                cancel_at_period_end=bool(getattr(stripe_sub, "cancel_at_period_end", False)),
            )
        except stripe.StripeError as e:
            logger.warning(
                "Could not fetch subscription %s for user %s: %s",
                user.stripe_subscription_id,
                user.id,
                e,
            )

    return Ok(
        SubscriptionStatus(
            is_premium=user.is_premium,
            premium_expires_at=user.premium_expires_at,
            subscription=view,
        )
    )


async def cancel_subscription_immediately(
    db: AsyncSession,
    user: User | None,
    *,
    client: StripeClient | None = None,
) -> Result[None]:
    """Cancel at Stripe right away and drop premium locally."""
    if user is None:
        return err(ErrorCode.UNAUTHENTICATED)

    if not user.stripe_subscription_id:
        return err(ErrorCode.NO_SUBSCRIPTION)

    try:
        await stripe_client.cancel_subscription(user.stripe_subscription_id, client=client)
    except stripe.StripeError as e:
        if not stripe_client.is_resource_missing(e):
            logger.error("Failed to cancel subscription %s: %s", user.stripe_subscription_id, e)
            return Err(ErrorCode.PROVIDER_ERROR, "サブスクリプションのキャンセルに失敗しました")
        logger.info("Subscription %s already gone at Stripe", user.stripe_subscription_id)

    user.is_premium = False
    user.stripe_subscription_id = None
    user.premium_expires_at = None
    await db.flush()
    logger.info("User %s cancelled their subscription", user.id)
    return Ok(None)


async def get_payment_history(
    db: AsyncSession, user: User | None, limit: int = PAYMENT_HISTORY_LIMIT
) -> Result[list[Payment]]:
    """The user's most recent payments, newest first."""
    if user is None:
        return err(ErrorCode.UNAUTHENTICATED)

    result = await db.execute(
        select(Payment)
        .where(Payment.user_id == user.id)
        .order_by(Payment.created_at.desc())
        .limit(limit)
    )
    return Ok(list(result.scalars().all()))


async def record_payment(
    db: AsyncSession,
    user_id: uuid.UUID,
    invoice: stripe.Invoice,
    description: str,
) -> Payment | None:
    """Store a paid invoice once; webhook redeliveries are ignored."""
    payment_intent = getattr(invoice, "payment_intent", None)
    if not payment_intent:
        return None
    payment_id = payment_intent if isinstance(payment_intent, str) else payment_intent.id

    existing = await db.execute(select(Payment).where(Payment.stripe_payment_id == payment_id))
    if existing.scalar_one_or_none() is not None:
        logger.info("Payment %s already recorded, skipping", payment_id)
        return None

    payment = Payment(
        user_id=user_id,
        stripe_payment_id=payment_id,
        amount=invoice.amount_paid,
        currency=invoice.currency,
        status="succeeded",
        description=description,
    )
    db.add(payment)
    await db.flush()
    logger.info("Recorded payment %s for user %s (%s)", payment_id, user_id, description)
    return payment
