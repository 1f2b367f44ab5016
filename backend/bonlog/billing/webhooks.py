"""Stripe webhook event handlers — keep premium state in step with Stripe.

Each handler applies the same reconciliation rule as the batch sync job, so a
webhook and a sync run racing on one user converge on the same state.
"""

import logging
import uuid

import stripe
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bonlog.billing.plans import get_plan_by_price_id
from bonlog.billing.reconciliation import (
    EntitlementState,
    apply_subscription,
    clear_subscription,
    get_first_item,
)
from bonlog.billing.stripe_client import get_invoice, get_subscription
from bonlog.models.user import User
from bonlog.services.subscription_service import record_payment

logger = logging.getLogger(__name__)


def _as_id(value) -> str | None:
    """Stripe fields may hold an ID string or an expanded object."""
    if value is None or isinstance(value, str):
        return value
    return getattr(value, "id", None)


def _metadata_user_id(obj) -> uuid.UUID | None:
    metadata = getattr(obj, "metadata", None) or {}
    raw = metadata.get("bonlog_user_id")
    if not raw:
        return None
    try:
        return uuid.UUID(raw)
    except ValueError:
        return None


def _get_invoice_subscription_id(invoice: stripe.Invoice) -> str | None:
    """Subscription ID of an invoice.

    Newer Stripe API versions moved it under ``parent.subscription_details``.
    """
    subscription = _as_id(getattr(invoice, "subscription", None))
    if subscription:
        return subscription
    parent = getattr(invoice, "parent", None)
    details = getattr(parent, "subscription_details", None) if parent else None
    return _as_id(getattr(details, "subscription", None)) if details else None


def _state_of(user: User) -> EntitlementState:
    return EntitlementState(user.is_premium, user.premium_expires_at)


async def _get_user(db: AsyncSession, *clauses) -> User | None:
    result = await db.execute(select(User).where(*clauses))
    return result.scalar_one_or_none()


async def get_user_by_stripe_subscription(
    db: AsyncSession, stripe_subscription_id: str
) -> User | None:
    return await _get_user(db, User.stripe_subscription_id == stripe_subscription_id)


async def get_user_by_stripe_customer(db: AsyncSession, stripe_customer_id: str) -> User | None:
    return await _get_user(db, User.stripe_customer_id == stripe_customer_id)


async def handle_checkout_session_completed(db: AsyncSession, event: stripe.Event) -> None:
    """Handle checkout.session.completed — link and activate the new subscription."""
    session = event.data.object
    customer_id = _as_id(session.customer)
    subscription_id = _as_id(session.subscription)

    if not subscription_id:
        logger.info("Checkout session %s has no subscription (one-time?), skipping", session.id)
        return

    user = None
    user_id = _metadata_user_id(session)
    if user_id is not None:
        user = await _get_user(db, User.id == user_id)
    if user is None and customer_id:
        user = await get_user_by_stripe_customer(db, customer_id)

    if user is None:
        logger.warning(
            "No local user found for checkout %s (customer %s, metadata user %s)",
            session.id,
            customer_id,
            user_id,
        )
        return

    user.stripe_customer_id = customer_id or user.stripe_customer_id
    user.stripe_subscription_id = subscription_id
    await db.flush()

    # Fetch full subscription from Stripe to get status and period
    stripe_sub = await get_subscription(subscription_id)
    await apply_subscription(db, user.id, _state_of(user), stripe_sub)

    invoice_id = _as_id(getattr(session, "invoice", None))
    if invoice_id:
        invoice = await get_invoice(invoice_id)
        await record_payment(db, user.id, invoice, "プレミアム会員登録")

    item = get_first_item(stripe_sub)
    plan = get_plan_by_price_id(item.price.id) if item is not None else None
    logger.info(
        "Checkout completed: user %s subscribed (%s, plan=%s)",
        user.id,
        subscription_id,
        plan.value if plan else "unknown",
    )


async def handle_subscription_updated(db: AsyncSession, event: stripe.Event) -> None:
    """Handle customer.subscription.updated — sync premium flag and period end."""
    stripe_sub = event.data.object
    subscription_id = stripe_sub.id

    user = await get_user_by_stripe_subscription(db, subscription_id)
    if user is None:
        customer_id = _as_id(getattr(stripe_sub, "customer", None))
        if customer_id:
            user = await get_user_by_stripe_customer(db, customer_id)
        if user is not None:
            user.stripe_subscription_id = subscription_id
            await db.flush()

    if user is None:
        logger.warning("No local user found for Stripe subscription %s", subscription_id)
        return

    changed = await apply_subscription(db, user.id, _state_of(user), stripe_sub)
    logger.info(
        "Subscription updated: %s status=%s (%s)",
        subscription_id,
        stripe_sub.status,
        "changed" if changed else "no change",
    )


async def handle_subscription_deleted(db: AsyncSession, event: stripe.Event) -> None:
    """Handle customer.subscription.deleted — drop premium and the subscription link."""
    subscription_id = event.data.object.id

    user = await get_user_by_stripe_subscription(db, subscription_id)
    if user is None:
        logger.warning(
            "No local user found for Stripe subscription %s (delete event)",
            subscription_id,
        )
        return

    await clear_subscription(db, user.id, subscription_id)
    logger.info("Subscription deleted: %s, user %s is no longer premium", subscription_id, user.id)


async def handle_invoice_payment_succeeded(db: AsyncSession, event: stripe.Event) -> None:
    """Handle invoice.payment_succeeded — record renewals and extend the expiry."""
    invoice = event.data.object
    subscription_id = _get_invoice_subscription_id(invoice)

    # The first invoice is recorded by the checkout handler.
    if not subscription_id or getattr(invoice, "billing_reason", None) != "subscription_cycle":
        logger.info("Invoice %s is not a subscription renewal, skipping", invoice.id)
        return

    user = await get_user_by_stripe_subscription(db, subscription_id)
    if user is None:
        logger.warning(
            "No local user found for Stripe subscription %s (invoice %s)",
            subscription_id,
            invoice.id,
        )
        return

    await record_payment(db, user.id, invoice, "プレミアム会員更新")
    stripe_sub = await get_subscription(subscription_id)
    await apply_subscription(db, user.id, _state_of(user), stripe_sub)
    logger.info("Invoice paid: subscription %s renewed for user %s", subscription_id, user.id)


async def handle_invoice_payment_failed(db: AsyncSession, event: stripe.Event) -> None:
    """Handle invoice.payment_failed.

    Premium is not revoked here: Stripe retries the charge and reports the
    final outcome as a subscription update or deletion.
    """
    invoice = event.data.object
    subscription_id = _get_invoice_subscription_id(invoice)

    if not subscription_id:
        logger.info("Invoice %s has no subscription, skipping payment failure", invoice.id)
        return

    user = await get_user_by_stripe_subscription(db, subscription_id)
    if user is None:
        logger.warning(
            "No local user found for Stripe subscription %s (payment failed)",
            subscription_id,
        )
        return

    logger.warning(
        "Payment failed: subscription %s, user %s (invoice %s)",
        subscription_id,
        user.id,
        invoice.id,
    )
