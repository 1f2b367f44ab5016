"""Async Stripe API wrapper for BON-LOG premium billing.

The StripeClient is created on first use rather than at import time, so the
app and the batch jobs start even when Stripe credentials are absent (local
development, schema migrations). Every call also accepts an explicit
``client`` so jobs and tests can inject their own instance.
"""

import logging

import stripe
from stripe import StripeClient

from bonlog.config import settings

logger = logging.getLogger(__name__)

_client: StripeClient | None = None


class StripeNotConfiguredError(stripe.StripeError):
    """Raised on first Stripe use when STRIPE_SECRET_KEY is empty."""


def build_stripe_client(api_key: str | None = None) -> StripeClient:
    """Create a StripeClient with async HTTP support and a bounded timeout."""
    api_key = api_key or settings.stripe_secret_key
    if not api_key:
        raise StripeNotConfiguredError("STRIPE_SECRET_KEY is not set")
    return StripeClient(
        api_key,
        max_network_retries=settings.stripe_max_network_retries,
        http_client=stripe.HTTPXClient(timeout=settings.stripe_timeout_seconds),
    )


def get_stripe_client() -> StripeClient:
    """Return the process-wide StripeClient, creating it on first call."""
    global _client
    if _client is None:
        _client = build_stripe_client()
        logger.info("Initialized Stripe client (timeout=%ss)", settings.stripe_timeout_seconds)
    return _client


def reset_stripe_client() -> None:
    """Drop the cached client (used on shutdown and in tests)."""
    global _client
    _client = None


async def create_customer(
    email: str, name: str, user_id: str, *, client: StripeClient | None = None
) -> stripe.Customer:
    """Create a Stripe customer linked to a BON-LOG user."""
    client = client or get_stripe_client()
    logger.info("Creating Stripe customer for user %s", user_id)
    customer = await client.v1.customers.create_async(
        params={
            "email": email,
            "name": name,
            "metadata": {"bonlog_user_id": user_id},
        }
    )
    logger.info("Created Stripe customer %s for user %s", customer.id, user_id)
    return customer


async def create_checkout_session(
    customer_id: str,
    price_id: str,
    success_url: str,
    cancel_url: str,
    user_id: str,
    *,
    client: StripeClient | None = None,
) -> stripe.checkout.Session:
    """Create a Stripe Checkout Session for a premium subscription."""
    client = client or get_stripe_client()
    logger.info(
        "Creating checkout session for customer %s, price %s",
        customer_id,
        price_id,
    )
    return await client.v1.checkout.sessions.create_async(
        params={
            "mode": "subscription",
            "customer": customer_id,
            "payment_method_types": ["card"],
            "line_items": [{"price": price_id, "quantity": 1}],
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": {"bonlog_user_id": user_id},
        }
    )


async def create_portal_session(
    customer_id: str, return_url: str, *, client: StripeClient | None = None
) -> stripe.billing_portal.Session:
    """Create a Stripe Customer Portal session for plan changes and cancellation."""
    client = client or get_stripe_client()
    logger.info("Creating portal session for customer %s", customer_id)
    return await client.v1.billing_portal.sessions.create_async(
        params={
            "customer": customer_id,
            "return_url": return_url,
        }
    )


async def get_subscription(
    subscription_id: str, *, client: StripeClient | None = None
) -> stripe.Subscription:
    """Retrieve a Stripe subscription by ID.

    Raises ``stripe.InvalidRequestError`` with ``code == "resource_missing"``
    when the subscription no longer exists.
    """
    client = client or get_stripe_client()
    return await client.v1.subscriptions.retrieve_async(subscription_id)


async def cancel_subscription(
    subscription_id: str, *, client: StripeClient | None = None
) -> stripe.Subscription:
    """Cancel a Stripe subscription immediately (no proration)."""
    client = client or get_stripe_client()
    logger.info("Cancelling Stripe subscription %s", subscription_id)
    return await client.v1.subscriptions.cancel_async(subscription_id)


async def get_invoice(
    invoice_id: str, *, client: StripeClient | None = None
) -> stripe.Invoice:
    """Retrieve a Stripe invoice by ID."""
    client = client or get_stripe_client()
    return await client.v1.invoices.retrieve_async(invoice_id)


def construct_webhook_event(payload: bytes, sig_header: str) -> stripe.Event:
    """Verify and construct a Stripe webhook event (synchronous)."""
    client = get_stripe_client()
    return client.construct_event(payload, sig_header, settings.stripe_webhook_secret)


def is_resource_missing(error: stripe.StripeError) -> bool:
    """True when Stripe reports the requested object does not exist."""
    return isinstance(error, stripe.InvalidRequestError) and error.code == "resource_missing"
