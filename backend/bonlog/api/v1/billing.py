"""Billing API endpoints — membership, Stripe Checkout, and Customer Portal."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from bonlog.api.deps import get_current_user, get_db, get_optional_user, http_error
from bonlog.billing.plans import PLANS
from bonlog.billing.results import Err
from bonlog.models.user import User
from bonlog.schemas.billing import (
    CheckoutRequest,
    CheckoutResponse,
    MembershipLimitsResponse,
    MembershipResponse,
    PaymentHistoryResponse,
    PaymentResponse,
    PlanResponse,
    PlansListResponse,
    PortalResponse,
    SubscriptionStatusResponse,
)
from bonlog.services.entitlement_service import get_membership_info
from bonlog.services.subscription_service import (
    cancel_subscription_immediately,
    create_checkout_session,
    create_customer_portal_session,
    get_payment_history,
    get_subscription_status,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/billing", tags=["billing"])


@router.get("/plans", response_model=PlansListResponse)
async def list_plans() -> PlansListResponse:
    """List premium plans (public — no auth required)."""
    return PlansListResponse(
        plans=[
            PlanResponse(
                plan_type=p.plan_type,
                display_name=p.display_name,
                price_yen=p.price_yen,
                available=p.stripe_price_id is not None,
            )
            for p in PLANS.values()
        ]
    )


@router.get("/membership", response_model=MembershipResponse)
async def get_membership(
    db: AsyncSession = Depends(get_db),
    current_user: User | None = Depends(get_optional_user),
) -> MembershipResponse:
    """Membership tier and posting limits of the current viewer."""
    info = await get_membership_info(db, current_user)
    return MembershipResponse(
        is_premium=info.is_premium,
        limits=MembershipLimitsResponse.model_validate(info.limits),
    )


@router.get("/subscription", response_model=SubscriptionStatusResponse)
async def get_subscription(
    db: AsyncSession = Depends(get_db),
    current_user: User | None = Depends(get_optional_user),
) -> SubscriptionStatusResponse:
    """Stored premium state plus Stripe's live subscription view."""
    result = await get_subscription_status(db, current_user)
    if isinstance(result, Err):
        raise http_error(result)
    return SubscriptionStatusResponse.model_validate(result.value)


@router.post("/checkout", response_model=CheckoutResponse)
async def create_checkout(
    body: CheckoutRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User | None = Depends(get_optional_user),
) -> CheckoutResponse:
    """Create a Stripe Checkout session for the monthly or yearly plan."""
    result = await create_checkout_session(db, current_user, body.plan_type)
    if isinstance(result, Err):
        raise http_error(result)
    return CheckoutResponse(checkout_url=result.value.url, session_id=result.value.session_id)


@router.post("/portal", response_model=PortalResponse)
async def create_portal(
    db: AsyncSession = Depends(get_db),
    current_user: User | None = Depends(get_optional_user),
) -> PortalResponse:
    """Create a Stripe Customer Portal session for subscription management."""
    result = await create_customer_portal_session(db, current_user)
    if isinstance(result, Err):
        raise http_error(result)
    return PortalResponse(portal_url=result.value.url)


@router.post("/cancel")
async def cancel_subscription(
    db: AsyncSession = Depends(get_db),
    current_user: User | None = Depends(get_optional_user),
) -> dict[str, bool]:
    """Cancel the subscription immediately (no refund for the current period)."""
    result = await cancel_subscription_immediately(db, current_user)
    if isinstance(result, Err):
        raise http_error(result)
    return {"success": True}


@router.get("/payments", response_model=PaymentHistoryResponse)
async def list_payments(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> PaymentHistoryResponse:
    """The current user's 20 most recent payments."""
    result = await get_payment_history(db, current_user)
    if isinstance(result, Err):
        raise http_error(result)
    return PaymentHistoryResponse(
        payments=[PaymentResponse.model_validate(p) for p in result.value]
    )
