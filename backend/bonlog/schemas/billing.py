"""Pydantic v2 request/response schemas for billing endpoints."""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict

from bonlog.billing.plans import PlanType

# --- Request schemas ---


class CheckoutRequest(BaseModel):
    """Request to create a Stripe Checkout session."""

    plan_type: PlanType = PlanType.MONTHLY


# --- Response schemas ---


class PlanResponse(BaseModel):
    """A purchasable premium plan."""

    plan_type: PlanType
    display_name: str
    price_yen: int
    available: bool  # False until the Stripe price is configured


class PlansListResponse(BaseModel):
    plans: list[PlanResponse]


class MembershipLimitsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    max_post_length: int
    max_images: int
    max_videos: int
    max_daily_posts: int
    can_schedule_post: bool
    can_view_analytics: bool


class MembershipResponse(BaseModel):
    """Tier and limits of the current viewer (anonymous viewers are free)."""

    is_premium: bool
    limits: MembershipLimitsResponse


class StripeSubscriptionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    status: str
    current_period_end: datetime | None
    cancel_at_period_end: bool


class SubscriptionStatusResponse(BaseModel):
    """Stored entitlement plus Stripe's live view, if reachable."""

    model_config = ConfigDict(from_attributes=True)

    is_premium: bool
    premium_expires_at: datetime | None
    subscription: StripeSubscriptionResponse | None


class CheckoutResponse(BaseModel):
    """Stripe Checkout session URL returned to frontend."""

    checkout_url: str
    session_id: str


class PortalResponse(BaseModel):
    """Stripe Customer Portal URL returned to frontend."""

    portal_url: str


class PaymentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    amount: int
    currency: str
    status: str
    description: str | None
    created_at: datetime


class PaymentHistoryResponse(BaseModel):
    payments: list[PaymentResponse]
