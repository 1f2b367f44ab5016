"""Membership tiers, usage limits, and the Stripe price for each billing interval."""

from dataclasses import dataclass
from enum import Enum
from typing import Literal

from bonlog.config import settings

MembershipType = Literal["free", "premium"]


@dataclass(frozen=True)
class MembershipLimits:
    """Usage limits for a membership tier."""

    max_post_length: int
    max_images: int
    max_videos: int
    max_daily_posts: int
    can_schedule_post: bool
    can_view_analytics: bool


FREE_LIMITS = MembershipLimits(
    max_post_length=500,
    max_images=4,
    max_videos=1,
    max_daily_posts=20,
    can_schedule_post=False,
    can_view_analytics=False,
)

PREMIUM_LIMITS = MembershipLimits(
    max_post_length=2000,
    max_images=6,
    max_videos=3,
    max_daily_posts=40,
    can_schedule_post=True,
    can_view_analytics=True,
)


def limits_for(is_premium: bool) -> MembershipLimits:
    return PREMIUM_LIMITS if is_premium else FREE_LIMITS


class PlanType(str, Enum):
    """Billing interval offered at checkout."""

    MONTHLY = "monthly"
    YEARLY = "yearly"


@dataclass(frozen=True)
class PremiumPlan:
    """A purchasable premium plan."""

    plan_type: PlanType
    display_name: str
    price_yen: int
    stripe_price_id: str | None  # None until configured


def _plans() -> dict[PlanType, PremiumPlan]:
    return {
        PlanType.MONTHLY: PremiumPlan(
            plan_type=PlanType.MONTHLY,
            display_name="月額プラン",
            price_yen=500,
            stripe_price_id=settings.stripe_price_id_monthly or None,
        ),
        PlanType.YEARLY: PremiumPlan(
            plan_type=PlanType.YEARLY,
            display_name="年額プラン",
            price_yen=5000,
            stripe_price_id=settings.stripe_price_id_yearly or None,
        ),
    }


PLANS: dict[PlanType, PremiumPlan] = _plans()


def get_plan(plan_type: PlanType | str) -> PremiumPlan:
    """Get a premium plan by interval. Raises ValueError for unknown intervals."""
    return PLANS[PlanType(plan_type)]


def get_plan_by_price_id(price_id: str) -> PlanType | None:
    """Reverse lookup: Stripe price ID -> plan type. Returns None if not found."""
    for plan in PLANS.values():
        if plan.stripe_price_id and plan.stripe_price_id == price_id:
            return plan.plan_type
    return None
