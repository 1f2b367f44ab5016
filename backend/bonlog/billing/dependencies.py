"""Membership gating — enforce premium-only features and posting limits."""

from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from bonlog.auth.dependencies import get_current_user
from bonlog.billing.plans import MembershipLimits
from bonlog.database import get_db
from bonlog.models.user import User
from bonlog.services.entitlement_service import get_membership_limits

UPGRADE_URL = "/settings/subscription"


def _payment_required(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_402_PAYMENT_REQUIRED,
        detail={
            "message": message,
            "plan": "free",
            "upgrade_url": UPGRADE_URL,
        },
    )


def check_post_limits(
    limits: MembershipLimits,
    content: str | None,
    image_count: int = 0,
    video_count: int = 0,
) -> str | None:
    """Return a user-facing error if a post exceeds the tier's limits, else None."""
    if content and len(content) > limits.max_post_length:
        return f"投稿は{limits.max_post_length}文字以内で入力してください"
    if image_count > limits.max_images:
        return f"画像は{limits.max_images}枚までです"
    if video_count > limits.max_videos:
        return f"動画は{limits.max_videos}本までです"
    return None


async def get_user_limits(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> MembershipLimits:
    """Fetch the current user's membership limits."""
    return await get_membership_limits(db, user.id)


async def require_schedule_access(
    limits: MembershipLimits = Depends(get_user_limits),
) -> MembershipLimits:
    """Raise 402 unless the user's tier can schedule posts."""
    if not limits.can_schedule_post:
        raise _payment_required("予約投稿は有料会員限定の機能です")
    return limits
