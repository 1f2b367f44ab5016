"""Scheduled posts — a premium-only feature gated by the entitlement reader."""

import logging
import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from bonlog.billing.dependencies import check_post_limits
from bonlog.billing.results import ErrorCode, Ok, Result, err
from bonlog.billing.timeutils import utc_now
from bonlog.models.scheduled_post import ScheduledPost, ScheduledPostStatus
from bonlog.models.user import User
from bonlog.services.entitlement_service import get_membership_limits

logger = logging.getLogger(__name__)

MAX_SCHEDULE_AHEAD = timedelta(days=30)
MAX_PENDING_POSTS = 10


def _to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


async def create_scheduled_post(
    db: AsyncSession,
    user: User,
    content: str | None,
    scheduled_at: datetime,
    media: list[dict] | None = None,
) -> Result[ScheduledPost]:
    """Queue a post for ``scheduled_at`` if the user's tier allows it."""
    limits = await get_membership_limits(db, user.id)
    if not limits.can_schedule_post:
        return err(ErrorCode.NOT_PREMIUM, "予約投稿は有料会員限定の機能です")

    media = media or []
    scheduled_at = _to_naive_utc(scheduled_at)
    now = utc_now()
    if scheduled_at <= now:
        return err(ErrorCode.INVALID_REQUEST, "予約日時は未来の日時を指定してください")
    if scheduled_at > now + MAX_SCHEDULE_AHEAD:
        return err(ErrorCode.INVALID_REQUEST, "予約日時は30日以内で指定してください")
    if not content and not media:
        return err(ErrorCode.INVALID_REQUEST, "テキストまたはメディアを入力してください")

    limit_error = check_post_limits(
        limits,
        content,
        image_count=sum(1 for m in media if m.get("type") == "image"),
        video_count=sum(1 for m in media if m.get("type") == "video"),
    )
    if limit_error:
        return err(ErrorCode.INVALID_REQUEST, limit_error)

    pending = await db.scalar(
        select(func.count())
        .select_from(ScheduledPost)
        .where(
            ScheduledPost.user_id == user.id,
            ScheduledPost.status == ScheduledPostStatus.PENDING.value,
        )
    )
    if (pending or 0) >= MAX_PENDING_POSTS:
        return err(ErrorCode.INVALID_REQUEST, f"予約投稿は{MAX_PENDING_POSTS}件までです")

    post = ScheduledPost(
        user_id=user.id,
        content=content,
        media=media,
        scheduled_at=scheduled_at,
        status=ScheduledPostStatus.PENDING.value,
    )
    db.add(post)
    await db.flush()
    logger.info("User %s scheduled post %s for %s", user.id, post.id, scheduled_at)
    return Ok(post)


async def list_scheduled_posts(db: AsyncSession, user: User) -> list[ScheduledPost]:
    result = await db.execute(
        select(ScheduledPost)
        .where(ScheduledPost.user_id == user.id)
        .order_by(ScheduledPost.scheduled_at.asc())
    )
    return list(result.scalars().all())


async def cancel_scheduled_post(
    db: AsyncSession, user: User, post_id: uuid.UUID
) -> Result[ScheduledPost]:
    result = await db.execute(
        select(ScheduledPost).where(ScheduledPost.id == post_id, ScheduledPost.user_id == user.id)
    )
    post = result.scalar_one_or_none()
    if post is None:
        return err(ErrorCode.INVALID_REQUEST, "予約投稿が見つかりません")
    if post.status != ScheduledPostStatus.PENDING.value:
        return err(ErrorCode.INVALID_REQUEST, "この予約投稿はキャンセルできません")

    post.status = ScheduledPostStatus.CANCELLED.value
    await db.flush()
    return Ok(post)
