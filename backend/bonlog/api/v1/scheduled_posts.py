"""Scheduled post endpoints — premium members only."""

import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from bonlog.api.deps import get_current_user, get_db, http_error, require_schedule_access
from bonlog.billing.results import Err
from bonlog.models.user import User
from bonlog.schemas.scheduled_post import ScheduledPostCreate, ScheduledPostResponse
from bonlog.services import scheduled_post_service

router = APIRouter(prefix="/api/v1/scheduled-posts", tags=["scheduled-posts"])


@router.post(
    "",
    response_model=ScheduledPostResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_schedule_access)],
)
async def create_scheduled_post(
    body: ScheduledPostCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ScheduledPostResponse:
    """Queue a post for later publication."""
    result = await scheduled_post_service.create_scheduled_post(
        db,
        current_user,
        body.content,
        body.scheduled_at,
        media=[m.model_dump() for m in body.media],
    )
    if isinstance(result, Err):
        raise http_error(result)
    return ScheduledPostResponse.model_validate(result.value)


@router.get("", response_model=list[ScheduledPostResponse])
async def list_scheduled_posts(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[ScheduledPostResponse]:
    """All of the user's scheduled posts, including cancelled ones."""
    posts = await scheduled_post_service.list_scheduled_posts(db, current_user)
    return [ScheduledPostResponse.model_validate(p) for p in posts]


@router.post("/{post_id}/cancel", response_model=ScheduledPostResponse)
async def cancel_scheduled_post(
    post_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ScheduledPostResponse:
    result = await scheduled_post_service.cancel_scheduled_post(db, current_user, post_id)
    if isinstance(result, Err):
        raise http_error(result)
    return ScheduledPostResponse.model_validate(result.value)
