"""Pydantic v2 schemas for cron job endpoints."""

import uuid
from datetime import datetime

from pydantic import BaseModel


class SweepResponse(BaseModel):
    success: bool
    processed_count: int
    cancelled_posts_count: int
    user_ids: list[uuid.UUID]


class ExpiringUser(BaseModel):
    id: uuid.UUID
    nickname: str
    premium_expires_at: datetime | None


class ExpiringUsersResponse(BaseModel):
    users: list[ExpiringUser]
