"""Pydantic v2 schemas for scheduled posts."""

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class MediaItem(BaseModel):
    url: str
    type: Literal["image", "video"]


class ScheduledPostCreate(BaseModel):
    content: str | None = None
    scheduled_at: datetime
    media: list[MediaItem] = Field(default_factory=list)


class ScheduledPostResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    content: str | None
    media: list[MediaItem]
    scheduled_at: datetime
    status: str
