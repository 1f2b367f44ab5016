"""Pydantic v2 schemas for the admin premium endpoints."""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class GrantPremiumRequest(BaseModel):
    duration_days: int = Field(default=30, ge=1, le=3650)


class ExtendPremiumRequest(BaseModel):
    additional_days: int = Field(ge=1, le=3650)


class PremiumGrantResponse(BaseModel):
    user_id: uuid.UUID
    is_premium: bool
    premium_expires_at: datetime | None


class PremiumUserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    email: str
    nickname: str
    is_premium: bool
    premium_expires_at: datetime | None
    stripe_subscription_id: str | None


class PremiumUsersListResponse(BaseModel):
    users: list[PremiumUserResponse]
    total: int


class UserSearchResponse(BaseModel):
    users: list[PremiumUserResponse]


class PremiumStatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_premium_users: int
    new_this_month: int
    expiring_in_7_days: int
    total_revenue: int
