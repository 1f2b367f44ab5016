"""Tests for the entitlement reader (is_premium_user and friends)."""

import uuid
from datetime import timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from bonlog.billing.plans import FREE_LIMITS, PREMIUM_LIMITS
from bonlog.billing.timeutils import utc_now
from bonlog.models.user import User
from bonlog.services.entitlement_service import (
    get_membership_info,
    get_membership_limits,
    get_membership_type,
    get_premium_status,
    is_entitled,
    is_premium_user,
)
from conftest import create_user


class TestIsEntitled:
    """Pure rule: flag set and expiry absent or in the future."""

    def test_flag_without_expiry(self):
        assert is_entitled(True, None) is True

    def test_flag_with_future_expiry(self):
        now = utc_now()
        assert is_entitled(True, now + timedelta(seconds=1), now=now) is True

    def test_flag_with_past_expiry(self):
        now = utc_now()
        assert is_entitled(True, now - timedelta(seconds=1), now=now) is False

    def test_expiry_equal_to_now_is_not_entitled(self):
        now = utc_now()
        assert is_entitled(True, now, now=now) is False

    def test_no_flag_with_future_expiry(self):
        """A stored period end alone never grants premium."""
        assert is_entitled(False, utc_now() + timedelta(days=10)) is False


class TestIsPremiumUser:
    @pytest.mark.asyncio
    async def test_premium_with_future_expiry(self, db_session: AsyncSession):
        user = await create_user(
            db_session, is_premium=True, premium_expires_at=utc_now() + timedelta(days=10)
        )
        assert await is_premium_user(db_session, user.id) is True

    @pytest.mark.asyncio
    async def test_admin_grant_without_expiry(self, db_session: AsyncSession):
        user = await create_user(db_session, is_premium=True, premium_expires_at=None)
        assert await is_premium_user(db_session, user.id) is True

    @pytest.mark.asyncio
    async def test_stale_flag_after_expiry(self, db_session: AsyncSession):
        """Flag still set but expiry passed (sweeper not yet run) reads as free."""
        user = await create_user(
            db_session, is_premium=True, premium_expires_at=utc_now() - timedelta(hours=1)
        )
        assert await is_premium_user(db_session, user.id) is False

    @pytest.mark.asyncio
    async def test_free_user(self, db_session: AsyncSession, free_user: User):
        assert await is_premium_user(db_session, free_user.id) is False

    @pytest.mark.asyncio
    async def test_unknown_user_is_free(self, db_session: AsyncSession):
        assert await is_premium_user(db_session, uuid.uuid4()) is False

    @pytest.mark.asyncio
    async def test_malformed_id_is_free(self, db_session: AsyncSession):
        assert await is_premium_user(db_session, "not-a-uuid") is False

    @pytest.mark.asyncio
    async def test_accepts_string_id(self, db_session: AsyncSession, premium_user: User):
        assert await is_premium_user(db_session, str(premium_user.id)) is True

    @pytest.mark.asyncio
    async def test_does_not_write(self, db_session: AsyncSession):
        """Reading a stale row leaves the stored flag alone."""
        user = await create_user(
            db_session, is_premium=True, premium_expires_at=utc_now() - timedelta(days=1)
        )
        await is_premium_user(db_session, user.id)
        await db_session.refresh(user)
        assert user.is_premium is True


class TestMembershipLimits:
    @pytest.mark.asyncio
    async def test_premium_limits(self, db_session: AsyncSession, premium_user: User):
        limits = await get_membership_limits(db_session, premium_user.id)
        assert limits == PREMIUM_LIMITS
        assert limits.max_post_length == 2000
        assert limits.can_schedule_post is True

    @pytest.mark.asyncio
    async def test_free_limits(self, db_session: AsyncSession, free_user: User):
        limits = await get_membership_limits(db_session, free_user.id)
        assert limits == FREE_LIMITS
        assert limits.max_images == 4
        assert limits.can_schedule_post is False

    @pytest.mark.asyncio
    async def test_membership_type(
        self, db_session: AsyncSession, free_user: User, premium_user: User
    ):
        assert await get_membership_type(db_session, free_user.id) == "free"
        assert await get_membership_type(db_session, premium_user.id) == "premium"


class TestPremiumStatus:
    @pytest.mark.asyncio
    async def test_raw_fields(self, db_session: AsyncSession, premium_user: User):
        status = await get_premium_status(db_session, premium_user.id)
        assert status is not None
        assert status.is_premium is True
        assert status.premium_expires_at == premium_user.premium_expires_at
        assert status.has_stripe_subscription is True

    @pytest.mark.asyncio
    async def test_unknown_user(self, db_session: AsyncSession):
        assert await get_premium_status(db_session, uuid.uuid4()) is None


class TestMembershipInfo:
    @pytest.mark.asyncio
    async def test_anonymous_viewer_is_free(self, db_session: AsyncSession):
        info = await get_membership_info(db_session, None)
        assert info.is_premium is False
        assert info.limits == FREE_LIMITS

    @pytest.mark.asyncio
    async def test_premium_viewer(self, db_session: AsyncSession, premium_user: User):
        info = await get_membership_info(db_session, premium_user)
        assert info.is_premium is True
        assert info.limits == PREMIUM_LIMITS
