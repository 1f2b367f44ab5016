"""Shared test configuration and fixtures.

Each test gets a fresh in-memory SQLite database (aiosqlite) with all tables
created, so tests are fully isolated and need no running PostgreSQL.
"""

import uuid
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from bonlog.auth.jwt import create_access_token
from bonlog.billing.timeutils import utc_now
from bonlog.database import Base, get_db, make_session_factory
from bonlog.main import app
from bonlog.models.user import User

TEST_DATABASE_URL = "sqlite+aiosqlite://"


class StripeObj(SimpleNamespace):
    """SimpleNamespace with bracket notation support (like Stripe API objects).

    Stripe API 2025-08-27 (basil) changed subscription.items to require
    bracket notation to avoid collision with Python dict .items().
    """

    def __getitem__(self, key: str):
        try:
            return getattr(self, key)
        except AttributeError as e:
            raise KeyError(key) from e


def make_stripe_sub(
    status: str = "active",
    period_end: datetime | None = None,
    sub_id: str = "sub_test_123",
    customer: str = "cus_test_123",
    price_id: str = "price_monthly_test",
    cancel_at_period_end: bool = False,
) -> StripeObj:
    """Create a fake Stripe Subscription with the period end on its item."""
    period_end = period_end or (utc_now() + timedelta(days=30)).replace(microsecond=0)
    return StripeObj(
        id=sub_id,
        customer=customer,
        status=status,
        cancel_at_period_end=cancel_at_period_end,
        items=StripeObj(
            data=[
                StripeObj(
                    price=StripeObj(id=price_id),
                    current_period_end=to_ts(period_end),
                )
            ]
        ),
    )


def to_ts(value: datetime) -> int:
    """Naive UTC datetime -> Unix timestamp."""
    return int((value - datetime(1970, 1, 1)).total_seconds())


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def test_engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return make_session_factory(test_engine)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Provide an httpx AsyncClient wired to use the test DB session."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session
        await db_session.commit()

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


async def create_user(
    db_session: AsyncSession,
    *,
    is_premium: bool = False,
    premium_expires_at: datetime | None = None,
    stripe_customer_id: str | None = None,
    stripe_subscription_id: str | None = None,
    role: str = "user",
    nickname: str | None = None,
) -> User:
    """Insert a user and commit so other sessions can see it."""
    unique = uuid.uuid4().hex[:8]
    user = User(
        email=f"user-{unique}@test.com",
        nickname=nickname or f"user-{unique}",
        is_active=True,
        role=role,
        is_premium=is_premium,
        premium_expires_at=premium_expires_at,
        stripe_customer_id=stripe_customer_id,
        stripe_subscription_id=stripe_subscription_id,
    )
    db_session.add(user)
    await db_session.commit()
    return user


def auth_headers_for(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(str(user.id))}"}


@pytest_asyncio.fixture
async def free_user(db_session: AsyncSession) -> User:
    return await create_user(db_session)


@pytest_asyncio.fixture
async def premium_user(db_session: AsyncSession) -> User:
    return await create_user(
        db_session,
        is_premium=True,
        premium_expires_at=utc_now() + timedelta(days=20),
        stripe_customer_id=f"cus_{uuid.uuid4().hex[:8]}",
        stripe_subscription_id=f"sub_{uuid.uuid4().hex[:8]}",
    )


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> User:
    return await create_user(db_session, role="admin", nickname="admin")


@pytest_asyncio.fixture
async def free_auth_headers(free_user: User) -> dict[str, str]:
    return auth_headers_for(free_user)


@pytest_asyncio.fixture
async def premium_auth_headers(premium_user: User) -> dict[str, str]:
    return auth_headers_for(premium_user)


@pytest_asyncio.fixture
async def admin_auth_headers(admin_user: User) -> dict[str, str]:
    return auth_headers_for(admin_user)
