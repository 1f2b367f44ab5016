"""Tests for billing API endpoints with mocked Stripe calls."""

from datetime import timedelta
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest
import stripe
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from bonlog.billing.plans import PLANS, PlanType, PremiumPlan
from bonlog.billing.timeutils import utc_now
from bonlog.models.user import User
from conftest import auth_headers_for, create_user


@pytest.fixture
def priced_plans():
    with patch.dict(
        PLANS,
        {
            PlanType.MONTHLY: PremiumPlan(PlanType.MONTHLY, "月額プラン", 500, "price_monthly_test"),
            PlanType.YEARLY: PremiumPlan(PlanType.YEARLY, "年額プラン", 5000, "price_yearly_test"),
        },
    ):
        yield


class TestListPlans:
    """Test GET /api/v1/billing/plans."""

    @pytest.mark.asyncio
    async def test_lists_monthly_and_yearly(self, client: AsyncClient):
        response = await client.get("/api/v1/billing/plans")
        assert response.status_code == 200
        plans = {p["plan_type"]: p for p in response.json()["plans"]}
        assert set(plans) == {"monthly", "yearly"}
        assert plans["monthly"]["price_yen"] == 500
        assert plans["yearly"]["price_yen"] == 5000

    @pytest.mark.asyncio
    async def test_availability_follows_price_config(self, client: AsyncClient, priced_plans):
        response = await client.get("/api/v1/billing/plans")
        assert all(p["available"] for p in response.json()["plans"])


class TestMembership:
    """Test GET /api/v1/billing/membership."""

    @pytest.mark.asyncio
    async def test_anonymous_is_free(self, client: AsyncClient):
        response = await client.get("/api/v1/billing/membership")
        assert response.status_code == 200
        data = response.json()
        assert data["is_premium"] is False
        assert data["limits"]["max_post_length"] == 500

    @pytest.mark.asyncio
    async def test_premium_user(self, client: AsyncClient, premium_auth_headers: dict):
        response = await client.get("/api/v1/billing/membership", headers=premium_auth_headers)
        data = response.json()
        assert data["is_premium"] is True
        assert data["limits"]["max_post_length"] == 2000
        assert data["limits"]["can_schedule_post"] is True

    @pytest.mark.asyncio
    async def test_expired_premium_reads_as_free(
        self, client: AsyncClient, db_session: AsyncSession
    ):
        user = await create_user(
            db_session, is_premium=True, premium_expires_at=utc_now() - timedelta(minutes=1)
        )
        response = await client.get(
            "/api/v1/billing/membership", headers=auth_headers_for(user)
        )
        assert response.json()["is_premium"] is False


class TestCheckout:
    """Test POST /api/v1/billing/checkout."""

    @pytest.mark.asyncio
    async def test_requires_auth(self, client: AsyncClient):
        response = await client.post("/api/v1/billing/checkout", json={"plan_type": "monthly"})
        assert response.status_code == 401
        assert response.json()["detail"] == {"error": "認証が必要です", "code": "unauthenticated"}

    @pytest.mark.asyncio
    async def test_invalid_plan_type(self, client: AsyncClient, free_auth_headers: dict):
        response = await client.post(
            "/api/v1/billing/checkout", json={"plan_type": "weekly"}, headers=free_auth_headers
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_already_premium(
        self, client: AsyncClient, premium_auth_headers: dict, priced_plans
    ):
        response = await client.post(
            "/api/v1/billing/checkout", json={"plan_type": "monthly"}, headers=premium_auth_headers
        )
        assert response.status_code == 409
        assert response.json()["detail"]["error"] == "すでに有料会員です"

    @pytest.mark.asyncio
    async def test_price_not_configured(self, client: AsyncClient, free_auth_headers: dict):
        response = await client.post(
            "/api/v1/billing/checkout", json={"plan_type": "monthly"}, headers=free_auth_headers
        )
        assert response.status_code == 503
        assert response.json()["detail"]["code"] == "price_not_configured"

    @pytest.mark.asyncio
    async def test_returns_checkout_url(
        self, client: AsyncClient, db_session: AsyncSession, priced_plans
    ):
        user = await create_user(db_session, stripe_customer_id="cus_api")
        session = SimpleNamespace(id="cs_api", url="https://checkout.stripe.com/c/cs_api")

        with patch(
            "bonlog.billing.stripe_client.create_checkout_session",
            new=AsyncMock(return_value=session),
        ) as mock_create:
            response = await client.post(
                "/api/v1/billing/checkout",
                json={"plan_type": "yearly"},
                headers=auth_headers_for(user),
            )

        assert response.status_code == 200
        assert response.json() == {
            "checkout_url": "https://checkout.stripe.com/c/cs_api",
            "session_id": "cs_api",
        }
        assert mock_create.call_args.kwargs["price_id"] == "price_yearly_test"
        assert mock_create.call_args.kwargs["customer_id"] == "cus_api"

    @pytest.mark.asyncio
    async def test_stripe_failure_is_502(
        self, client: AsyncClient, db_session: AsyncSession, priced_plans
    ):
        user = await create_user(db_session, stripe_customer_id="cus_api")
        with patch(
            "bonlog.billing.stripe_client.create_checkout_session",
            new=AsyncMock(side_effect=stripe.APIConnectionError("down")),
        ):
            response = await client.post(
                "/api/v1/billing/checkout",
                json={"plan_type": "monthly"},
                headers=auth_headers_for(user),
            )
        assert response.status_code == 502
        assert response.json()["detail"]["code"] == "provider_error"


class TestPortal:
    """Test POST /api/v1/billing/portal."""

    @pytest.mark.asyncio
    async def test_no_customer(self, client: AsyncClient, free_auth_headers: dict):
        response = await client.post("/api/v1/billing/portal", headers=free_auth_headers)
        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "サブスクリプション情報が見つかりません"

    @pytest.mark.asyncio
    async def test_returns_portal_url(self, client: AsyncClient, premium_auth_headers: dict):
        with patch(
            "bonlog.billing.stripe_client.create_portal_session",
            new=AsyncMock(return_value=SimpleNamespace(url="https://billing.stripe.com/p/x")),
        ):
            response = await client.post("/api/v1/billing/portal", headers=premium_auth_headers)
        assert response.status_code == 200
        assert response.json()["portal_url"] == "https://billing.stripe.com/p/x"


class TestCancel:
    """Test POST /api/v1/billing/cancel."""

    @pytest.mark.asyncio
    async def test_cancel_clears_premium(
        self, client: AsyncClient, db_session: AsyncSession, premium_user: User
    ):
        with patch(
            "bonlog.billing.stripe_client.cancel_subscription", new=AsyncMock()
        ) as mock_cancel:
            response = await client.post(
                "/api/v1/billing/cancel", headers=auth_headers_for(premium_user)
            )

        assert response.status_code == 200
        assert response.json() == {"success": True}
        mock_cancel.assert_awaited_once()
        await db_session.refresh(premium_user)
        assert premium_user.is_premium is False
        assert premium_user.stripe_subscription_id is None

    @pytest.mark.asyncio
    async def test_no_subscription(self, client: AsyncClient, free_auth_headers: dict):
        response = await client.post("/api/v1/billing/cancel", headers=free_auth_headers)
        assert response.status_code == 404


class TestSubscriptionAndPayments:
    @pytest.mark.asyncio
    async def test_subscription_without_stripe_link(
        self, client: AsyncClient, free_auth_headers: dict
    ):
        response = await client.get("/api/v1/billing/subscription", headers=free_auth_headers)
        assert response.status_code == 200
        assert response.json() == {
            "is_premium": False,
            "premium_expires_at": None,
            "subscription": None,
        }

    @pytest.mark.asyncio
    async def test_payments_require_auth(self, client: AsyncClient):
        response = await client.get("/api/v1/billing/payments")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_payments_empty(self, client: AsyncClient, free_auth_headers: dict):
        response = await client.get("/api/v1/billing/payments", headers=free_auth_headers)
        assert response.status_code == 200
        assert response.json() == {"payments": []}


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
