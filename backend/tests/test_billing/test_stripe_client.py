"""Tests for the lazily-built Stripe client wrapper."""

from unittest.mock import patch

import pytest
import stripe

from bonlog.billing import stripe_client
from bonlog.billing.stripe_client import (
    StripeNotConfiguredError,
    build_stripe_client,
    get_stripe_client,
    is_resource_missing,
    reset_stripe_client,
)
from bonlog.config import settings


@pytest.fixture(autouse=True)
def _fresh_client():
    reset_stripe_client()
    yield
    reset_stripe_client()


class TestClientLifecycle:
    def test_missing_key_raises(self):
        with patch.object(settings, "stripe_secret_key", ""):
            with pytest.raises(StripeNotConfiguredError):
                get_stripe_client()

    def test_not_configured_is_a_stripe_error(self):
        """Callers that catch stripe.StripeError also see missing configuration."""
        assert issubclass(StripeNotConfiguredError, stripe.StripeError)

    def test_client_is_cached(self):
        with patch.object(settings, "stripe_secret_key", "sk_test_123"):
            first = get_stripe_client()
            second = get_stripe_client()
        assert first is second

    def test_reset_drops_cached_client(self):
        with patch.object(settings, "stripe_secret_key", "sk_test_123"):
            first = get_stripe_client()
            reset_stripe_client()
            assert stripe_client._client is None
            assert get_stripe_client() is not first

    def test_build_with_explicit_key(self):
        assert isinstance(build_stripe_client("sk_test_abc"), stripe.StripeClient)


class TestIsResourceMissing:
    def test_resource_missing(self):
        error = stripe.InvalidRequestError("No such subscription", "id", code="resource_missing")
        assert is_resource_missing(error) is True

    def test_other_invalid_request(self):
        error = stripe.InvalidRequestError("Bad", "id", code="parameter_invalid")
        assert is_resource_missing(error) is False

    def test_connection_error(self):
        assert is_resource_missing(stripe.APIConnectionError("down")) is False
