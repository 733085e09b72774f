"""
Pytest Configuration and Centralized Fixtures.

Provides reusable builders and mocks for testing:
- Purchase records for every gateway, in wire and domain form
- Subscriptions in various states
- A fixed clock and a mocked purchase verifier
"""

from datetime import UTC, datetime, timedelta
from typing import Any
from unittest.mock import AsyncMock

import pytest
from prometheus_client import CollectorRegistry

from billing.clock import FixedClock
from billing.models.gateway import PaymentGateway
from billing.models.purchases import AppStorePurchase, FreePurchase, PlayStorePurchase
from billing.models.subscription import Subscription
from billing.observability.metrics import SubscriptionMetrics

NOW = datetime(2021, 1, 1, tzinfo=UTC)
PAST = datetime(2020, 1, 1, tzinfo=UTC)
FUTURE = datetime(2022, 1, 1, tzinfo=UTC)


# ============================================================================
# Purchase Builders
# ============================================================================


def make_app_store_purchase(**overrides: Any) -> AppStorePurchase:
    """Create an App Store purchase with sensible defaults."""
    values: dict[str, Any] = {
        "product_id": "premium.monthly",
        "original_transaction_id": "1000000512345678",
        "original_purchased_at": datetime(2019, 6, 1, tzinfo=UTC),
        "is_free_trial_eligible": False,
        "expires_at": FUTURE,
        "cancelled_at": None,
        "expiration_intent": None,
        "in_billing_retry_period": False,
        "in_free_trial_period": False,
        "auto_renew_status": 1,
        "receipt": "MIIT0gYJKoZIhvcNAQcCoIITwzCCE78CAQExCzAJBgUrDgMCGgUA",
    }
    values.update(overrides)
    return AppStorePurchase(**values)


def make_play_store_purchase(**overrides: Any) -> PlayStorePurchase:
    """Create a Play Store purchase with sensible defaults."""
    values: dict[str, Any] = {
        "product_id": "premium.monthly",
        "auto_renewing": True,
        "cancel_reason": 0,
        "package_name": "com.example.app",
        "purchase_token": "token-current",
        "purchase_token_history": ("token-1", "token-2"),
        "payment_state": 1,
        "started_at": datetime(2019, 6, 1, tzinfo=UTC),
        "user_canceled_at": None,
        "expires_at": FUTURE,
    }
    values.update(overrides)
    return PlayStorePurchase(**values)


def make_subscription(**overrides: Any) -> Subscription:
    """Create a subscription on the free gateway unless overridden."""
    values: dict[str, Any] = {
        "user_id": "user-123",
        "gateway": PaymentGateway.FREE,
        "free_purchase": FreePurchase(product_id="free"),
        "created_at": PAST,
        "updated_at": PAST,
    }
    values.update(overrides)
    return Subscription(**values)


def app_store_payload(**overrides: Any) -> dict[str, Any]:
    """Wire-format App Store purchase as returned by the verifier."""
    payload: dict[str, Any] = {
        "productId": "premium.monthly",
        "originalTransactionId": "1000000512345678",
        "originalPurchasedAt": "2019-06-01T00:00:00Z",
        "isFreeTrialEligible": False,
        "expiresAt": "2022-01-01T00:00:00Z",
        "cancelledAt": None,
        "expirationIntent": None,
        "inBillingRetryPeriod": False,
        "inFreeTrialPeriod": False,
        "autoRenewStatus": 1,
        "receipt": "MIIT0gYJKoZIhvcNAQcCoIITwzCCE78CAQExCzAJBgUrDgMCGgUA",
    }
    payload.update(overrides)
    return payload


def play_store_payload(**overrides: Any) -> dict[str, Any]:
    """Wire-format Play Store purchase as returned by the verifier."""
    payload: dict[str, Any] = {
        "productId": "premium.monthly",
        "autoRenewing": True,
        "cancelReason": 0,
        "packageName": "com.example.app",
        "purchaseToken": "token-current",
        "purchaseTokenHistory": ["token-1", "token-2"],
        "paymentState": 1,
        "startedAt": "2019-06-01T00:00:00Z",
        "userCanceledAt": None,
        "expiresAt": "2022-01-01T00:00:00Z",
    }
    payload.update(overrides)
    return payload


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def clock() -> FixedClock:
    """Clock frozen at 2021-01-01T00:00:00Z."""
    return FixedClock(NOW)


@pytest.fixture
def registry() -> CollectorRegistry:
    """Fresh Prometheus registry per test."""
    return CollectorRegistry()


@pytest.fixture
def recorder(registry: CollectorRegistry) -> SubscriptionMetrics:
    """Metrics bound to the per-test registry."""
    return SubscriptionMetrics(registry, enabled=True)


@pytest.fixture
def verifier() -> AsyncMock:
    """Purchase verifier returning a valid App Store payload by default."""
    mock = AsyncMock()
    mock.verify = AsyncMock(return_value=app_store_payload())
    return mock


@pytest.fixture
def app_store_purchase() -> AppStorePurchase:
    return make_app_store_purchase()


@pytest.fixture
def play_store_purchase() -> PlayStorePurchase:
    return make_play_store_purchase()
