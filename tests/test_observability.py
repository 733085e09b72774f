"""
Tests for structured logging and Prometheus metrics.
"""

import pytest
import structlog
from conftest import app_store_payload
from structlog.testing import capture_logs

from billing.config import Settings
from billing.exceptions import PurchaseCancelledError
from billing.models.credentials import PurchaseCredentials
from billing.observability import get_logger, log_context, setup_logging
from billing.observability.logging import add_app_context
from billing.observability.metrics import SubscriptionMetrics, track_verification
from billing.services.subscriptions import SubscriptionService


@pytest.fixture
def reset_structlog():
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


class TestLogging:
    """Tests for logging configuration."""

    def test_add_app_context(self):
        event_dict = add_app_context(None, "info", {"event": "test"})

        assert event_dict["service"] == "subscription-billing"
        assert event_dict["version"] == "0.1.0"

    @pytest.mark.parametrize("log_format", ["json", "console"])
    def test_setup_logging(self, reset_structlog, log_format):
        setup_logging(Settings(log_format=log_format, log_level="DEBUG"))

        assert structlog.is_configured()
        get_logger("tests.observability").debug("configured", log_format=log_format)

    def test_log_context_binds_and_unbinds(self, reset_structlog):
        with log_context(user_id="user-123", gateway="appStore"):
            bound = structlog.contextvars.get_contextvars()
            assert bound["user_id"] == "user-123"
            assert bound["gateway"] == "appStore"

        assert "user_id" not in structlog.contextvars.get_contextvars()

    def test_log_context_unbinds_on_error(self, reset_structlog):
        with pytest.raises(RuntimeError):
            with log_context(user_id="user-123"):
                raise RuntimeError("boom")

        assert "user_id" not in structlog.contextvars.get_contextvars()


class TestServiceLogging:
    """Service operations emit named events."""

    @pytest.mark.asyncio
    async def test_verification_events(self, verifier, clock, recorder):
        service = SubscriptionService(verifier, clock=clock, recorder=recorder)

        with capture_logs() as logs:
            await service.subscribe(
                PurchaseCredentials.app_store("txn-1", "receipt"), user_id="user-123"
            )

        events = [entry["event"] for entry in logs]
        assert events == ["verifying_purchase", "purchase_verified", "subscription_created"]
        assert logs[1]["product_id"] == "premium.monthly"

    @pytest.mark.asyncio
    async def test_cancelled_event_is_warning(self, verifier, clock, recorder):
        verifier.verify.return_value = app_store_payload(cancelledAt="2020-06-01T00:00:00Z")
        service = SubscriptionService(verifier, clock=clock, recorder=recorder)

        with capture_logs() as logs, pytest.raises(PurchaseCancelledError):
            await service.verify(PurchaseCredentials.app_store("txn-1", "receipt"))

        assert logs[-1]["event"] == "purchase_cancelled"
        assert logs[-1]["log_level"] == "warning"


class TestMetrics:
    """Tests for SubscriptionMetrics."""

    def test_separate_registries(self):
        """Each instance owns a registry, so instances never collide."""
        first = SubscriptionMetrics()
        second = SubscriptionMetrics()

        first.record_transition("created", "free")

        assert first.registry is not second.registry
        assert (
            second.registry.get_sample_value(
                "subscription_transitions_total", {"transition": "created", "gateway": "free"}
            )
            is None
        )

    def test_service_info(self, registry, recorder):
        assert (
            registry.get_sample_value(
                "subscription_service_info",
                {"version": "0.1.0", "service_name": "subscription-billing"},
            )
            == 1.0
        )

    def test_record_verification(self, registry, recorder):
        recorder.record_verification("playStore", success=False, duration=0.2, error_type="timeout")

        assert (
            registry.get_sample_value(
                "purchase_verifications_total",
                {"gateway": "playStore", "outcome": "failure", "error_type": "timeout"},
            )
            == 1.0
        )
        assert (
            registry.get_sample_value(
                "purchase_verification_duration_seconds_sum", {"gateway": "playStore"}
            )
            == pytest.approx(0.2)
        )

    def test_disabled_records_nothing(self, registry):
        recorder = SubscriptionMetrics(registry, enabled=False)

        recorder.record_transition("created", "free")
        recorder.record_verification("appStore", success=True, duration=0.1)

        assert (
            registry.get_sample_value(
                "subscription_transitions_total", {"transition": "created", "gateway": "free"}
            )
            is None
        )
        assert (
            registry.get_sample_value(
                "purchase_verification_duration_seconds_count", {"gateway": "appStore"}
            )
            is None
        )

    def test_export(self, recorder):
        recorder.record_transition("switched", "appStore")

        output = recorder.export()

        assert b"subscription_transitions_total" in output
        assert b'transition="switched"' in output


class TestTrackVerification:
    """Tests for the track_verification context manager."""

    def test_success(self, registry, recorder):
        with track_verification(recorder, "appStore"):
            pass

        assert (
            registry.get_sample_value(
                "purchase_verifications_total",
                {"gateway": "appStore", "outcome": "success", "error_type": "none"},
            )
            == 1.0
        )

    def test_failure_uses_class_name(self, registry, recorder):
        with pytest.raises(KeyError):
            with track_verification(recorder, "appStore"):
                raise KeyError("missing")

        assert (
            registry.get_sample_value(
                "purchase_verifications_total",
                {"gateway": "appStore", "outcome": "failure", "error_type": "KeyError"},
            )
            == 1.0
        )
