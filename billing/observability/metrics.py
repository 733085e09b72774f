"""
Metrics Collection with Prometheus.

Exposes subscription lifecycle and purchase verification metrics.
"""

import time

from prometheus_client import CollectorRegistry, Counter, Histogram, Info, generate_latest

from billing.config import settings


_GATEWAY = "gateway"
_TRANSITION = "transition"
_OUTCOME = "outcome"
_ERROR_TYPE = "error_type"


class SubscriptionMetrics:
    """
    Centralized metrics for subscription handling.

    Covers:
    - Subscription transitions (created, refreshed, gateway switched)
    - Purchase verifications (rate, outcome, duration)
    """

    def __init__(
        self, registry: CollectorRegistry | None = None, enabled: bool | None = None
    ) -> None:
        """Initialize all Prometheus metrics on ``registry``."""
        self.registry = registry or CollectorRegistry()
        self.enabled = settings.metrics_enabled if enabled is None else enabled

        self.service_info = Info(
            "subscription_service",
            "Service information",
            registry=self.registry,
        )
        self.service_info.info(
            {
                "version": settings.version,
                "service_name": settings.service_name,
            }
        )

        self.subscription_transitions_total = Counter(
            "subscription_transitions_total",
            "Total subscription transitions",
            [_TRANSITION, _GATEWAY],
            registry=self.registry,
        )

        self.purchase_verifications_total = Counter(
            "purchase_verifications_total",
            "Total purchase verifications by outcome",
            [_GATEWAY, _OUTCOME, _ERROR_TYPE],
            registry=self.registry,
        )

        self.purchase_verification_duration_seconds = Histogram(
            "purchase_verification_duration_seconds",
            "Purchase verification duration in seconds",
            [_GATEWAY],
            buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
            registry=self.registry,
        )

    def record_transition(self, transition: str, gateway: str) -> None:
        """Record a subscription transition."""
        if not self.enabled:
            return
        self.subscription_transitions_total.labels(transition=transition, gateway=gateway).inc()

    def record_verification(
        self, gateway: str, success: bool, duration: float, error_type: str | None = None
    ) -> None:
        """Record a purchase verification attempt."""
        if not self.enabled:
            return
        self.purchase_verifications_total.labels(
            gateway=gateway,
            outcome="success" if success else "failure",
            error_type=error_type or "none",
        ).inc()
        self.purchase_verification_duration_seconds.labels(gateway=gateway).observe(duration)

    def export(self) -> bytes:
        """Prometheus text exposition of all metrics."""
        return generate_latest(self.registry)


# Global metrics instance
metrics = SubscriptionMetrics()


class track_verification:
    """
    Context manager recording the outcome and duration of a verification.

    Usage:
        with track_verification(metrics, "appStore"):
            payload = await verifier.verify(credentials)
    """

    def __init__(self, recorder: SubscriptionMetrics, gateway: str) -> None:
        self.recorder = recorder
        self.gateway = gateway
        self.start_time: float = 0.0

    def __enter__(self) -> "track_verification":
        self.start_time = time.monotonic()
        return self

    def __exit__(self, exc_type: type | None, exc_val: BaseException | None, exc_tb: object) -> None:
        duration = time.monotonic() - self.start_time
        error_type = getattr(exc_val, "code", exc_type.__name__) if exc_type else None
        self.recorder.record_verification(
            self.gateway, success=exc_type is None, duration=duration, error_type=error_type
        )
