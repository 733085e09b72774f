"""
Observability module - Logging and Metrics.
"""

from billing.observability.logging import get_logger, log_context, setup_logging
from billing.observability.metrics import metrics

__all__ = [
    "get_logger",
    "log_context",
    "setup_logging",
    "metrics",
]
