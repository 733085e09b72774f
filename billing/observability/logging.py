"""
Structured Logging with Structlog.

Provides JSON-formatted logs with context bound per operation.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from billing.config import Settings, settings


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Add service-level context to all log entries."""
    event_dict["service"] = settings.service_name
    event_dict["version"] = settings.version
    return event_dict


def setup_logging(config: Settings | None = None) -> None:
    """
    Configure structured logging with structlog.

    Logs are formatted as JSON for machine parsing with the following structure:
    {
        "event": "subscription_created",
        "level": "info",
        "timestamp": "2025-01-08T12:00:00.123456Z",
        "logger": "billing.services.subscriptions",
        "service": "subscription-billing",
        "version": "0.1.0",
        "user_id": "user-123",
        ...additional context
    }
    """
    config = config or settings

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, config.log_level.upper()),
    )

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_app_context,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    if config.log_level.upper() == "DEBUG":
        processors.append(structlog.processors.ExceptionRenderer())
    else:
        processors.append(structlog.processors.format_exc_info)

    if config.log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Usage:
        logger = get_logger(__name__)
        logger.info("subscription_refreshed", user_id=user_id, gateway="appStore")
    """
    return structlog.get_logger(name)  # type: ignore[no-any-return]


class log_context:
    """
    Context manager for adding structured logging context.

    Usage:
        with log_context(user_id="user-456", gateway="playStore"):
            logger.info("verifying_purchase")
    """

    def __init__(self, **kwargs: Any) -> None:
        self.context = kwargs

    def __enter__(self) -> None:
        structlog.contextvars.bind_contextvars(**self.context)

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        structlog.contextvars.unbind_contextvars(*self.context.keys())
