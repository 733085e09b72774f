"""
Application Configuration - Pydantic Settings for type-safe config.

FAIL FAST - Invalid config is rejected when settings are loaded.
"""

import sys

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
_LOG_FORMATS = ("json", "console")


class ConfigurationError(Exception):
    """Raised when critical configuration is missing or invalid."""

    pass


class Settings(BaseSettings):
    """Settings loaded from ``BILLING_*`` environment variables."""

    service_name: str = "subscription-billing"
    version: str = "0.1.0"

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # json or console

    # Observability - Metrics
    metrics_enabled: bool = True

    # Product granted by SubscriptionService.grant_free when none is given
    default_free_product_id: str = "free"

    model_config = SettingsConfigDict(
        env_prefix="BILLING_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @model_validator(mode="after")
    def validate_critical_config(self) -> "Settings":
        """Reject settings the service cannot run with."""
        errors: list[str] = []

        if self.log_level.upper() not in _LOG_LEVELS:
            errors.append(f"LOG_LEVEL must be one of {', '.join(_LOG_LEVELS)}, got: {self.log_level}")
        if self.log_format not in _LOG_FORMATS:
            errors.append(f"LOG_FORMAT must be 'json' or 'console', got: {self.log_format}")
        if not self.default_free_product_id:
            errors.append("DEFAULT_FREE_PRODUCT_ID cannot be empty")

        if errors:
            error_msg = "\n".join(
                [
                    "",
                    "=" * 60,
                    "CONFIGURATION ERROR",
                    "=" * 60,
                    *[f"  ✗ {e}" for e in errors],
                    "=" * 60,
                    "",
                ]
            )
            print(error_msg, file=sys.stderr)
            raise ConfigurationError(error_msg)

        return self


# Global settings instance - validates at import time
settings = Settings()


def get_settings() -> Settings:
    """Get application settings instance."""
    return settings
