"""
Tests for application settings.
"""

import pytest

from billing.config import ConfigurationError, Settings, get_settings, settings


class TestSettings:
    """Tests for Settings loading and validation."""

    def test_defaults(self, monkeypatch):
        for name in ("BILLING_LOG_LEVEL", "BILLING_LOG_FORMAT", "BILLING_DEFAULT_FREE_PRODUCT_ID"):
            monkeypatch.delenv(name, raising=False)

        config = Settings(_env_file=None)

        assert config.service_name == "subscription-billing"
        assert config.log_level == "INFO"
        assert config.log_format == "json"
        assert config.metrics_enabled is True
        assert config.default_free_product_id == "free"

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("BILLING_DEFAULT_FREE_PRODUCT_ID", "basic")
        monkeypatch.setenv("BILLING_LOG_FORMAT", "console")

        config = Settings(_env_file=None)

        assert config.default_free_product_id == "basic"
        assert config.log_format == "console"

    def test_log_level_case_insensitive(self):
        assert Settings(_env_file=None, log_level="debug").log_level == "debug"

    @pytest.mark.parametrize(
        "overrides,message",
        [
            ({"log_level": "LOUD"}, "LOG_LEVEL"),
            ({"log_format": "xml"}, "LOG_FORMAT"),
            ({"default_free_product_id": ""}, "DEFAULT_FREE_PRODUCT_ID"),
        ],
    )
    def test_fail_fast(self, overrides, message):
        with pytest.raises(ConfigurationError, match=message):
            Settings(_env_file=None, **overrides)

    def test_all_errors_reported(self):
        with pytest.raises(ConfigurationError) as exc_info:
            Settings(_env_file=None, log_level="LOUD", log_format="xml")

        assert "LOG_LEVEL" in str(exc_info.value)
        assert "LOG_FORMAT" in str(exc_info.value)

    def test_get_settings(self):
        assert get_settings() is settings
