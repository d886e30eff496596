"""
Unit Tests - Configuration
Tests for application settings and config.
"""
import pytest
import os
from unittest.mock import patch


class TestSettings:
    """Tests for Settings configuration class."""

    def test_default_app_name(self):
        """Default app name should be set."""
        from quotehub.config import Settings
        settings = Settings()
        assert settings.APP_NAME == "QuoteHub"

    def test_environment_from_env(self):
        """Environment should come from env vars."""
        from quotehub.config import Settings
        settings = Settings()
        # In test environment, this is set to 'testing' by conftest
        assert settings.APP_ENV == "testing"

    def test_api_prefix(self):
        """API prefix should be /api/v1."""
        from quotehub.config import Settings
        settings = Settings()
        assert settings.API_V1_PREFIX == "/api/v1"

    def test_provider_defaults(self):
        """Providers should default to Twelve Data first, Yahoo Finance second."""
        from quotehub.config import Settings
        settings = Settings()
        assert settings.PRIMARY_PROVIDER_NAME == "primary"
        assert settings.SECONDARY_PROVIDER_NAME == "secondary"
        assert settings.TWELVE_DATA_BASE_URL == "https://api.twelvedata.com"
        assert settings.YAHOO_FINANCE_BASE_URL == "https://yfapi.net"
        assert settings.TWELVE_DATA_REQUESTS_PER_MINUTE == 8
        assert settings.YAHOO_FINANCE_REQUESTS_PER_MINUTE == 60

    def test_resilience_defaults(self):
        """Retry, breaker and cache defaults."""
        from quotehub.config import Settings
        settings = Settings()
        assert settings.REQUEST_TIMEOUT_SECONDS == 30.0
        assert settings.MAX_RETRY_ATTEMPTS == 3
        assert settings.RETRY_BASE_DELAY_SECONDS == 1.0
        assert settings.RETRY_MAX_DELAY_SECONDS == 8.0
        assert settings.CIRCUIT_BREAKER_FAILURE_THRESHOLD == 5
        assert settings.CIRCUIT_BREAKER_TIMEOUT_SECONDS == 60.0
        assert settings.CACHE_TTL_SECONDS == 300.0
        assert settings.CACHE_STALE_AFTER_SECONDS == 240.0

    def test_routing_defaults(self):
        """Fallback is on, unresolved symbols are not retried."""
        from quotehub.config import Settings
        settings = Settings()
        assert settings.ENABLE_FALLBACK is True
        assert settings.RETRY_UNRESOLVED_ON_FALLBACK is False

    def test_api_keys_from_env(self):
        """API keys should be read from environment."""
        from quotehub.config import Settings
        settings = Settings()
        assert settings.TWELVE_DATA_API_KEY == "test-twelve-data-key"
        assert settings.YAHOO_FINANCE_API_KEY == "test-yahoo-key"


class TestSettingsEnvironmentOverride:
    """Tests for environment variable overrides."""

    def test_override_from_env(self):
        """Settings should be overridable from environment."""
        from quotehub.config import Settings

        with patch.dict(os.environ, {"ENABLE_FALLBACK": "false", "CACHE_TTL_SECONDS": "60"}):
            settings = Settings()
            assert settings.ENABLE_FALLBACK is False
            assert settings.CACHE_TTL_SECONDS == 60.0

    def test_override_provider_name(self):
        """Provider names are configurable."""
        from quotehub.config import Settings

        with patch.dict(os.environ, {"PRIMARY_PROVIDER_NAME": "twelve"}):
            settings = Settings()
            assert settings.PRIMARY_PROVIDER_NAME == "twelve"


class TestSettingsValidation:
    """Tests for clamping of nonsensical values."""

    def test_counts_clamped_to_one(self):
        """Retry attempts and thresholds must be at least one."""
        from quotehub.config import Settings
        settings = Settings(MAX_RETRY_ATTEMPTS=0, CIRCUIT_BREAKER_FAILURE_THRESHOLD=-3)
        assert settings.MAX_RETRY_ATTEMPTS == 1
        assert settings.CIRCUIT_BREAKER_FAILURE_THRESHOLD == 1

    def test_stale_threshold_capped_at_ttl(self):
        """Stale threshold cannot exceed the TTL."""
        from quotehub.config import Settings
        settings = Settings(CACHE_TTL_SECONDS=100, CACHE_STALE_AFTER_SECONDS=500)
        assert settings.CACHE_STALE_AFTER_SECONDS == 100

    @pytest.mark.parametrize("raw,expected", [
        ("ns", ".NS"),
        (".bo", ".BO"),
        ("", ""),
    ])
    def test_market_suffix_normalized(self, raw, expected):
        """Market suffixes are uppercased with a leading dot."""
        from quotehub.config import Settings
        settings = Settings(TWELVE_DATA_MARKET_SUFFIX=raw)
        assert settings.TWELVE_DATA_MARKET_SUFFIX == expected
