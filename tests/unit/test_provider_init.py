"""
Unit Tests - Provider Initialization
Tests for building providers and the orchestrator from settings.
"""
import pytest

from quotehub.config import Settings
from quotehub.data_providers.adapters.twelve_data import TwelveDataAdapter
from quotehub.data_providers.adapters.yahoo_finance import YahooFinanceAdapter
from quotehub.data_providers.provider_init import (
    build_orchestrator,
    build_provider_configs,
    build_providers,
)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        TWELVE_DATA_API_KEY="td-key",
        YAHOO_FINANCE_API_KEY="yf-key",
        TWELVE_DATA_MARKET_SUFFIX="ns",
        MAX_RETRY_ATTEMPTS=2,
        CIRCUIT_BREAKER_FAILURE_THRESHOLD=3,
        CACHE_TTL_SECONDS=120,
        CACHE_STALE_AFTER_SECONDS=90,
        RETRY_UNRESOLVED_ON_FALLBACK=True,
    )


class TestProviderConfigs:
    """Tests for per-provider configuration."""

    def test_primary_then_secondary(self, settings):
        """Twelve Data outranks Yahoo Finance."""
        primary, secondary = build_provider_configs(settings)
        assert (primary.name, primary.api_key) == ("primary", "td-key")
        assert (secondary.name, secondary.api_key) == ("secondary", "yf-key")
        assert primary.priority < secondary.priority

    def test_shared_settings_applied(self, settings):
        """Retry and breaker settings reach every provider."""
        for config in build_provider_configs(settings):
            assert config.retry_attempts == 2
            assert config.failure_threshold == 3

    def test_market_suffix(self, settings):
        """Suffix settings are normalized and applied per provider."""
        primary, secondary = build_provider_configs(settings)
        assert primary.market_suffix == ".NS"
        assert secondary.market_suffix == ""


class TestBuildProviders:
    """Tests for adapter construction."""

    def test_adapter_types(self, settings):
        """One adapter of each kind, each with its own limiter and breaker."""
        primary, secondary = build_providers(settings)
        assert isinstance(primary, TwelveDataAdapter)
        assert isinstance(secondary, YahooFinanceAdapter)
        assert primary.rate_limiter is not secondary.rate_limiter
        assert primary.circuit_breaker is not secondary.circuit_breaker
        assert primary.rate_limiter.config.max_requests == 8
        assert primary.circuit_breaker.config.failure_threshold == 3

    def test_missing_key_warns(self, log_records):
        """Providers without an API key are still registered, with a warning."""
        providers = build_providers(Settings(TWELVE_DATA_API_KEY="", YAHOO_FINANCE_API_KEY="yf-key"))
        assert len(providers) == 2
        assert any(
            r["level"].name == "WARNING" and "No API key configured for primary" in r["message"]
            for r in log_records
        )


class TestBuildOrchestrator:
    """Tests for orchestrator wiring."""

    def test_from_settings(self, settings):
        """Cache and routing settings are applied."""
        orchestrator = build_orchestrator(settings)
        assert [p.name for p in orchestrator.providers] == ["primary", "secondary"]
        assert orchestrator.cache.config.ttl_seconds == 120
        assert orchestrator.cache.config.stale_after_seconds == 90
        assert orchestrator.config.retry_unresolved_on_fallback is True

    def test_prebuilt_providers(self, settings, primary, secondary):
        """Prebuilt providers replace the configured adapters."""
        orchestrator = build_orchestrator(settings, providers=[secondary, primary])
        assert orchestrator.providers == [primary, secondary]
