"""
Provider Initialization Module

Builds the ordered provider list from settings and wires each adapter with
its own rate limiter and circuit breaker.
"""
from typing import Optional
from loguru import logger

from quotehub.config import Settings, settings as default_settings
from quotehub.data_providers.adapters.base import BaseAdapter, ProviderConfig
from quotehub.data_providers.adapters.twelve_data import TwelveDataAdapter, create_twelve_data_config
from quotehub.data_providers.adapters.yahoo_finance import YahooFinanceAdapter, create_yahoo_finance_config
from quotehub.data_providers.cache_manager import QuoteCache, CacheConfig
from quotehub.data_providers.orchestrator import QuoteOrchestrator, OrchestratorConfig


def _shared_overrides(cfg: Settings) -> dict:
    """Config fields common to every provider."""
    return {
        "rate_limit_window_seconds": cfg.RATE_LIMIT_WINDOW_SECONDS,
        "timeout_seconds": cfg.REQUEST_TIMEOUT_SECONDS,
        "retry_attempts": cfg.MAX_RETRY_ATTEMPTS,
        "retry_delay": cfg.RETRY_BASE_DELAY_SECONDS,
        "retry_max_delay": cfg.RETRY_MAX_DELAY_SECONDS,
        "failure_threshold": cfg.CIRCUIT_BREAKER_FAILURE_THRESHOLD,
        "circuit_timeout_seconds": cfg.CIRCUIT_BREAKER_TIMEOUT_SECONDS,
    }


def build_provider_configs(cfg: Settings) -> list[ProviderConfig]:
    """Provider configs in priority order (primary first)."""
    shared = _shared_overrides(cfg)
    return [
        create_twelve_data_config(
            cfg.TWELVE_DATA_API_KEY,
            name=cfg.PRIMARY_PROVIDER_NAME,
            base_url=cfg.TWELVE_DATA_BASE_URL,
            requests_per_minute=cfg.TWELVE_DATA_REQUESTS_PER_MINUTE,
            market_suffix=cfg.TWELVE_DATA_MARKET_SUFFIX,
            **shared,
        ),
        create_yahoo_finance_config(
            cfg.YAHOO_FINANCE_API_KEY,
            name=cfg.SECONDARY_PROVIDER_NAME,
            base_url=cfg.YAHOO_FINANCE_BASE_URL,
            requests_per_minute=cfg.YAHOO_FINANCE_REQUESTS_PER_MINUTE,
            market_suffix=cfg.YAHOO_FINANCE_MARKET_SUFFIX,
            **shared,
        ),
    ]


def build_providers(cfg: Settings) -> list[BaseAdapter]:
    """Create one adapter per configured provider."""
    primary_config, secondary_config = build_provider_configs(cfg)
    providers: list[BaseAdapter] = [
        TwelveDataAdapter(primary_config),
        YahooFinanceAdapter(secondary_config),
    ]

    for provider in providers:
        if not provider.config.api_key:
            logger.warning(f"No API key configured for {provider.name} ({provider.__class__.__name__})")
        logger.info(
            f"Registered provider {provider.name}: {provider.__class__.__name__}, "
            f"{provider.config.requests_per_minute}/min, priority {provider.priority}"
        )
    return providers


def build_orchestrator(
    cfg: Optional[Settings] = None,
    providers: Optional[list[BaseAdapter]] = None,
) -> QuoteOrchestrator:
    """
    Wire the orchestrator from settings.

    Args:
        cfg: Settings to read; defaults to the module-level settings
        providers: Prebuilt providers, used instead of the configured adapters

    Returns:
        An uninitialized QuoteOrchestrator
    """
    cfg = cfg or default_settings
    cache = QuoteCache(CacheConfig(
        ttl_seconds=cfg.CACHE_TTL_SECONDS,
        stale_after_seconds=cfg.CACHE_STALE_AFTER_SECONDS,
        max_entries=cfg.CACHE_MAX_ENTRIES,
    ))
    config = OrchestratorConfig(
        enable_fallback=cfg.ENABLE_FALLBACK,
        retry_unresolved_on_fallback=cfg.RETRY_UNRESOLVED_ON_FALLBACK,
        cache_sweep_interval_seconds=cfg.CACHE_SWEEP_INTERVAL_SECONDS,
    )
    return QuoteOrchestrator(
        providers if providers is not None else build_providers(cfg),
        cache=cache,
        config=config,
    )
