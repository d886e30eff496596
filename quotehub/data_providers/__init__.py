"""
Data Providers Package

This package contains the quote provider adapters and the infrastructure
around them: rate limiting, circuit breaking, caching and orchestration.
"""
from quotehub.data_providers.symbols import SymbolNormalizer, InvalidSymbolFormat, normalize_symbol
from quotehub.data_providers.rate_limiter import RateLimiter, RateLimitConfig
from quotehub.data_providers.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitState,
    ProviderHealth,
)
from quotehub.data_providers.cache_manager import QuoteCache, CacheConfig, CacheEntry
from quotehub.data_providers.orchestrator import (
    QuoteOrchestrator,
    OrchestratorConfig,
    QuoteResult,
    QuoteError,
)

__all__ = [
    # Symbols
    "SymbolNormalizer",
    "InvalidSymbolFormat",
    "normalize_symbol",
    # Rate Limiter
    "RateLimiter",
    "RateLimitConfig",
    # Circuit Breaker
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitState",
    "ProviderHealth",
    # Cache
    "QuoteCache",
    "CacheConfig",
    "CacheEntry",
    # Orchestrator
    "QuoteOrchestrator",
    "OrchestratorConfig",
    "QuoteResult",
    "QuoteError",
]
