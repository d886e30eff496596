"""
QuoteHub - Test Configuration
Shared fixtures and test configuration.
"""
import asyncio
import os
from decimal import Decimal
from typing import Any, Optional
import pytest
from loguru import logger

# Set test environment
os.environ["APP_ENV"] = "testing"
os.environ["TWELVE_DATA_API_KEY"] = "test-twelve-data-key"
os.environ["YAHOO_FINANCE_API_KEY"] = "test-yahoo-key"

from quotehub.data_providers.adapters.base import BaseAdapter, ProviderConfig, Quote, ProviderError
from quotehub.data_providers.cache_manager import QuoteCache, CacheConfig
from quotehub.data_providers.circuit_breaker import CircuitBreaker, CircuitBreakerConfig
from quotehub.data_providers.orchestrator import QuoteOrchestrator, OrchestratorConfig
from quotehub.data_providers.rate_limiter import RateLimiter, RateLimitConfig


# =========================
# Clock
# =========================

class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# =========================
# Fake Provider
# =========================

class FakeAdapter(BaseAdapter):
    """
    Scripted provider for orchestrator tests.

    prices: symbols this provider can resolve
    errors: raised in order, one per upstream request, before prices are served
    fail_with: raised on every request
    delay: real seconds each request takes
    """

    def __init__(
        self,
        name: str = "primary",
        prices: Optional[dict[str, str]] = None,
        priority: int = 10,
        clock: Optional[FakeClock] = None,
        requests_per_minute: int = 60,
        failure_threshold: int = 5,
        circuit_timeout_seconds: float = 60.0,
        retry_attempts: int = 3,
        retry_delay: float = 1.0,
        errors: Optional[list[ProviderError]] = None,
        fail_with: Optional[Exception] = None,
        delay: float = 0.0,
        real_sleep: bool = False,
        healthy: bool = True,
    ):
        self.prices = prices if prices is not None else {"AAPL": "189.50", "MSFT": "410.25", "GOOGL": "140.10"}
        self.errors = list(errors or [])
        self.fail_with = fail_with
        self.delay = delay
        self.real_sleep = real_sleep
        self.healthy = healthy
        self.requests: list[list[str]] = []
        self.sleeps: list[float] = []
        self.initialized = False
        self.closed = False

        clock = clock or FakeClock()
        config = ProviderConfig(
            name=name,
            api_key="test",
            requests_per_minute=requests_per_minute,
            failure_threshold=failure_threshold,
            circuit_timeout_seconds=circuit_timeout_seconds,
            retry_attempts=retry_attempts,
            retry_delay=retry_delay,
            priority=priority,
        )
        super().__init__(
            config,
            rate_limiter=RateLimiter(name, RateLimitConfig(requests_per_minute, 60.0), clock=clock),
            circuit_breaker=CircuitBreaker(
                name,
                CircuitBreakerConfig(failure_threshold, circuit_timeout_seconds),
                clock=clock,
            ),
            sleep=self._sleep_for,
        )

    async def _sleep_for(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        if self.real_sleep:
            await asyncio.sleep(seconds)

    async def initialize(self) -> None:
        self.initialized = True

    async def close(self) -> None:
        self.closed = True

    async def _request_quotes(self, provider_symbols: list[str]) -> list[dict[str, Any]]:
        self.requests.append(list(provider_symbols))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_with is not None:
            raise self.fail_with
        if self.errors:
            raise self.errors.pop(0)
        return [
            {"symbol": s, "price": self.prices[s]}
            for s in provider_symbols
            if s in self.prices
        ]

    def _parse_quote(self, raw: dict[str, Any]) -> Quote:
        return Quote(symbol=raw["symbol"], price=Decimal(raw["price"]), display_name=raw["symbol"])

    async def _check_upstream(self) -> bool:
        return self.healthy


@pytest.fixture
def make_adapter(clock):
    """Factory for fake providers sharing the test clock."""
    def _make(name: str = "primary", **kwargs) -> FakeAdapter:
        kwargs.setdefault("clock", clock)
        return FakeAdapter(name=name, **kwargs)
    return _make


@pytest.fixture
def primary(make_adapter) -> FakeAdapter:
    return make_adapter("primary", priority=10)


@pytest.fixture
def secondary(make_adapter) -> FakeAdapter:
    return make_adapter(
        "secondary",
        priority=20,
        prices={"AAPL": "189.40", "MSFT": "410.00", "GOOGL": "140.00", "XYZ": "1.23"},
    )


@pytest.fixture
def cache(clock) -> QuoteCache:
    return QuoteCache(CacheConfig(ttl_seconds=300.0, stale_after_seconds=240.0), clock=clock)


@pytest.fixture
def make_orchestrator(cache, clock):
    """Factory for orchestrators over the given providers."""
    def _make(providers: list[BaseAdapter], **config) -> QuoteOrchestrator:
        return QuoteOrchestrator(providers, cache=cache, config=OrchestratorConfig(**config), clock=clock)
    return _make


@pytest.fixture
def orchestrator(make_orchestrator, primary, secondary) -> QuoteOrchestrator:
    return make_orchestrator([primary, secondary])


# =========================
# Log Capture
# =========================

@pytest.fixture
def log_records():
    """Collect loguru records emitted during a test."""
    records: list[dict] = []
    handler_id = logger.add(lambda message: records.append(message.record), level="DEBUG")
    yield records
    logger.remove(handler_id)
