"""
Quote Orchestrator

Central coordinator for quote retrieval.
Handles cache lookup, priority-ordered provider fallback, circuit breaker
gating, caller deadlines and diagnostics.
"""
import asyncio
import time
from dataclasses import dataclass, field
from typing import Optional, Any, Callable
from loguru import logger

from quotehub.data_providers.adapters.base import (
    BaseAdapter,
    Quote,
    ErrorKind,
    FetchResult,
    ProviderError,
    ProviderTimeoutError,
    RateLimitExceededError,
)
from quotehub.data_providers.cache_manager import QuoteCache
from quotehub.data_providers.symbols import normalize_symbols
from quotehub.utils.exceptions import (
    AllProvidersFailedError,
    DeadlineExceededError,
    InvalidRequestError,
    ProviderFailure,
    ProviderNotFoundError,
)


@dataclass
class OrchestratorConfig:
    """Configuration for the orchestrator."""
    enable_cache: bool = True
    enable_fallback: bool = True

    # Ask later providers for symbols the answering provider could not resolve
    retry_unresolved_on_fallback: bool = False

    # 0 disables the background cache sweeper
    cache_sweep_interval_seconds: float = 0.0


@dataclass(frozen=True)
class QuoteError:
    """A per-symbol or per-batch note attached to a quote result."""
    target: str
    reason: str

    def to_dict(self) -> dict[str, str]:
        return {"target": self.target, "reason": self.reason}


@dataclass
class QuoteResult:
    """Quotes returned to callers, plus notes for anything missing."""
    quotes: list[Quote] = field(default_factory=list)
    errors: list[QuoteError] = field(default_factory=list)
    unresolved: list[str] = field(default_factory=list)
    provider: Optional[str] = None
    from_cache: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "quotes": [q.to_dict() for q in self.quotes],
            "errors": [e.to_dict() for e in self.errors],
            "unresolved": list(self.unresolved),
            "provider": self.provider,
            "from_cache": self.from_cache,
        }


class QuoteOrchestrator:
    """
    Main interface for fetching quotes.

    Coordinates:
    - Symbol normalization and de-duplication
    - Cache lookup by symbol set
    - Provider selection in priority order, skipping open circuits
    - Outcome signalling back to each provider's circuit breaker
    - Caller deadlines across all fallback attempts

    Usage:
        orchestrator = QuoteOrchestrator([primary, secondary], QuoteCache())
        await orchestrator.initialize()

        result = await orchestrator.get_quotes(["AAPL", "MSFT"], deadline=2.5)
    """

    def __init__(
        self,
        providers: list[BaseAdapter],
        cache: Optional[QuoteCache] = None,
        config: Optional[OrchestratorConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or OrchestratorConfig()
        # sorted() is stable, so equal priorities keep registration order
        self._providers: list[BaseAdapter] = sorted(providers, key=lambda p: p.priority)
        self.cache = cache or QuoteCache()
        self._clock = clock
        self._initialized = False

    @property
    def providers(self) -> list[BaseAdapter]:
        return list(self._providers)

    def get_provider(self, name: str) -> BaseAdapter:
        for provider in self._providers:
            if provider.name == name:
                return provider
        raise ProviderNotFoundError(name)

    async def initialize(self) -> None:
        """Initialize all registered providers."""
        if self._initialized:
            return

        for provider in self._providers:
            try:
                await provider.initialize()
                logger.info(f"Initialized provider: {provider.name}")
            except Exception as e:
                logger.error(f"Failed to initialize provider {provider.name}: {e}")

        self.cache.start_sweeper(self.config.cache_sweep_interval_seconds)
        self._initialized = True
        logger.info(f"Quote orchestrator initialized with {len(self._providers)} providers")

    async def shutdown(self) -> None:
        """Shutdown all providers."""
        await self.cache.stop_sweeper()
        for provider in self._providers:
            try:
                await provider.close()
                logger.info(f"Closed provider: {provider.name}")
            except Exception as e:
                logger.error(f"Error closing provider {provider.name}: {e}")

        self._initialized = False

    # ==================== Quote Operations ====================

    async def get_quotes(self, symbols: list[str], deadline: Optional[float] = None) -> QuoteResult:
        """
        Get quotes for a set of symbols.

        Args:
            symbols: Ticker symbols, any case, duplicates allowed
            deadline: Optional budget in seconds for the whole call

        Returns:
            QuoteResult with one quote per resolved symbol

        Raises:
            InvalidRequestError: Empty list or malformed symbols
            AllProvidersFailedError: Every provider was skipped or failed
            DeadlineExceededError: The deadline ran out before any provider succeeded
        """
        requested, invalid = normalize_symbols(symbols or [])
        if invalid:
            raise InvalidRequestError(
                f"Invalid symbol(s): {', '.join(repr(s) for s in invalid)}",
                invalid_symbols=[str(s) for s in invalid],
            )
        if not requested:
            raise InvalidRequestError("At least one symbol is required")

        if self.config.enable_cache:
            entry = await self.cache.get(requested)
            if entry is not None:
                logger.debug(f"Cache hit for {len(requested)} symbol(s) from {entry.provider}")
                return QuoteResult(
                    quotes=list(entry.quotes),
                    errors=[QuoteError(s, f"unresolved by {entry.provider}") for s in entry.unresolved],
                    unresolved=list(entry.unresolved),
                    provider=entry.provider,
                    from_cache=True,
                )

        return await self._fetch_with_fallback(requested, deadline)

    async def _fetch_with_fallback(self, requested: list[str], deadline: Optional[float]) -> QuoteResult:
        """Walk providers in priority order until one answers."""
        started = self._clock()
        candidates = self._providers if self.config.enable_fallback else self._providers[:1]

        failures: list[ProviderFailure] = []
        quotes: dict[str, Quote] = {}
        unresolved_by: dict[str, str] = {}
        answered_by: Optional[str] = None
        pending = list(requested)
        deadline_hit = False

        for provider in candidates:
            if answered_by is not None and not (self.config.retry_unresolved_on_fallback and pending):
                break

            remaining = None
            if deadline is not None:
                remaining = deadline - (self._clock() - started)
                if remaining <= 0:
                    deadline_hit = True
                    break

            if not await provider.circuit_breaker.allow_request():
                logger.info(f"Skipping {provider.name}: circuit {provider.circuit_breaker.state.value}")
                failures.append(ProviderFailure(provider.name, ErrorKind.CIRCUIT_OPEN.value, "circuit open"))
                continue

            result = await self._call_provider(provider, pending, remaining)
            if result is None:
                deadline_hit = True
                break

            await provider.record_outcome(result)

            if not result.ok:
                self._log_failure(provider, result.error)
                failures.append(ProviderFailure(provider.name, result.error.kind.value, result.error.message))
                continue

            logger.info(
                f"{provider.name} returned {len(result.quotes)} quote(s)"
                + (f", {len(result.unresolved)} unresolved" if result.unresolved else "")
            )
            if answered_by is None:
                answered_by = provider.name
            for quote in result.quotes:
                quotes.setdefault(quote.symbol, quote)
                unresolved_by.pop(quote.symbol, None)
            for symbol in result.unresolved:
                unresolved_by[symbol] = provider.name
            pending = [s for s in requested if s not in quotes]

        if answered_by is None:
            if deadline_hit and deadline is not None:
                logger.warning(f"Deadline of {deadline:g}s exceeded for {', '.join(requested)}")
                raise DeadlineExceededError(deadline, failures)
            logger.error(f"All providers failed for {', '.join(requested)}")
            raise AllProvidersFailedError(requested, failures)

        ordered_quotes = [quotes[s] for s in requested if s in quotes]
        unresolved = [s for s in requested if s not in quotes]

        if self.config.enable_cache:
            await self.cache.set(requested, ordered_quotes, unresolved, answered_by)

        errors = [QuoteError(s, f"unresolved by {unresolved_by.get(s, answered_by)}") for s in unresolved]
        if deadline_hit and deadline is not None:
            errors.append(QuoteError("batch", f"deadline of {deadline:g}s exceeded before fallback completed"))

        return QuoteResult(
            quotes=ordered_quotes,
            errors=errors,
            unresolved=unresolved,
            provider=answered_by,
            from_cache=False,
        )

    async def _call_provider(
        self,
        provider: BaseAdapter,
        symbols: list[str],
        remaining: Optional[float],
    ) -> Optional[FetchResult]:
        """
        Run one provider call, bounded by the remaining deadline budget.

        Returns None when the deadline ran out mid-call. An abandoned or
        cancelled call is not counted against the circuit, but its trial slot
        is released.
        """
        try:
            if remaining is None:
                return await self._guarded_fetch(provider, symbols)
            return await asyncio.wait_for(self._guarded_fetch(provider, symbols), timeout=remaining)
        except asyncio.TimeoutError:
            logger.warning(f"Deadline reached while waiting on {provider.name}, abandoning call")
            await provider.circuit_breaker.release_trial()
            return None
        except asyncio.CancelledError:
            logger.warning(f"Call to {provider.name} cancelled")
            await provider.circuit_breaker.release_trial()
            raise

    async def _guarded_fetch(self, provider: BaseAdapter, symbols: list[str]) -> FetchResult:
        """Convert anything an adapter raises into a failure result."""
        try:
            return await provider.fetch_quotes(symbols)
        except (asyncio.TimeoutError, TimeoutError) as e:
            logger.error(f"Unhandled timeout from {provider.name}: {e}")
            return FetchResult.failure(
                provider.name,
                ProviderTimeoutError(provider.name, message=f"Unhandled timeout: {str(e) or 'no detail'}"),
            )
        except Exception as e:
            logger.exception(f"Unexpected error from {provider.name}: {e}")
            return FetchResult.failure(provider.name, ProviderError(provider.name, f"Unexpected error: {e}"))

    def _log_failure(self, provider: BaseAdapter, error: ProviderError) -> None:
        if isinstance(error, RateLimitExceededError):
            origin = "by upstream" if error.upstream else "locally"
            logger.warning(
                f"Rate limit: {provider.name} throttled {origin}"
                + (f", retry after {error.retry_after}s" if error.retry_after else "")
                + ", falling back"
            )
        else:
            logger.error(f"Provider error from {provider.name} ({error.kind.value}): {error.message}")

    # ==================== Diagnostics ====================

    async def get_provider_health(self) -> dict[str, dict[str, Any]]:
        """Run every provider's health check concurrently."""
        results = await asyncio.gather(
            *(provider.is_healthy() for provider in self._providers),
            return_exceptions=True,
        )

        health: dict[str, dict[str, Any]] = {}
        for provider, outcome in zip(self._providers, results):
            if isinstance(outcome, BaseException):
                logger.warning(f"Health check for {provider.name} raised: {outcome}")
                outcome = False
            health[provider.name] = {
                "healthy": bool(outcome),
                "circuit": provider.circuit_breaker.state.value,
            }
        return health

    def get_circuit_breaker_status(self) -> dict[str, dict[str, Any]]:
        """Get circuit breaker snapshots for all providers."""
        return {
            provider.name: provider.circuit_breaker.snapshot().to_dict()
            for provider in self._providers
        }

    async def reset_circuit_breaker(self, name: str) -> dict[str, Any]:
        """
        Force a provider's circuit closed.

        Raises:
            ProviderNotFoundError: If no provider has that name
        """
        provider = self.get_provider(name)
        await provider.circuit_breaker.reset()
        return provider.circuit_breaker.snapshot().to_dict()

    async def clear_cache(self, symbols: Optional[list[str]] = None) -> int:
        """
        Drop cached quotes.

        Args:
            symbols: Only drop entries containing any of these symbols; all entries when omitted

        Raises:
            InvalidRequestError: If any symbol is malformed
        """
        if not symbols:
            return await self.cache.clear()

        targets, invalid = normalize_symbols(symbols)
        if invalid:
            raise InvalidRequestError(
                f"Invalid symbol(s): {', '.join(repr(s) for s in invalid)}",
                invalid_symbols=[str(s) for s in invalid],
            )
        return await self.cache.invalidate(targets)

    def get_status(self) -> dict[str, Any]:
        """Get comprehensive status of the orchestrator."""
        return {
            "initialized": self._initialized,
            "config": {
                "enable_cache": self.config.enable_cache,
                "enable_fallback": self.config.enable_fallback,
                "retry_unresolved_on_fallback": self.config.retry_unresolved_on_fallback,
            },
            "providers": [
                {
                    "name": provider.name,
                    "type": provider.__class__.__name__,
                    "priority": provider.priority,
                    "circuit": provider.circuit_breaker.state.value,
                    "rate_limit": provider.rate_limiter.get_stats(),
                }
                for provider in self._providers
            ],
            "cache": self.cache.get_stats(),
        }
