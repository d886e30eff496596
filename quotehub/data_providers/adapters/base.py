"""
Base Provider Adapter Interface

Defines the abstract interface that all quote provider adapters must implement.
Provides the shared request pipeline: symbol normalization, rate-limit admission,
retry with exponential backoff, and translation of upstream failures into the
provider error taxonomy.
"""
import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Optional, Any, Callable, Awaitable
import aiohttp
from loguru import logger

from quotehub.data_providers.circuit_breaker import CircuitBreaker, CircuitBreakerConfig
from quotehub.data_providers.rate_limiter import RateLimiter, RateLimitConfig
from quotehub.data_providers.symbols import SymbolNormalizer, InvalidSymbolFormat


HEALTH_CHECK_SYMBOL = "AAPL"


@dataclass
class ProviderConfig:
    """Configuration for a quote provider."""
    name: str
    api_key: Optional[str] = None
    base_url: str = ""

    # Rate limiting
    requests_per_minute: int = 60
    rate_limit_window_seconds: float = 60.0

    # Timeouts and retries
    timeout_seconds: float = 30.0
    retry_attempts: int = 3
    retry_delay: float = 1.0
    retry_max_delay: float = 8.0

    # Circuit breaker
    failure_threshold: int = 5
    circuit_timeout_seconds: float = 60.0

    # Symbol formatting
    market_suffix: str = ""

    # Priority (lower = tried first)
    priority: int = 100


@dataclass(frozen=True)
class Quote:
    """Normalized quote data structure."""
    symbol: str
    price: Decimal
    display_name: str = ""
    open: Decimal = Decimal("0")
    high: Decimal = Decimal("0")
    low: Decimal = Decimal("0")
    previous_close: Decimal = Decimal("0")
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    source_provider_name: str = ""
    is_stale: bool = False

    def with_staleness(self, is_stale: bool) -> "Quote":
        """Return a copy carrying the given staleness flag."""
        if is_stale == self.is_stale:
            return self
        return replace(self, is_stale=is_stale)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "symbol": self.symbol,
            "display_name": self.display_name,
            "price": float(self.price),
            "open": float(self.open),
            "high": float(self.high),
            "low": float(self.low),
            "previous_close": float(self.previous_close),
            "timestamp": self.timestamp.isoformat(),
            "source_provider_name": self.source_provider_name,
            "is_stale": self.is_stale,
        }


# ==================== Error Taxonomy ====================

class ErrorKind(str, Enum):
    """Kinds of provider failure."""
    NETWORK = "network"
    TIMEOUT = "timeout"
    AUTHENTICATION = "authentication"
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    INVALID_SYMBOL = "invalid_symbol"
    DATA_PARSING = "data_parsing"
    SERVICE_UNAVAILABLE = "service_unavailable"
    CIRCUIT_OPEN = "circuit_open"


class ProviderError(Exception):
    """Base exception for provider errors."""
    kind: ErrorKind = ErrorKind.SERVICE_UNAVAILABLE
    retryable: bool = False

    def __init__(self, provider: str, message: str):
        self.provider = provider
        self.message = message
        super().__init__(f"[{provider}] {message}")


class NetworkError(ProviderError):
    """Connection to the upstream failed."""
    kind = ErrorKind.NETWORK
    retryable = True


class ProviderTimeoutError(ProviderError):
    """Upstream did not answer within the per-call timeout."""
    kind = ErrorKind.TIMEOUT
    retryable = True

    def __init__(self, provider: str, timeout_seconds: Optional[float] = None, message: str = ""):
        self.timeout_seconds = timeout_seconds
        if not message:
            message = f"Request timed out after {timeout_seconds:g}s" if timeout_seconds else "Request timed out"
        super().__init__(provider, message)


class ServiceUnavailableError(ProviderError):
    """Upstream answered with a server-side failure."""
    kind = ErrorKind.SERVICE_UNAVAILABLE
    retryable = True


class AuthenticationError(ProviderError):
    """Authentication failed error."""
    kind = ErrorKind.AUTHENTICATION

    def __init__(self, provider: str, message: str = "Authentication failed"):
        super().__init__(provider, message)


class RateLimitExceededError(ProviderError):
    """Rate limit exceeded, either locally or reported by the upstream."""
    kind = ErrorKind.RATE_LIMIT_EXCEEDED

    def __init__(self, provider: str, retry_after: Optional[float] = None, upstream: bool = False):
        self.retry_after = retry_after
        self.upstream = upstream
        origin = "upstream" if upstream else "local limiter"
        super().__init__(provider, f"Rate limit exceeded ({origin}). Retry after: {retry_after}s")


class InvalidSymbolError(ProviderError):
    """Symbol rejected before or by the upstream."""
    kind = ErrorKind.INVALID_SYMBOL

    def __init__(self, provider: str, symbols: list[str], message: str = ""):
        self.symbols = symbols
        super().__init__(provider, message or f"Invalid symbol(s): {', '.join(symbols)}")


class DataParsingError(ProviderError):
    """Upstream response could not be interpreted."""
    kind = ErrorKind.DATA_PARSING

    def __init__(self, provider: str, message: str, raw_data: Optional[str] = None):
        self.raw_data = raw_data
        super().__init__(provider, message)


@dataclass
class FetchResult:
    """Outcome of one fetch_quotes call: quotes on success, an error otherwise."""
    provider: str
    quotes: list[Quote] = field(default_factory=list)
    unresolved: list[str] = field(default_factory=list)
    error: Optional[ProviderError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, provider: str, error: ProviderError) -> "FetchResult":
        return cls(provider=provider, error=error)


# ==================== Parsing Helpers ====================

def parse_decimal(value: Any) -> Optional[Decimal]:
    """Parse a numeric field, returning None when missing or non-numeric."""
    if value is None or value == "":
        return None
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not result.is_finite():
        return None
    return result


def parse_timestamp(value: Any) -> datetime:
    """Parse epoch seconds or a provider datetime string, defaulting to now (UTC)."""
    if isinstance(value, (int, float)) and value > 0:
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return datetime.now(timezone.utc)
    if isinstance(value, str) and value:
        for fmt in ("%Y-%m-%d %H:%M:%S", "%Y-%m-%d", "%m/%d/%Y %H:%M:%S", "%m/%d/%Y"):
            try:
                return datetime.strptime(value, fmt).replace(tzinfo=timezone.utc)
            except ValueError:
                continue
    return datetime.now(timezone.utc)


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Read a Retry-After header given in seconds."""
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


def error_for_status(
    provider: str,
    status: int,
    message: str = "",
    retry_after: Optional[float] = None,
) -> Optional[ProviderError]:
    """
    Map an upstream HTTP status (or an error code embedded in a body) to a
    provider error.

    Returns None for success codes and for 404, which means the requested
    symbols are unresolved rather than that the call failed.
    """
    detail = message or f"HTTP {status}"
    if status < 400 or status == 404:
        return None
    if status in (401, 403):
        return AuthenticationError(provider, f"Authentication failed: {detail}")
    if status == 429:
        return RateLimitExceededError(provider, retry_after=retry_after, upstream=True)
    if status == 400:
        return InvalidSymbolError(provider, [], f"Request rejected: {detail}")
    if status in (408, 504):
        return ProviderTimeoutError(provider, message=f"Upstream timed out: {detail}")
    if status >= 500:
        return ServiceUnavailableError(provider, f"Upstream error: {detail}")
    return ServiceUnavailableError(provider, f"Unexpected status: {detail}")


class BaseAdapter(ABC):
    """
    Abstract base class for all quote provider adapters.

    Subclasses implement the upstream specifics:
    - _request_quotes(): one HTTP round trip for a batch of provider symbols
    - _parse_quote(): one raw record to a Quote
    - _check_upstream(): a cheap connectivity check

    The base class owns the per-provider rate limiter and circuit breaker and
    runs the shared pipeline in fetch_quotes(). Provider errors are returned
    inside a FetchResult rather than raised.
    """

    def __init__(
        self,
        config: ProviderConfig,
        rate_limiter: Optional[RateLimiter] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
        normalizer: Optional[SymbolNormalizer] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.config = config
        self.name = config.name
        self.rate_limiter = rate_limiter or RateLimiter(
            config.name,
            RateLimitConfig(
                max_requests=config.requests_per_minute,
                window_seconds=config.rate_limit_window_seconds,
            ),
        )
        self.circuit_breaker = circuit_breaker or CircuitBreaker(
            config.name,
            CircuitBreakerConfig(
                failure_threshold=config.failure_threshold,
                open_timeout_seconds=config.circuit_timeout_seconds,
            ),
        )
        self.normalizer = normalizer or SymbolNormalizer(market_suffix=config.market_suffix)
        self._sleep = sleep
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def priority(self) -> int:
        return self.config.priority

    async def initialize(self) -> None:
        """Initialize HTTP session."""
        if self._session is None:
            timeout = aiohttp.ClientTimeout(total=self.config.timeout_seconds)
            self._session = aiohttp.ClientSession(timeout=timeout)
            logger.info(f"{self.name} adapter initialized ({self.__class__.__name__})")

    async def close(self) -> None:
        """Close HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None
        logger.info(f"{self.name} adapter closed")

    @abstractmethod
    async def _request_quotes(self, provider_symbols: list[str]) -> list[dict[str, Any]]:
        """
        Issue one upstream request for a batch of provider-formatted symbols.

        Returns:
            One raw record per symbol the upstream resolved

        Raises:
            ProviderError: On any upstream failure
        """
        pass

    @abstractmethod
    def _parse_quote(self, raw: dict[str, Any]) -> Quote:
        """Map one raw upstream record to a Quote (symbol still provider-formatted)."""
        pass

    @abstractmethod
    async def _check_upstream(self) -> bool:
        """Cheap connectivity check against the upstream."""
        pass

    # ==================== Public Interface ====================

    async def fetch_quotes(self, symbols: list[str]) -> FetchResult:
        """
        Fetch quotes for a batch of canonical symbols.

        Args:
            symbols: Non-empty list of canonical symbols

        Returns:
            FetchResult with one quote per resolved symbol, or the error that
            failed the whole batch
        """
        try:
            symbol_map = self._to_provider_symbols(symbols)
            records = await self._request_with_retry(list(symbol_map))
            quotes = self._build_quotes(records, symbol_map)
        except ProviderError as e:
            return FetchResult.failure(self.name, e)

        requested = [canonical for targets in symbol_map.values() for canonical in targets]
        quotes = [q for q in quotes if q.symbol in requested]
        resolved = {q.symbol for q in quotes}
        unresolved = [s for s in requested if s not in resolved]
        if unresolved:
            logger.info(f"{self.name} could not resolve {len(unresolved)} symbol(s): {', '.join(unresolved)}")

        return FetchResult(provider=self.name, quotes=quotes, unresolved=unresolved)

    async def is_healthy(self) -> bool:
        """Probe the upstream without affecting circuit breaker state."""
        if not await self.rate_limiter.try_acquire():
            logger.debug(f"Skipping health check for {self.name}: rate limit window full")
            return False
        try:
            return await self._check_upstream()
        except ProviderError as e:
            logger.warning(f"{self.name} health check failed: {e}")
            return False

    async def record_outcome(self, result: FetchResult) -> None:
        """Feed a fetch outcome back into this provider's circuit breaker."""
        if result.ok:
            await self.circuit_breaker.record_success()
        elif result.error.kind == ErrorKind.AUTHENTICATION:
            await self.circuit_breaker.trip(str(result.error))
        else:
            await self.circuit_breaker.record_failure(str(result.error))

    # ==================== Pipeline ====================

    def _to_provider_symbols(self, symbols: list[str]) -> dict[str, list[str]]:
        """Map provider-format symbols to every canonical symbol they came from."""
        symbol_map: dict[str, list[str]] = {}
        invalid = []
        for symbol in symbols:
            try:
                canonical = self.normalizer.normalize(symbol)
                targets = symbol_map.setdefault(self.normalizer.to_provider(canonical), [])
                if canonical not in targets:
                    targets.append(canonical)
            except InvalidSymbolFormat:
                invalid.append(symbol)
        if invalid:
            raise InvalidSymbolError(self.name, invalid)
        return symbol_map

    async def _request_with_retry(self, provider_symbols: list[str]) -> list[dict[str, Any]]:
        """Run _request_quotes with admission control and bounded exponential backoff."""
        attempts = max(1, self.config.retry_attempts)

        for attempt in range(1, attempts + 1):
            if not await self.rate_limiter.try_acquire():
                raise RateLimitExceededError(
                    self.name,
                    retry_after=round(self.rate_limiter.time_until_available(), 2),
                )

            try:
                return await self._request_quotes(provider_symbols)
            except ProviderError as e:
                if not e.retryable or attempt == attempts:
                    raise
                delay = min(
                    self.config.retry_delay * (2 ** (attempt - 1)),
                    self.config.retry_max_delay,
                )
                logger.info(
                    f"{self.name} attempt {attempt}/{attempts} failed ({e.kind.value}), "
                    f"retrying in {delay:.1f}s..."
                )
                await self._sleep(delay)

        # Unreachable: the loop either returns or raises
        raise ServiceUnavailableError(self.name, "Retry loop exhausted")

    def _build_quotes(self, records: list[dict[str, Any]], symbol_map: dict[str, list[str]]) -> list[Quote]:
        """Parse raw records and restore canonical symbols, one quote per requested alias."""
        quotes = []
        for raw in records:
            quote = self._parse_quote(raw)
            provider_symbol = quote.symbol.strip().upper()
            try:
                targets = symbol_map.get(provider_symbol) or [self.normalizer.to_canonical(provider_symbol)]
            except InvalidSymbolFormat:
                logger.warning(f"Data quality: {self.name} returned unusable symbol {quote.symbol!r}, skipping")
                continue
            quotes.extend(replace(quote, symbol=canonical, source_provider_name=self.name) for canonical in targets)
        return quotes

    async def _get_json(
        self,
        url: str,
        params: Optional[dict[str, str]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> Any:
        """
        GET a JSON document from the upstream.

        Returns:
            Decoded JSON body, or None when the upstream answered 404

        Raises:
            ProviderError: Mapped from the HTTP status or transport failure
        """
        if self._session is None:
            await self.initialize()

        try:
            async with self._session.get(url, params=params, headers=headers) as response:
                if response.status == 404:
                    return None
                if response.status >= 400:
                    body = await response.text()
                    error = error_for_status(
                        self.name,
                        response.status,
                        body[:200],
                        retry_after=parse_retry_after(response.headers.get("Retry-After")),
                    )
                    if error is not None:
                        raise error
                try:
                    return await response.json(content_type=None)
                except ValueError as e:
                    raise DataParsingError(self.name, f"Response is not valid JSON: {e}")
        except asyncio.TimeoutError:
            raise ProviderTimeoutError(self.name, self.config.timeout_seconds)
        except aiohttp.ClientError as e:
            raise NetworkError(self.name, f"Connection error: {e}")

    def _price_field(self, raw: dict[str, Any], key: str, symbol: str) -> Decimal:
        """Read a price field, defaulting to zero with a data-quality warning."""
        value = parse_decimal(raw.get(key))
        if value is None:
            logger.warning(f"Data quality: {self.name} returned no usable '{key}' for {symbol}, defaulting to 0")
            return Decimal("0")
        return value

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name={self.name}, circuit={self.circuit_breaker.state.value})>"
