"""
Circuit Breaker

Per-provider circuit breaker. Tracks consecutive failures and stops traffic
to a provider that keeps failing, then lets a single trial call through after a
cool-down to test recovery.
"""
import asyncio
import time
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Callable
from loguru import logger


class CircuitState(str, Enum):
    """Circuit breaker states."""
    CLOSED = "closed"      # Normal operation, requests allowed
    OPEN = "open"          # Failures exceeded threshold, requests blocked
    HALF_OPEN = "half_open"  # Testing if service recovered


@dataclass
class CircuitBreakerConfig:
    """Circuit breaker configuration for a provider."""
    failure_threshold: int = 5        # Consecutive failures before opening
    open_timeout_seconds: float = 60.0  # Time before trying half-open


@dataclass
class ProviderHealth:
    """Point-in-time health snapshot of one provider's circuit."""
    provider_name: str
    circuit_state: CircuitState
    consecutive_failures: int
    last_failure_time: Optional[datetime] = None
    opened_at: Optional[datetime] = None
    next_retry_time: Optional[datetime] = None
    last_error: Optional[str] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["circuit_state"] = self.circuit_state.value
        for key in ("last_failure_time", "opened_at", "next_retry_time"):
            if data[key] is not None:
                data[key] = data[key].isoformat()
        return data


class CircuitBreaker:
    """
    Circuit breaker for a single provider.

    Closed -> Open after failure_threshold consecutive failures.
    Open -> HalfOpen once open_timeout_seconds have passed (evaluated lazily).
    HalfOpen admits one trial call; its success closes the circuit, its failure
    reopens it and restarts the timeout.
    """

    def __init__(
        self,
        provider: str,
        config: Optional[CircuitBreakerConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.provider = provider
        self.config = config or CircuitBreakerConfig()
        self._clock = clock
        self._lock = asyncio.Lock()

        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._opened_at: Optional[float] = None
        self._trial_in_flight = False

        # Wall-clock timestamps for diagnostics only
        self._opened_at_wall: Optional[datetime] = None
        self._last_failure_time: Optional[datetime] = None
        self._last_error: Optional[str] = None

    @property
    def state(self) -> CircuitState:
        """Current state, promoting Open to HalfOpen once the timeout has elapsed."""
        if self._state == CircuitState.OPEN and self._opened_at is not None:
            if self._clock() - self._opened_at >= self.config.open_timeout_seconds:
                self._state = CircuitState.HALF_OPEN
                self._trial_in_flight = False
                logger.info(f"Circuit for {self.provider} transitioning to half-open")
        return self._state

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    async def allow_request(self) -> bool:
        """
        Check if a request can be made to the provider.

        In half-open state only the first caller is admitted, as the trial call.
        """
        async with self._lock:
            state = self.state
            if state == CircuitState.CLOSED:
                return True
            if state == CircuitState.HALF_OPEN and not self._trial_in_flight:
                self._trial_in_flight = True
                logger.info(f"Circuit for {self.provider} admitting half-open trial call")
                return True
            return False

    async def record_success(self) -> None:
        """Record a successful call."""
        async with self._lock:
            state = self.state
            self._consecutive_failures = 0
            if state == CircuitState.HALF_OPEN:
                self._close()

    async def record_failure(self, error: Optional[str] = None) -> None:
        """Record a failed call."""
        async with self._lock:
            state = self.state
            self._last_failure_time = datetime.now(timezone.utc)
            self._last_error = error
            if state == CircuitState.HALF_OPEN:
                # Any failure in half-open reopens the circuit
                self._open("half-open trial call failed")
                return
            self._consecutive_failures += 1
            if state == CircuitState.CLOSED and self._consecutive_failures >= self.config.failure_threshold:
                self._open(f"{self._consecutive_failures} consecutive failures")

    async def trip(self, error: Optional[str] = None) -> None:
        """Open the circuit immediately, regardless of the failure count."""
        async with self._lock:
            self._last_failure_time = datetime.now(timezone.utc)
            self._last_error = error
            self._consecutive_failures += 1
            self._open("tripped")

    async def release_trial(self) -> None:
        """Free an abandoned half-open trial slot without changing state."""
        async with self._lock:
            if self._trial_in_flight:
                self._trial_in_flight = False
                logger.debug(f"Circuit for {self.provider} released abandoned trial call")

    async def reset(self) -> None:
        """Force the circuit closed (operator recovery)."""
        async with self._lock:
            self._close()
            self._last_error = None
            logger.info(f"Circuit breaker reset for {self.provider}")

    def snapshot(self) -> ProviderHealth:
        """Get a health snapshot for diagnostics."""
        state = self.state
        next_retry = None
        if state == CircuitState.OPEN and self._opened_at is not None:
            remaining = self.config.open_timeout_seconds - (self._clock() - self._opened_at)
            next_retry = datetime.fromtimestamp(
                datetime.now(timezone.utc).timestamp() + max(0.0, remaining),
                tz=timezone.utc,
            )
        return ProviderHealth(
            provider_name=self.provider,
            circuit_state=state,
            consecutive_failures=self._consecutive_failures,
            last_failure_time=self._last_failure_time,
            opened_at=self._opened_at_wall,
            next_retry_time=next_retry,
            last_error=self._last_error,
        )

    def _open(self, reason: str) -> None:
        """Open the circuit breaker."""
        self._state = CircuitState.OPEN
        self._opened_at = self._clock()
        self._opened_at_wall = datetime.now(timezone.utc)
        self._trial_in_flight = False
        logger.error(f"Circuit breaker OPENED for {self.provider} ({reason})")

    def _close(self) -> None:
        """Close the circuit breaker (return to normal)."""
        was_closed = self._state == CircuitState.CLOSED
        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._opened_at = None
        self._opened_at_wall = None
        self._trial_in_flight = False
        if not was_closed:
            logger.info(f"Circuit breaker CLOSED for {self.provider} - recovered")
