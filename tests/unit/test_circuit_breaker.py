"""
Unit Tests - Circuit Breaker
Tests for the per-provider circuit state machine.
"""
import asyncio
import pytest

from quotehub.data_providers.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitState,
)


@pytest.fixture
def breaker(clock) -> CircuitBreaker:
    return CircuitBreaker(
        "primary",
        CircuitBreakerConfig(failure_threshold=5, open_timeout_seconds=60.0),
        clock=clock,
    )


async def fail_times(breaker: CircuitBreaker, n: int) -> None:
    for _ in range(n):
        await breaker.record_failure("boom")


class TestClosedState:
    """Tests for normal operation."""

    @pytest.mark.asyncio
    async def test_starts_closed(self, breaker):
        """A new breaker is closed and admits requests."""
        assert breaker.state == CircuitState.CLOSED
        assert await breaker.allow_request() is True

    @pytest.mark.asyncio
    async def test_stays_closed_below_threshold(self, breaker):
        """Four failures do not open a threshold-5 breaker."""
        await fail_times(breaker, 4)
        assert breaker.state == CircuitState.CLOSED
        assert breaker.consecutive_failures == 4

    @pytest.mark.asyncio
    async def test_success_resets_counter(self, breaker):
        """Any success while closed zeroes the counter."""
        await fail_times(breaker, 4)
        await breaker.record_success()
        assert breaker.consecutive_failures == 0
        await fail_times(breaker, 4)
        assert breaker.state == CircuitState.CLOSED


class TestCircuitLifecycle:
    """Tests for Closed -> Open -> HalfOpen -> Closed."""

    @pytest.mark.asyncio
    async def test_opens_at_threshold(self, breaker):
        """Five consecutive failures open the circuit."""
        await fail_times(breaker, 5)
        assert breaker.state == CircuitState.OPEN
        assert await breaker.allow_request() is False

    @pytest.mark.asyncio
    async def test_half_open_after_timeout(self, breaker, clock):
        """The open timeout moves the circuit to half-open."""
        await fail_times(breaker, 5)
        clock.advance(59)
        assert breaker.state == CircuitState.OPEN
        clock.advance(1)
        assert breaker.state == CircuitState.HALF_OPEN

    @pytest.mark.asyncio
    async def test_half_open_admits_single_trial(self, breaker, clock):
        """Exactly one trial call is admitted while half-open."""
        await fail_times(breaker, 5)
        clock.advance(60)
        assert await breaker.allow_request() is True
        assert await breaker.allow_request() is False
        assert await breaker.allow_request() is False

    @pytest.mark.asyncio
    async def test_concurrent_trial_admission(self, breaker, clock):
        """Concurrent callers in half-open get one admission between them."""
        await fail_times(breaker, 5)
        clock.advance(60)
        results = await asyncio.gather(*(breaker.allow_request() for _ in range(5)))
        assert sum(results) == 1

    @pytest.mark.asyncio
    async def test_successful_trial_closes(self, breaker, clock):
        """A successful trial call closes the circuit and zeroes the counter."""
        await fail_times(breaker, 5)
        clock.advance(60)
        await breaker.allow_request()
        await breaker.record_success()
        assert breaker.state == CircuitState.CLOSED
        assert breaker.consecutive_failures == 0
        assert await breaker.allow_request() is True

    @pytest.mark.asyncio
    async def test_failed_trial_reopens_and_restarts_timeout(self, breaker, clock):
        """A failed trial call reopens the circuit for another full timeout."""
        await fail_times(breaker, 5)
        clock.advance(60)
        await breaker.allow_request()
        await breaker.record_failure("still down")
        assert breaker.state == CircuitState.OPEN

        clock.advance(59)
        assert breaker.state == CircuitState.OPEN
        clock.advance(1)
        assert breaker.state == CircuitState.HALF_OPEN

    @pytest.mark.asyncio
    async def test_concurrent_failures_open_once(self, breaker):
        """Concurrent failures are serialized by the lock."""
        await asyncio.gather(*(breaker.record_failure("boom") for _ in range(10)))
        assert breaker.state == CircuitState.OPEN
        assert breaker.consecutive_failures == 10


class TestOperatorControls:
    """Tests for trip, reset and trial release."""

    @pytest.mark.asyncio
    async def test_trip_opens_immediately(self, breaker):
        """Trip opens regardless of the counter."""
        await breaker.trip("auth failed")
        assert breaker.state == CircuitState.OPEN
        assert breaker.snapshot().last_error == "auth failed"

    @pytest.mark.asyncio
    async def test_reset_forces_closed(self, breaker):
        """Reset closes an open circuit."""
        await fail_times(breaker, 5)
        await breaker.reset()
        assert breaker.state == CircuitState.CLOSED
        assert breaker.consecutive_failures == 0
        assert await breaker.allow_request() is True

    @pytest.mark.asyncio
    async def test_release_trial_frees_slot(self, breaker, clock):
        """An abandoned trial call can be released without changing state."""
        await fail_times(breaker, 5)
        clock.advance(60)
        assert await breaker.allow_request() is True
        await breaker.release_trial()
        assert breaker.state == CircuitState.HALF_OPEN
        assert await breaker.allow_request() is True


class TestSnapshot:
    """Tests for health snapshots."""

    @pytest.mark.asyncio
    async def test_snapshot_closed(self, breaker):
        """Closed snapshot has no failure data."""
        snapshot = breaker.snapshot()
        assert snapshot.provider_name == "primary"
        assert snapshot.circuit_state == CircuitState.CLOSED
        assert snapshot.consecutive_failures == 0
        assert snapshot.last_failure_time is None

    @pytest.mark.asyncio
    async def test_snapshot_open_to_dict(self, breaker):
        """Open snapshot serializes timestamps and state."""
        await fail_times(breaker, 5)
        data = breaker.snapshot().to_dict()
        assert data["circuit_state"] == "open"
        assert data["consecutive_failures"] == 5
        assert data["last_error"] == "boom"
        assert isinstance(data["opened_at"], str)
        assert isinstance(data["next_retry_time"], str)
