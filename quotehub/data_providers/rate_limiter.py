"""
Rate Limiter

Sliding window admission control bound to a single provider.
Admission never blocks: a full window is reported to the caller immediately.
"""
import asyncio
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable
from loguru import logger


@dataclass
class RateLimitConfig:
    """Configuration for rate limiting."""
    max_requests: int = 60
    window_seconds: float = 60.0


class RateLimiter:
    """
    Sliding window rate limiter for one provider.

    Keeps a deque of monotonic timestamps for admitted requests. Entries older
    than the window are pruned on every check, so at most max_requests
    admissions fall inside any window.
    """

    def __init__(
        self,
        provider: str,
        config: RateLimitConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.provider = provider
        self.config = config or RateLimitConfig()
        self._clock = clock
        self._window: deque[float] = deque()
        self._lock = asyncio.Lock()
        self._rejected = 0

    def _prune(self, now: float) -> None:
        cutoff = now - self.config.window_seconds
        while self._window and self._window[0] <= cutoff:
            self._window.popleft()

    async def try_acquire(self) -> bool:
        """
        Claim a slot in the current window.

        Returns:
            True if the request is admitted, False if the window is full
        """
        async with self._lock:
            now = self._clock()
            self._prune(now)
            if len(self._window) >= self.config.max_requests:
                self._rejected += 1
                logger.debug(
                    f"Rate limit: {self.provider} window full "
                    f"({len(self._window)}/{self.config.max_requests})"
                )
                return False
            self._window.append(now)
            return True

    def time_until_available(self) -> float:
        """Seconds until the oldest request leaves the window."""
        now = self._clock()
        self._prune(now)
        if len(self._window) < self.config.max_requests:
            return 0.0
        return max(0.0, self._window[0] + self.config.window_seconds - now)

    def remaining(self) -> int:
        """Get remaining requests in current window."""
        self._prune(self._clock())
        return max(0, self.config.max_requests - len(self._window))

    def get_stats(self) -> dict:
        """Get rate limit stats for the provider."""
        return {
            "provider": self.provider,
            "max_requests": self.config.max_requests,
            "window_seconds": self.config.window_seconds,
            "in_window": self.config.max_requests - self.remaining(),
            "remaining": self.remaining(),
            "rejected": self._rejected,
            "wait_time": round(self.time_until_available(), 2),
        }
