"""
Cache Manager

In-process caching layer for quote batches, backed by cachetools.TTLCache.
Entries are keyed by the normalized symbol set, expire after a hard TTL, and
are flagged stale once they pass a softer age threshold.
"""
import asyncio
import hashlib
import time
from dataclasses import dataclass, replace
from typing import Optional, Any, Callable, Iterable
from cachetools import TTLCache
from loguru import logger

from quotehub.data_providers.adapters.base import Quote


@dataclass
class CacheConfig:
    """Cache configuration."""
    ttl_seconds: float = 300.0          # Hard expiry
    stale_after_seconds: float = 240.0  # Served with is_stale=True past this age

    # Least recently used entries are dropped beyond this size
    max_entries: int = 1024

    # Key prefix
    prefix: str = "quotes"


@dataclass(frozen=True)
class CacheEntry:
    """One cached fetch result for a symbol set."""
    key: str
    symbols: tuple[str, ...]
    quotes: tuple[Quote, ...]
    unresolved: tuple[str, ...] = ()
    provider: str = ""
    cached_at: float = 0.0

    def age(self, now: float) -> float:
        return now - self.cached_at


def cache_key(symbols: Iterable[str], prefix: str = "quotes") -> str:
    """Build the cache key for a symbol set: order and duplicates do not matter."""
    joined = ",".join(sorted(set(symbols)))
    digest = hashlib.sha256(joined.encode("utf-8")).hexdigest()
    return f"{prefix}:{digest}"


class QuoteCache:
    """
    Short-lived quote cache keyed by symbol set.

    Features:
    - Hard TTL and size bound enforced by TTLCache, sharing the injected clock
    - Soft staleness flag on quotes served past the stale threshold
    - Explicit clear / invalidate / purge
    - Statistics tracking
    - Optional background sweeper for expired entries
    """

    def __init__(
        self,
        config: Optional[CacheConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or CacheConfig()
        self._clock = clock
        self._entries: TTLCache = TTLCache(
            maxsize=self.config.max_entries,
            ttl=self.config.ttl_seconds,
            timer=clock,
        )
        self._sweeper: Optional[asyncio.Task] = None
        self._stats = {
            "hits": 0,
            "stale_hits": 0,
            "misses": 0,
            "sets": 0,
            "evictions": 0,
        }

    def key_for(self, symbols: Iterable[str]) -> str:
        return cache_key(symbols, self.config.prefix)

    def _expire(self) -> int:
        """Drop entries past their TTL, counting them as evictions."""
        expired = self._entries.expire()
        self._stats["evictions"] += len(expired)
        return len(expired)

    # ==================== Quote Caching ====================

    async def get(self, symbols: Iterable[str]) -> Optional[CacheEntry]:
        """
        Look up the entry for a normalized symbol set.

        Returns:
            The entry with staleness applied to its quotes, or None on miss
        """
        key = self.key_for(symbols)
        if self._expire():
            logger.debug("Evicted expired cache entries on read")

        entry = self._entries.get(key)
        if entry is None:
            self._stats["misses"] += 1
            return None

        is_stale = entry.age(self._clock()) >= self.config.stale_after_seconds
        self._stats["hits"] += 1
        if is_stale:
            self._stats["stale_hits"] += 1
        return replace(entry, quotes=tuple(q.with_staleness(is_stale) for q in entry.quotes))

    async def set(
        self,
        symbols: Iterable[str],
        quotes: Iterable[Quote],
        unresolved: Iterable[str] = (),
        provider: str = "",
    ) -> CacheEntry:
        """Cache a successful fetch result, replacing any previous entry (last writer wins)."""
        symbol_set = tuple(sorted(set(symbols)))
        key = self.key_for(symbol_set)
        entry = CacheEntry(
            key=key,
            symbols=symbol_set,
            quotes=tuple(q.with_staleness(False) for q in quotes),
            unresolved=tuple(unresolved),
            provider=provider,
            cached_at=self._clock(),
        )
        self._expire()
        self._entries[key] = entry
        self._stats["sets"] += 1
        return entry

    async def invalidate(self, symbols: Iterable[str]) -> int:
        """Drop every entry whose symbol set contains any of the given symbols."""
        targets = set(symbols)
        self._expire()
        keys = [k for k, e in list(self._entries.items()) if targets.intersection(e.symbols)]
        for key in keys:
            self._entries.pop(key, None)
        if keys:
            logger.info(f"Invalidated {len(keys)} cache entries for {', '.join(sorted(targets))}")
        return len(keys)

    async def clear(self) -> int:
        """Clear all cached quotes."""
        self._expire()
        count = len(self._entries)
        self._entries.clear()
        logger.info(f"Cleared {count} cache entries")
        return count

    async def purge_expired(self) -> int:
        """Remove all entries past their TTL."""
        purged = self._expire()
        if purged:
            logger.debug(f"Purged {purged} expired cache entries")
        return purged

    def __len__(self) -> int:
        self._expire()
        return len(self._entries)


    # ==================== Background Sweeper ====================

    def start_sweeper(self, interval_seconds: float) -> None:
        """Start periodic purging of expired entries."""
        if interval_seconds <= 0 or self._sweeper is not None:
            return
        self._sweeper = asyncio.create_task(self._sweep_loop(interval_seconds))
        logger.info(f"Cache sweeper started (every {interval_seconds:g}s)")

    async def stop_sweeper(self) -> None:
        """Stop the periodic sweeper if running."""
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None
        logger.info("Cache sweeper stopped")

    async def _sweep_loop(self, interval_seconds: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            await self.purge_expired()

    # ==================== Cache Stats ====================

    def get_stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        total = self._stats["hits"] + self._stats["misses"]
        hit_rate = self._stats["hits"] / total if total > 0 else 0

        return {
            **self._stats,
            "entries": len(self._entries),
            "total_requests": total,
            "hit_rate": round(hit_rate * 100, 2),
            "ttl_seconds": self.config.ttl_seconds,
            "stale_after_seconds": self.config.stale_after_seconds,
            "sweeper_running": self._sweeper is not None,
        }
