"""Key-value cache with per-entry time-to-live for provider responses.

The cache is injected into provider constructors rather than held as a
module-level singleton. It holds no locks: two concurrent misses simply
recompute and overwrite the same TTL-bounded value.
"""

import logging
import time
from typing import Any, Callable, Dict, Protocol, Tuple, TypeVar

logger = logging.getLogger("credit_screener.cache")

T = TypeVar('T')


class Cache(Protocol):
    """Minimal cache interface the providers depend on."""

    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any, ttl_seconds: float) -> None: ...


class TTLCache:
    """In-process cache with per-entry expiry.

    Uses a bounded store; when full, the entry closest to expiry is evicted.
    """

    def __init__(self, maxsize: int = 1000, clock: Callable[[], float] = time.monotonic):
        """Initialize TTL cache.

        Args:
            maxsize: Maximum number of cached entries
            clock: Monotonic time source in seconds (injectable for tests)
        """
        self._store: Dict[str, Tuple[float, Any]] = {}
        self.maxsize = maxsize
        self._clock = clock
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> Any | None:
        """Return the cached value, or None when missing or expired."""
        entry = self._store.get(key)
        if entry is None:
            self._misses += 1
            return None

        expires_at, value = entry
        if expires_at <= self._clock():
            del self._store[key]
            self._misses += 1
            logger.debug("Cache entry expired: %s", key)
            return None

        self._hits += 1
        return value

    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        """Store value under key for ttl_seconds."""
        if key not in self._store and len(self._store) >= self.maxsize:
            evicted = min(self._store, key=lambda k: self._store[k][0])
            del self._store[evicted]
            logger.debug("Cache full, evicted %s", evicted)

        self._store[key] = (self._clock() + ttl_seconds, value)

    def get_or_compute(self, key: str, ttl_seconds: float, compute_func: Callable[[], T]) -> T:
        """Get cached value or compute and store it.

        Example:
            >>> cache = TTLCache()
            >>> chain = cache.get_or_compute(
            >>>     "options:SPY", 600, lambda: client.fetch_chain("SPY")
            >>> )
        """
        cached = self.get(key)
        if cached is not None:
            logger.debug("Cache hit for %s", key)
            return cached

        logger.debug("Cache miss for %s", key)
        value = compute_func()
        self.set(key, value, ttl_seconds)
        return value

    def clear(self):
        """Clear all cached entries."""
        self._store.clear()
        logger.info("Provider cache cleared")

    def stats(self) -> Dict[str, int | float]:
        """Get cache statistics."""
        total_requests = self._hits + self._misses
        hit_rate = (self._hits / total_requests * 100) if total_requests > 0 else 0.0

        return {
            'size': len(self._store),
            'maxsize': self.maxsize,
            'hits': self._hits,
            'misses': self._misses,
            'hit_rate': hit_rate,
        }

    def __len__(self) -> int:
        return len(self._store)

    def __repr__(self) -> str:
        stats = self.stats()
        return (
            f"TTLCache(size={stats['size']}/{stats['maxsize']}, "
            f"hits={stats['hits']}, misses={stats['misses']}, "
            f"hit_rate={stats['hit_rate']:.1f}%)"
        )


def cached_call(cache: Cache | None, key: str, ttl_seconds: float,
                compute_func: Callable[[], T]) -> T:
    """Run compute_func through cache when one is provided."""
    if cache is None:
        return compute_func()
    cached = cache.get(key)
    if cached is not None:
        return cached
    value = compute_func()
    cache.set(key, value, ttl_seconds)
    return value
