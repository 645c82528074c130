"""Thread-safe in-memory TTL cache.

Key properties:
- Per-entry expiry; ``ttl <= 0`` means the entry never expires
- Lazy expiry on read, so correctness never depends on the sweeper
- Capacity bound with oldest-expiring-first eviction
- Optional background sweeper thread
- Statistics tracking
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Generic, Optional, Tuple, TypeVar

T = TypeVar("T")

# Sort key for entries without expiry: evicted last
_NEVER = float("inf")


@dataclass
class TTLCache(Generic[T]):
    """Thread-safe in-memory cache with per-entry TTL and a size bound.

    This cache implements the CachePort protocol and is injected into
    the services that need it.

    Attributes:
        name: Cache name for logging
        default_ttl_seconds: TTL used when ``set`` gets no ttl (None = no expiry)
        max_items: Maximum number of entries (None or <= 0 = unlimited)
        cleanup_interval_seconds: Sweeper period (None or <= 0 = no sweeper)
        clock: Time source, ``time.monotonic`` unless a test injects one

    Example:
        cache = TTLCache[list](name="geocode", default_ttl_seconds=3600, max_items=512)
        cache.set("paris", results)
        value, found = cache.get("paris")
    """

    name: str = "cache"
    default_ttl_seconds: Optional[float] = None
    max_items: Optional[int] = None
    cleanup_interval_seconds: Optional[float] = None
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)

    # key -> (value, expires_at); expires_at is None for entries that never expire
    _store: Dict[str, Tuple[Any, Optional[float]]] = field(
        default_factory=dict, repr=False
    )
    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False)
    _logger: logging.Logger = field(init=False, repr=False)
    _stop_event: threading.Event = field(default_factory=threading.Event, repr=False)
    _sweeper: Optional[threading.Thread] = field(default=None, repr=False)

    # Statistics
    _hits: int = field(default=0, repr=False)
    _misses: int = field(default=0, repr=False)
    _evictions: int = field(default=0, repr=False)

    def __post_init__(self) -> None:
        self._logger = logging.getLogger(f"cache.{self.name}")
        if self.cleanup_interval_seconds and self.cleanup_interval_seconds > 0:
            self.start_sweeper()

    def _is_expired(self, expires_at: Optional[float], now: float) -> bool:
        return expires_at is not None and now >= expires_at

    def get(self, key: str) -> tuple[Optional[T], bool]:
        """Get a value from the cache.

        An expired entry found here is deleted as a side effect.

        Args:
            key: The cache key.

        Returns:
            ``(value, True)`` on a hit, ``(None, False)`` otherwise.
        """
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                self._misses += 1
                return None, False

            value, expires_at = entry
            if self._is_expired(expires_at, self.clock()):
                del self._store[key]
                self._logger.debug("Cache entry expired", extra={"key": key})
                self._misses += 1
                return None, False

            self._hits += 1
            return value, True

    def set(self, key: str, value: T, ttl: Optional[float] = None) -> None:
        """Store a value, overwriting any existing entry.

        Args:
            key: The cache key.
            value: The value to cache.
            ttl: Lifetime in seconds; ``<= 0`` never expires, None uses
                ``default_ttl_seconds``.
        """
        effective_ttl = ttl if ttl is not None else self.default_ttl_seconds
        with self._lock:
            if effective_ttl is not None and effective_ttl > 0:
                expires_at: Optional[float] = self.clock() + effective_ttl
            else:
                expires_at = None

            self._store[key] = (value, expires_at)
            self._logger.debug(
                "Cache entry set",
                extra={"key": key, "ttl": effective_ttl},
            )
            self._evict_overflow()

    def _evict_overflow(self) -> int:
        """Drop oldest-expiring entries until the size bound holds.

        Caller must hold the lock.
        """
        if not self.max_items or self.max_items <= 0:
            return 0
        overflow = len(self._store) - self.max_items
        if overflow <= 0:
            return 0

        by_expiry = sorted(
            self._store.items(),
            key=lambda item: _NEVER if item[1][1] is None else item[1][1],
        )
        for key, _ in by_expiry[:overflow]:
            del self._store[key]
            self._logger.debug(
                "Cache evicted entry",
                extra={"key": key, "reason": "max_items"},
            )
        self._evictions += overflow
        return overflow

    def delete(self, key: str) -> bool:
        """Remove a specific cache entry.

        Returns:
            True if the key existed and was removed.
        """
        with self._lock:
            if key in self._store:
                del self._store[key]
                self._logger.debug("Cache entry deleted", extra={"key": key})
                return True
            return False

    def clear(self) -> int:
        """Clear all entries from the cache.

        Returns:
            Number of entries that were cleared.
        """
        with self._lock:
            count = len(self._store)
            self._store.clear()
            self._hits = 0
            self._misses = 0
            self._evictions = 0
            self._logger.info("Cache cleared", extra={"entries_cleared": count})
            return count

    def size(self) -> int:
        """Return the number of entries, expired ones not yet swept included."""
        with self._lock:
            return len(self._store)

    def configure(
        self,
        max_items: Optional[int] = None,
        default_ttl_seconds: Optional[float] = None,
    ) -> None:
        """Change capacity or default TTL at runtime.

        Shrinking the capacity evicts immediately.
        """
        with self._lock:
            if max_items is not None:
                self.max_items = max_items
            if default_ttl_seconds is not None:
                self.default_ttl_seconds = default_ttl_seconds
            self._evict_overflow()

    def delete_expired(self) -> int:
        """Remove every expired entry.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            now = self.clock()
            expired = [
                key
                for key, (_, expires_at) in self._store.items()
                if self._is_expired(expires_at, now)
            ]
            for key in expired:
                del self._store[key]
        if expired:
            self._logger.debug(
                "Cache swept expired entries", extra={"removed": len(expired)}
            )
        return len(expired)

    def start_sweeper(self) -> None:
        """Start the background thread that periodically deletes expired entries."""
        if self._sweeper is not None and self._sweeper.is_alive():
            return
        interval = self.cleanup_interval_seconds or 0
        if interval <= 0:
            raise ValueError("cleanup_interval_seconds must be > 0 to sweep")

        self._stop_event.clear()

        def _run() -> None:
            while not self._stop_event.wait(interval):
                self.delete_expired()

        self._sweeper = threading.Thread(
            target=_run, name=f"cache-sweeper-{self.name}", daemon=True
        )
        self._sweeper.start()

    def stop(self) -> None:
        """Stop the background sweeper, if running."""
        self._stop_event.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout=1.0)
            self._sweeper = None

    def stats(self) -> Dict[str, Any]:
        """Return cache statistics.

        Returns:
            Dictionary with hit/miss/eviction counts and size.
        """
        with self._lock:
            total = self._hits + self._misses
            hit_rate = (self._hits / total * 100) if total > 0 else 0.0
            return {
                "size": len(self._store),
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
                "hit_rate_percent": round(hit_rate, 1),
            }

    def keys(self) -> list[str]:
        """Return all keys in the cache."""
        with self._lock:
            return list(self._store.keys())
