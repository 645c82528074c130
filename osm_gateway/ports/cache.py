"""Cache port - Injectable caching abstraction.

This protocol defines the contract for the expiring key/value store the
services use, replacing process-wide cache globals with an explicitly
constructed, testable instance.
"""

from __future__ import annotations

from typing import Optional, Protocol, TypeVar

T = TypeVar("T")


class CachePort(Protocol[T]):
    """Port for caching.

    Implementations:
    - adapters/cache/memory_cache.py (TTLCache) - Production
    - adapters/cache/null_cache.py (NullCache) - Testing
    """

    def get(self, key: str) -> tuple[Optional[T], bool]:
        """Get a value from the cache.

        Args:
            key: The cache key.

        Returns:
            ``(value, True)`` on a hit, ``(None, False)`` if the key is
            absent or its entry has expired.
        """
        ...

    def set(self, key: str, value: T, ttl: Optional[float] = None) -> None:
        """Set a value in the cache.

        Args:
            key: The cache key.
            value: The value to cache.
            ttl: Lifetime in seconds; ``<= 0`` never expires, ``None``
                uses the cache default.
        """
        ...

    def delete(self, key: str) -> bool:
        """Remove a specific cache entry.

        Returns:
            True if the key existed and was removed, False otherwise.
        """
        ...

    def clear(self) -> int:
        """Clear all entries from the cache.

        Returns:
            Number of entries that were cleared.
        """
        ...

    def size(self) -> int:
        """Return the number of entries in the cache."""
        ...
