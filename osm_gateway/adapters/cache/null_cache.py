"""Null cache implementation for testing.

This cache always misses, so tests exercising the network path never
depend on state cached by a previous test.

Example:
    service = AddressResolutionService(
        geocoder=fake_geocoder,
        executor=executor,
        cache=NullCache(),
        reverse_cache=NullCache(),
    )
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass
class NullCache(Generic[T]):
    """No-op cache - always misses.

    Implements the CachePort protocol but never stores anything.
    """

    name: str = "null"

    def get(self, key: str) -> tuple[Optional[T], bool]:
        """Always a miss."""
        return None, False

    def set(self, key: str, value: T, ttl: Optional[float] = None) -> None:
        """Does nothing."""
        pass

    def delete(self, key: str) -> bool:
        """Does nothing, returns False."""
        return False

    def clear(self) -> int:
        """Does nothing, returns 0."""
        return 0

    def size(self) -> int:
        """Always returns 0."""
        return 0

    def stop(self) -> None:
        """Nothing to stop."""
        pass

    def stats(self) -> Dict[str, int]:
        """Return empty stats."""
        return {
            "size": 0,
            "hits": 0,
            "misses": 0,
            "evictions": 0,
            "hit_rate_percent": 0,
        }
