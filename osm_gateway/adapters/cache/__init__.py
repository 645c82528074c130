"""Cache adapters - Implementations of the CachePort.

Available implementations:
- TTLCache: Thread-safe in-memory cache with TTL and size bound
- NullCache: No-op cache for testing (always misses)
"""

from .memory_cache import TTLCache
from .null_cache import NullCache

__all__ = ["TTLCache", "NullCache"]
