"""Rate limiting adapters - Implementations of RateLimiterPort.

Available implementations:
- ServiceRateLimiter: Token bucket per upstream service
- NoOpRateLimiter: Never waits (testing)
"""

from .token_bucket import NoOpRateLimiter, ServiceRateLimiter, TokenBucket

__all__ = ["TokenBucket", "ServiceRateLimiter", "NoOpRateLimiter"]
