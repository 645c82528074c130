"""Token bucket rate limiting keyed by upstream service.

Tokens refill continuously at ``rate_per_second`` up to ``burst``; each
admitted request consumes one. Waits are bounded by an absolute
monotonic deadline and can be aborted through a ``threading.Event``.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Mapping, Optional

from ...domain.errors import RequestTimeoutError

logger = logging.getLogger(__name__)


@dataclass
class TokenBucket:
    """Continuously refilling token bucket.

    Invariant: ``0 <= tokens <= burst``. A fresh bucket starts full.

    Attributes:
        rate_per_second: Tokens added per second
        burst: Bucket capacity
        clock: Time source (monotonic seconds)
    """

    rate_per_second: float
    burst: int
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)

    tokens: float = field(init=False)
    last_refill: float = field(init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def __post_init__(self) -> None:
        if self.rate_per_second <= 0:
            raise ValueError("rate_per_second must be > 0")
        if self.burst < 1:
            raise ValueError("burst must be >= 1")
        self.tokens = float(self.burst)
        self.last_refill = self.clock()

    def _refill(self, now: float) -> None:
        elapsed = max(0.0, now - self.last_refill)
        self.last_refill = now
        self.tokens = min(float(self.burst), self.tokens + elapsed * self.rate_per_second)

    def try_acquire(self) -> bool:
        """Consume a token if one is available right now."""
        with self._lock:
            self._refill(self.clock())
            if self.tokens >= 1.0:
                self.tokens -= 1.0
                return True
            return False

    def time_until_token(self) -> float:
        """Seconds until the next token becomes available (0 if one is ready)."""
        with self._lock:
            self._refill(self.clock())
            missing = 1.0 - self.tokens
            return max(0.0, missing / self.rate_per_second)

    def acquire(
        self,
        deadline: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
        service: str = "",
    ) -> None:
        """Block until a token is consumed.

        Fails as soon as it is known that no token can arrive before the
        deadline, rather than sleeping until the deadline first.

        Raises:
            RequestTimeoutError: On deadline or cancellation.
        """
        waiter = cancel_event or threading.Event()
        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise RequestTimeoutError(
                    "Cancelled while waiting for rate limit",
                    service=service,
                    stage="rate_limit",
                )
            if self.try_acquire():
                return

            delay = self.time_until_token()
            if deadline is not None and self.clock() + delay > deadline:
                raise RequestTimeoutError(
                    "Deadline exceeded while waiting for rate limit",
                    service=service,
                    stage="rate_limit",
                )
            # Another waiter may take the token first; loop and re-check
            if waiter.wait(max(delay, 0.001)) and cancel_event is not None:
                raise RequestTimeoutError(
                    "Cancelled while waiting for rate limit",
                    service=service,
                    stage="rate_limit",
                )


@dataclass
class ServiceRateLimiter:
    """Registry of token buckets keyed by logical service name.

    Implements RateLimiterPort. Services without a bucket are not
    limited (fail-open): an unconfigured destination has no known policy.

    Example:
        limiter = ServiceRateLimiter.from_policies({"nominatim": (1.0, 1)})
        limiter.wait("nominatim", deadline=time.monotonic() + 5)
    """

    clock: Callable[[], float] = field(default=time.monotonic, repr=False)
    _buckets: Dict[str, TokenBucket] = field(default_factory=dict, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @classmethod
    def from_policies(
        cls,
        policies: Mapping[str, tuple[float, int]],
        clock: Callable[[], float] = time.monotonic,
    ) -> ServiceRateLimiter:
        """Build a limiter with one bucket per ``service -> (rate, burst)``."""
        limiter = cls(clock=clock)
        for service, (rate, burst) in policies.items():
            limiter.reconfigure(service, rate, burst)
        return limiter

    def _bucket(self, service: str) -> Optional[TokenBucket]:
        with self._lock:
            return self._buckets.get(service)

    def reconfigure(self, service: str, rate_per_second: float, burst: int) -> None:
        """Atomically replace the bucket of ``service``.

        Callers already waiting keep the bucket they started on.
        """
        bucket = TokenBucket(rate_per_second, burst, clock=self.clock)
        with self._lock:
            self._buckets[service] = bucket
        logger.info(
            "Rate limit configured",
            extra={"service": service, "rate": rate_per_second, "burst": burst},
        )

    def wait(
        self,
        service: str,
        deadline: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        """Block until ``service`` admits one more request.

        Raises:
            RequestTimeoutError: On deadline or cancellation.
        """
        bucket = self._bucket(service)
        if bucket is None:
            logger.debug("No rate limit for service", extra={"service": service})
            return
        bucket.acquire(deadline=deadline, cancel_event=cancel_event, service=service)

    def try_acquire(self, service: str) -> bool:
        """Consume a token for ``service`` without blocking."""
        bucket = self._bucket(service)
        if bucket is None:
            return True
        return bucket.try_acquire()

    def services(self) -> list[str]:
        """Names of the services with a configured bucket."""
        with self._lock:
            return sorted(self._buckets)


class NoOpRateLimiter:
    """Rate limiter that never waits (for tests and development)."""

    def wait(
        self,
        service: str,
        deadline: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        """Do nothing."""
        pass

    def reconfigure(self, service: str, rate_per_second: float, burst: int) -> None:
        """Do nothing."""
        pass
