"""Rate limiting port - Per-service request admission.

Each upstream publishes its own usage policy, so admission is keyed by
logical service name rather than enforced globally.
"""

from __future__ import annotations

import threading
from typing import Optional, Protocol


class RateLimiterPort(Protocol):
    """Port for per-service rate limiting.

    Implementations:
    - adapters/ratelimit/token_bucket.py (ServiceRateLimiter) - Production
    - adapters/ratelimit/token_bucket.py (NoOpRateLimiter) - Testing
    """

    def wait(
        self,
        service: str,
        deadline: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        """Block until a token for ``service`` is available and consume it.

        Args:
            service: Logical upstream service name.
            deadline: Absolute ``time.monotonic()`` deadline, or None.
            cancel_event: Set by another thread to abort the wait.

        Raises:
            RequestTimeoutError: If the deadline passes or the wait is
                cancelled before a token becomes available.
        """
        ...

    def reconfigure(self, service: str, rate_per_second: float, burst: int) -> None:
        """Replace the bucket of ``service`` with a new policy."""
        ...
