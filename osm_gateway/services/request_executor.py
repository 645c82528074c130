"""Resilient request executor.

Turns one logical outbound call into a rate-limited, retried and
deduplicated operation:

1. Concurrent calls sharing a key are coalesced onto one computation
   (single-flight); every caller sees the same result or error.
2. Each attempt first waits for a rate limit token of its service.
3. Retryable failures are retried with exponential backoff (tenacity).
4. Once attempts are exhausted the last error is raised, tagged with
   the attempt count.

The shared computation runs on a worker thread so that each caller can
give up at its own deadline without cancelling it for the others; it is
cancelled only when its last waiter has gone.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, TypeVar

from tenacity import Retrying, retry_if_exception, stop_after_attempt, wait_exponential

from ..domain.errors import RequestTimeoutError, UpstreamServiceError
from ..ports.rate_limit import RateLimiterPort

T = TypeVar("T")

logger = logging.getLogger(__name__)


def _is_retryable(error: BaseException) -> bool:
    return isinstance(error, UpstreamServiceError) and error.retryable


@dataclass
class _Call:
    """One in-flight computation and the callers waiting on it."""

    future: Future = field(default_factory=Future)
    cancel_event: threading.Event = field(default_factory=threading.Event)
    waiters: int = 0


@dataclass
class SingleFlight:
    """Registry collapsing concurrent calls with the same key into one.

    Registration and deregistration happen under one lock, so at most
    one computation per key is ever active.

    Attributes:
        max_workers: Size of the worker pool running shared computations
    """

    max_workers: int = 8

    _calls: Dict[str, _Call] = field(default_factory=dict, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _pool: ThreadPoolExecutor = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._pool = ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="singleflight"
        )

    def do(
        self,
        key: str,
        fn: Callable[[threading.Event], T],
        timeout: Optional[float] = None,
    ) -> T:
        """Run ``fn`` once for all concurrent callers of ``key``.

        A computation abandoned by all its callers stays registered until
        its worker returns. Callers arriving meanwhile wait for it and
        share its outcome, starting a fresh computation only if it ended
        in cancellation.

        Args:
            key: Deduplication key.
            fn: The computation; receives an Event that is set when no
                caller is waiting any more.
            timeout: How long this caller waits, in seconds (None = forever).

        Returns:
            The shared result.

        Raises:
            RequestTimeoutError: If this caller's timeout elapses first.
            Exception: Whatever ``fn`` raised, identically for all callers.
        """
        give_up = None if timeout is None else time.monotonic() + timeout

        while True:
            with self._lock:
                call = self._calls.get(key)
                if call is not None and call.future.done():
                    # Finished, deregistration pending
                    call = None
                abandoned = call is not None and call.cancel_event.is_set()
                leader = call is None
                if leader:
                    call = _Call()
                    self._calls[key] = call
                if not abandoned:
                    call.waiters += 1

            if not abandoned:
                break

            logger.debug("Waiting for abandoned request", extra={"key": key})
            outcome = self._await(call, give_up)
            if not isinstance(outcome, RequestTimeoutError):
                return call.future.result()

        if leader:
            self._pool.submit(self._run, key, call, fn)
        else:
            logger.debug("Joined in-flight request", extra={"key": key})

        try:
            self._await(call, give_up)
            return call.future.result()
        finally:
            self._leave(key, call)

    def _await(self, call: _Call, give_up: Optional[float]) -> Optional[BaseException]:
        """Block until ``call`` completes and return its exception, if any."""
        remaining = None if give_up is None else max(0.0, give_up - time.monotonic())
        try:
            return call.future.exception(timeout=remaining)
        except FutureTimeoutError:
            raise RequestTimeoutError(
                "Deadline exceeded while waiting for in-flight request",
                stage="coalesced",
            )

    def _run(self, key: str, call: _Call, fn: Callable[[threading.Event], Any]) -> None:
        try:
            result = fn(call.cancel_event)
        except BaseException as e:  # published to every waiter
            call.future.set_exception(e)
        else:
            call.future.set_result(result)
        finally:
            self._forget(key, call)

    def _forget(self, key: str, call: _Call) -> None:
        with self._lock:
            if self._calls.get(key) is call:
                del self._calls[key]

    def _leave(self, key: str, call: _Call) -> None:
        with self._lock:
            call.waiters -= 1
            abandoned = call.waiters <= 0 and not call.future.done()
            if abandoned:
                call.cancel_event.set()
        if abandoned:
            logger.debug("Cancelled abandoned request", extra={"key": key})

    def in_flight(self) -> int:
        """Number of keys with a running computation, abandoned ones included."""
        with self._lock:
            return len(self._calls)

    def close(self) -> None:
        """Stop accepting work and cancel every pending computation."""
        with self._lock:
            calls = list(self._calls.values())
            self._calls.clear()
        for call in calls:
            call.cancel_event.set()
        self._pool.shutdown(wait=False, cancel_futures=True)


@dataclass
class ResilientRequestExecutor:
    """Rate-limited, retried, deduplicated execution of outbound calls.

    Attributes:
        rate_limiter: Per-service admission control
        max_attempts: Total attempts per logical call
        initial_backoff_seconds: Delay before the second attempt; doubles after
        default_timeout_seconds: Deadline applied when the caller gives none
        max_workers: Worker threads for shared computations
        clock: Time source (monotonic seconds)

    Example:
        executor = ResilientRequestExecutor(rate_limiter=limiter)
        results = executor.execute(
            "search:paris", "nominatim", lambda: geocoder.search("paris", 3)
        )
    """

    rate_limiter: RateLimiterPort
    max_attempts: int = 3
    initial_backoff_seconds: float = 0.5
    default_timeout_seconds: Optional[float] = 30.0
    max_workers: int = 8
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)

    _flight: SingleFlight = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self._flight = SingleFlight(max_workers=self.max_workers)

    def deadline_after(self, timeout: Optional[float] = None) -> Optional[float]:
        """Absolute deadline for a timeout in seconds (None = default timeout)."""
        effective = timeout if timeout is not None else self.default_timeout_seconds
        if effective is None:
            return None
        return self.clock() + effective

    def remaining(self, deadline: Optional[float]) -> Optional[float]:
        """Seconds left until ``deadline`` (never negative)."""
        if deadline is None:
            return None
        return max(0.0, deadline - self.clock())

    def execute(
        self,
        key: str,
        service: str,
        do_request: Callable[[], T],
        deadline: Optional[float] = None,
    ) -> T:
        """Execute ``do_request`` with coalescing, rate limiting and retries.

        Args:
            key: Deduplication key; concurrent calls with the same key share
                one execution.
            service: Logical upstream service name for rate limiting.
            do_request: The outbound call. Raises UpstreamServiceError on
                transport failure or non-success status.
            deadline: Absolute monotonic deadline for this caller; defaults
                to ``default_timeout_seconds`` from now.

        Returns:
            The value returned by ``do_request``.

        Raises:
            RequestTimeoutError: Deadline or cancellation while waiting.
            UpstreamServiceError: Attempts exhausted or non-retryable failure.
            OSMGatewayError: Any other domain error from ``do_request``,
                passed through untouched.
        """
        if deadline is None:
            deadline = self.deadline_after()
        # The shared run outlives impatient callers, but not the longest
        # deadline anyone could have asked for when it started
        shared_deadline = deadline
        if self.default_timeout_seconds is not None and deadline is not None:
            shared_deadline = max(deadline, self.deadline_after())

        def run(cancel_event: threading.Event) -> T:
            return self._run_with_retries(
                service, do_request, shared_deadline, cancel_event
            )

        return self._flight.do(key, run, timeout=self.remaining(deadline))

    def _run_with_retries(
        self,
        service: str,
        do_request: Callable[[], T],
        deadline: Optional[float],
        cancel_event: threading.Event,
    ) -> T:
        attempts = 0

        def attempt() -> T:
            nonlocal attempts
            attempts += 1
            try:
                return do_request()
            except UpstreamServiceError as e:
                logger.error(
                    "Request failed",
                    extra={
                        "service": service,
                        "attempt": attempts,
                        "status_code": e.status_code,
                        "error": str(e),
                    },
                )
                raise

        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.initial_backoff_seconds, exp_base=2),
            retry=retry_if_exception(_is_retryable),
            before=lambda state: self.rate_limiter.wait(
                service, deadline=deadline, cancel_event=cancel_event
            ),
            before_sleep=lambda state: logger.info(
                "Retrying request",
                extra={
                    "service": service,
                    "attempt": state.attempt_number + 1,
                    "max_attempts": self.max_attempts,
                    "delay": state.next_action.sleep,
                },
            ),
            sleep=lambda delay: self._backoff(delay, deadline, cancel_event, service),
            reraise=True,
        )

        try:
            return retrying(attempt)
        except UpstreamServiceError as e:
            if e.retryable:
                message = f"Max retries reached after {attempts} attempts: {e.message}"
            else:
                message = f"Non-retryable failure after {attempts} attempt(s): {e.message}"
            raise UpstreamServiceError(
                message,
                service=service,
                status_code=e.status_code,
                attempts=attempts,
                retryable=e.retryable,
                cause=e,
            )

    def _backoff(
        self,
        delay: float,
        deadline: Optional[float],
        cancel_event: threading.Event,
        service: str,
    ) -> None:
        """Sleep ``delay`` seconds unless cancelled or past the deadline."""
        if deadline is not None and self.clock() + delay > deadline:
            raise RequestTimeoutError(
                "Deadline exceeded before next retry",
                service=service,
                stage="backoff",
            )
        if self._wait(delay, cancel_event):
            raise RequestTimeoutError(
                "Cancelled during retry backoff",
                service=service,
                stage="backoff",
            )

    def _wait(self, delay: float, cancel_event: threading.Event) -> bool:
        """Wait ``delay`` seconds; True if cancelled meanwhile."""
        return cancel_event.wait(delay)

    def in_flight(self) -> int:
        return self._flight.in_flight()

    def close(self) -> None:
        """Cancel pending computations and release the worker pool."""
        self._flight.close()
