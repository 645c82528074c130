"""Typed domain errors for the OSM gateway.

Every failure that leaves a service is one of these types, never a raw
transport exception. Each carries a machine-readable ``code`` and can be
turned into the structured ResolutionFailure returned to callers.

All errors inherit from OSMGatewayError and can optionally wrap a root
cause exception for debugging.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar, Optional

from .models import ResolutionFailure

GUIDANCE_GENERAL = "Please try again later or modify your request parameters."
GUIDANCE_RETRY = "Try again in a few moments"
GUIDANCE_DATA = (
    "The data received was incomplete or malformed. Try different search parameters."
)


@dataclass
class OSMGatewayError(Exception):
    """Base error for the gateway domain.

    Attributes:
        message: Human-readable error description
        cause: Optional underlying exception that caused this error
    """

    message: str
    cause: Optional[Exception] = field(default=None, repr=False)

    code: ClassVar[str] = "ERROR"
    recoverable: ClassVar[bool] = True

    def __str__(self) -> str:
        if self.cause:
            return f"{self.message}: {self.cause}"
        return self.message

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def suggestions(self) -> tuple[str, ...]:
        """Remediation hints shown alongside the error."""
        return (GUIDANCE_GENERAL,)

    def error_code(self) -> str:
        return self.code

    def is_recoverable(self) -> bool:
        return self.recoverable

    def to_failure(self, original_query: str = "") -> ResolutionFailure:
        """Convert to the structured failure record handed to callers."""
        return ResolutionFailure(
            code=self.error_code(),
            message=self.message,
            original_query=original_query,
            suggestions=self.suggestions(),
            recoverable=self.is_recoverable(),
        )


@dataclass
class InputValidationError(OSMGatewayError):
    """Input rejected before any network activity.

    The fix is spelled out by the message, so no suggestions are attached.

    Attributes:
        field_name: Name of the offending input field
        reason_code: EMPTY_ADDRESS, INVALID_LATITUDE, INVALID_LONGITUDE, ...
    """

    field_name: str = ""
    reason_code: str = "INVALID_REQUEST"

    code: ClassVar[str] = "INVALID_REQUEST"

    def error_code(self) -> str:
        return self.reason_code

    def suggestions(self) -> tuple[str, ...]:
        return ()


@dataclass
class NoResultsError(OSMGatewayError):
    """Every candidate query produced zero matches.

    Attributes:
        query: The original free-text address
        attempted_queries: Candidate queries tried, in order
        hints: Suggestions derived from the structure of the input
    """

    query: str = ""
    attempted_queries: tuple[str, ...] = ()
    hints: tuple[str, ...] = ()

    code: ClassVar[str] = "NO_RESULTS"

    def suggestions(self) -> tuple[str, ...]:
        return self.hints


@dataclass
class UpstreamServiceError(OSMGatewayError):
    """Network error or non-success status from an upstream service.

    Raised by adapters for a single failed call (``retryable`` decides
    whether the executor tries again) and by the executor once retries
    are exhausted (``attempts`` then holds the attempt count).

    Attributes:
        service: Logical upstream service name
        status_code: HTTP status, if the service answered
        attempts: Number of attempts made before giving up
        retryable: Whether another attempt may succeed
    """

    service: str = ""
    status_code: Optional[int] = None
    attempts: int = 1
    retryable: bool = True

    code: ClassVar[str] = "SERVICE_ERROR"

    def suggestions(self) -> tuple[str, ...]:
        if self.status_code == 429:
            return ("Rate limit exceeded. Please try again in a few moments.",)
        if self.status_code == 400:
            return ("The request was invalid. Check your parameters and try again.",)
        return (GUIDANCE_RETRY,)


@dataclass
class RequestTimeoutError(OSMGatewayError):
    """Deadline elapsed or caller cancelled while waiting.

    Distinct from UpstreamServiceError: nothing is known to be wrong
    with the upstream, the caller simply ran out of time.

    Attributes:
        service: Service the caller was waiting on
        stage: Where the wait happened (rate_limit, backoff, coalesced)
    """

    service: str = ""
    stage: str = ""

    code: ClassVar[str] = "TIMEOUT"
    recoverable: ClassVar[bool] = False

    def suggestions(self) -> tuple[str, ...]:
        return (
            "Check your internet connection and try again, "
            "or allow a longer timeout.",
        )


@dataclass
class ResponseParseError(OSMGatewayError):
    """Upstream reply could not be decoded into the expected shape.

    Signals an upstream contract change rather than absence of data.

    Attributes:
        service: Service whose reply failed to parse
    """

    service: str = ""

    code: ClassVar[str] = "PARSE_ERROR"

    def suggestions(self) -> tuple[str, ...]:
        return (GUIDANCE_DATA,)


@dataclass
class RoutingError(OSMGatewayError):
    """Routing service answered but produced no usable route.

    Attributes:
        upstream_code: Code reported by the routing service (e.g. NoRoute)
    """

    upstream_code: str = ""

    code: ClassVar[str] = "ROUTING_ERROR"

    def error_code(self) -> str:
        if self.upstream_code in ("NoRoute", "NoSegment"):
            return "NO_ROUTE"
        return self.code

    def suggestions(self) -> tuple[str, ...]:
        return (
            "No route could be found between the specified points. "
            "Try locations with accessible roads.",
            "Check that your coordinates are accessible by the specified "
            "transport mode.",
        )


@dataclass
class ConfigurationError(OSMGatewayError):
    """Invalid or missing configuration.

    Attributes:
        setting_name: Name of the problematic setting
        expected_type: Expected type or format
    """

    setting_name: str = ""
    expected_type: Optional[str] = None

    code: ClassVar[str] = "CONFIG_ERROR"
    recoverable: ClassVar[bool] = False
