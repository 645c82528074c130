"""Domain layer - Core models, errors and boundary requests.

Models and errors have no external dependencies; request models use
pydantic to validate raw tool payloads.
"""

from .errors import (
    ConfigurationError,
    InputValidationError,
    NoResultsError,
    OSMGatewayError,
    RequestTimeoutError,
    ResponseParseError,
    RoutingError,
    UpstreamServiceError,
)
from .models import (
    Address,
    AddressResolution,
    CoordinateResolution,
    GeoLocation,
    QuerySequence,
    ResolutionCandidate,
    ResolutionFailure,
    Route,
    RouteGeometry,
    RouteResult,
    SanitizedAddress,
)

__all__ = [
    # Models
    "GeoLocation",
    "Address",
    "ResolutionCandidate",
    "SanitizedAddress",
    "QuerySequence",
    "ResolutionFailure",
    "AddressResolution",
    "CoordinateResolution",
    "RouteGeometry",
    "Route",
    "RouteResult",
    # Errors
    "OSMGatewayError",
    "InputValidationError",
    "NoResultsError",
    "UpstreamServiceError",
    "RequestTimeoutError",
    "ResponseParseError",
    "RoutingError",
    "ConfigurationError",
]
