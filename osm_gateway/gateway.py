"""Tool-facing facade over the gateway services.

Each method takes the loosely typed payload of one tool invocation,
validates it into a request model, runs the matching service and
returns a JSON-ready dictionary. Failures never raise; they come back
as ``{"error": {code, message, query, suggestions, recoverable}}``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from .config import AppConfig
from .container import Container
from .domain.errors import InputValidationError
from .domain.models import GeoLocation, ResolutionFailure
from .domain.requests import (
    DecodePolylineRequest,
    EncodePolylineRequest,
    GeocodeAddressRequest,
    ReverseGeocodeRequest,
    RouteRequest,
    parse_request,
)
from .geo import polyline
from .services import AddressResolutionService, RouteService

Payload = Mapping[str, Any]


def _error(failure: ResolutionFailure) -> Dict[str, Any]:
    return {"error": failure.to_dict()}


@dataclass
class OSMGateway:
    """Single owning context of caches, limiter, executor and services.

    Usage:
        with OSMGateway.create() as gateway:
            result = gateway.geocode_address({"address": "Eiffel Tower"})

    Attributes:
        container: Container holding the wired components
    """

    container: Container

    _resolver: AddressResolutionService = field(init=False, repr=False)
    _routes: RouteService = field(init=False, repr=False)
    _logger: logging.Logger = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._logger = logging.getLogger(__name__)
        self._resolver = self.container.resolve(AddressResolutionService)
        self._routes = self.container.resolve(RouteService)

    @classmethod
    def create(cls, config: Optional[AppConfig] = None) -> OSMGateway:
        """Build a gateway with the default production bindings."""
        return cls(container=Container.create_default(config))

    def geocode_address(self, payload: Payload) -> Dict[str, Any]:
        """Resolve a free-text address into a place and ranked candidates."""
        try:
            request = parse_request(GeocodeAddressRequest, payload)
        except InputValidationError as e:
            return _error(e.to_failure(str(payload.get("address", ""))))

        resolution = self._resolver.resolve_address(request.address, request.region)
        if resolution.error is not None:
            return _error(resolution.error)

        return {
            "place": resolution.best_match.to_dict(),
            "candidates": [c.to_dict() for c in resolution.candidates],
        }

    def reverse_geocode(self, payload: Payload) -> Dict[str, Any]:
        """Resolve a coordinate pair into the nearest place."""
        try:
            request = parse_request(ReverseGeocodeRequest, payload)
        except InputValidationError as e:
            query = f"{payload.get('latitude')},{payload.get('longitude')}"
            return _error(e.to_failure(query))

        resolution = self._resolver.resolve_coordinate(request.latitude, request.longitude)
        if resolution.error is not None:
            return _error(resolution.error)
        return {"place": resolution.match.to_dict()}

    def get_route(self, payload: Payload) -> Dict[str, Any]:
        """Compute a route; alternatives follow the primary route."""
        try:
            request = parse_request(RouteRequest, payload)
        except InputValidationError as e:
            return _error(e.to_failure())

        result = self._routes.get_route(
            GeoLocation(request.start_lat, request.start_lon),
            GeoLocation(request.end_lat, request.end_lon),
            profile=request.profile,
            alternatives=request.alternatives,
        )
        if result.error is not None:
            return _error(result.error)

        return {
            "route": result.primary.to_dict(),
            "alternatives": [r.to_dict() for r in result.routes[1:]],
        }

    def encode_polyline(self, payload: Payload) -> Dict[str, Any]:
        try:
            request = parse_request(EncodePolylineRequest, payload)
        except InputValidationError as e:
            return _error(e.to_failure())

        return {"polyline": polyline.encode(request.points)}

    def decode_polyline(self, payload: Payload) -> Dict[str, Any]:
        try:
            request = parse_request(DecodePolylineRequest, payload)
            points = polyline.decode(request.polyline)
        except InputValidationError as e:
            return _error(e.to_failure(str(payload.get("polyline", ""))))
        except ValueError as e:
            error = InputValidationError(str(e), field_name="polyline", cause=e)
            return _error(error.to_failure(request.polyline))

        return {"points": [{"latitude": lat, "longitude": lon} for lat, lon in points]}

    def close(self) -> None:
        """Stop cache sweepers, cancel pending requests, close HTTP sessions."""
        self._logger.info("Shutting down gateway")
        self.container.close()

    def __enter__(self) -> OSMGateway:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
