"""Route service - Point-to-point routing with decoded geometry."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from ..config import SERVICE_OSRM
from ..domain.errors import InputValidationError, OSMGatewayError, ResponseParseError
from ..domain.models import GeoLocation, Route, RouteGeometry, RouteResult
from ..geo import polyline
from ..ports.cache import CachePort
from ..ports.routing import RoutingPort
from .request_executor import ResilientRequestExecutor

# Public transport modes and the OSRM profile serving each
PROFILES = {
    "driving": "driving",
    "walking": "foot",
    "cycling": "bike",
}


def route_cache_key(start: GeoLocation, end: GeoLocation, profile: str, alternatives: bool) -> str:
    return (
        f"route:{profile}:{start.latitude:.5f},{start.longitude:.5f}:"
        f"{end.latitude:.5f},{end.longitude:.5f}:{int(alternatives)}"
    )


def parse_route(
    raw: Mapping[str, Any], start: GeoLocation, end: GeoLocation, profile: str
) -> Route:
    """Build a Route from one OSRM route object.

    Raises:
        KeyError, TypeError, ValueError: If the object is malformed or its
            geometry is not a valid polyline.
    """
    encoded = str(raw.get("geometry") or "")
    geometry = RouteGeometry.from_pairs(polyline.decode(encoded))

    instructions = []
    for leg in raw.get("legs") or ():
        for step in leg.get("steps") or ():
            name = step.get("name")
            if name:
                instructions.append(str(name))

    return Route(
        distance_m=float(raw["distance"]),
        duration_s=float(raw["duration"]),
        geometry=geometry,
        encoded_geometry=encoded,
        start=start,
        end=end,
        instructions=tuple(instructions),
        profile=profile,
    )


@dataclass
class RouteService:
    """Compute routes through the resilient executor.

    Attributes:
        router: Routing service
        executor: Rate-limited, retried, coalesced request execution
        cache: Raw routing replies keyed by profile and rounded endpoints
        ttl_seconds: TTL of cached replies
        default_profile: Profile used when a request names none
    """

    router: RoutingPort
    executor: ResilientRequestExecutor
    cache: CachePort[dict]
    ttl_seconds: float = 300.0
    default_profile: str = "driving"

    _logger: logging.Logger = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._logger = logging.getLogger(__name__)

    def get_route(
        self,
        start: GeoLocation,
        end: GeoLocation,
        profile: Optional[str] = None,
        alternatives: bool = False,
        timeout: Optional[float] = None,
    ) -> RouteResult:
        """Route between two points.

        Args:
            start: Departure point.
            end: Arrival point.
            profile: driving, walking or cycling (None = default_profile).
            alternatives: Whether to request alternative routes.
            timeout: Time budget in seconds (None = executor default).

        Returns:
            RouteResult with the primary route first, or a structured error.
        """
        query = f"{start.latitude},{start.longitude} -> {end.latitude},{end.longitude}"
        profile = profile or self.default_profile
        osrm_profile = PROFILES.get(profile.lower())
        if osrm_profile is None:
            error = InputValidationError(
                f"Unsupported profile {profile!r}; use one of: {', '.join(PROFILES)}",
                field_name="profile",
            )
            return RouteResult(error=error.to_failure(query))

        self._logger.info(
            "Computing route",
            extra={"start": start.as_tuple(), "end": end.as_tuple(), "profile": profile},
        )

        key = route_cache_key(start, end, osrm_profile, alternatives)
        raw, found = self.cache.get(key)
        try:
            if not found:
                raw = self.executor.execute(
                    key,
                    SERVICE_OSRM,
                    lambda: self.router.route(start, end, osrm_profile, alternatives),
                    deadline=self.executor.deadline_after(timeout),
                )
            routes = self._parse(raw, start, end, profile)
        except OSMGatewayError as e:
            self._logger.error("Routing failed", extra={"query": query, "error": str(e)})
            return RouteResult(error=e.to_failure(query))

        if not found:
            self.cache.set(key, dict(raw), self.ttl_seconds)

        primary = routes[0]
        self._logger.info(
            "Route computed",
            extra={
                "distance_m": primary.distance_m,
                "duration_s": primary.duration_s,
                "points": len(primary.geometry),
                "alternatives": len(routes) - 1,
            },
        )
        return RouteResult(routes=routes)

    def _parse(
        self, raw: Mapping[str, Any], start: GeoLocation, end: GeoLocation, profile: str
    ) -> tuple[Route, ...]:
        try:
            routes = tuple(parse_route(r, start, end, profile) for r in raw["routes"])
        except (KeyError, TypeError, ValueError) as e:
            raise ResponseParseError(
                "Failed to parse routing response", service=SERVICE_OSRM, cause=e
            ) from e
        if not routes:
            raise ResponseParseError("Routing response holds no routes", service=SERVICE_OSRM)
        return routes
