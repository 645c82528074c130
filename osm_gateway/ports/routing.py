"""Routing port - Abstraction over the route computation service."""

from __future__ import annotations

from typing import Any, Mapping, Protocol

from ..domain.models import GeoLocation


class RoutingPort(Protocol):
    """Port for routing services.

    Implementation: adapters/routing/osrm_adapter.py
    """

    def route(
        self,
        start: GeoLocation,
        end: GeoLocation,
        profile: str,
        alternatives: bool = False,
    ) -> Mapping[str, Any]:
        """Compute routes between two points.

        Returns:
            The raw reply; each route carries its geometry as an encoded
            polyline string.

        Raises:
            UpstreamServiceError: On transport error or non-success status.
            ResponseParseError: If the reply cannot be decoded.
            RoutingError: If the service reports that no route exists.
        """
        ...
