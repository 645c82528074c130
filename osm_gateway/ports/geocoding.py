"""Geocoding port - Abstraction over the forward/reverse geocoding service.

Adapters return the raw reply objects; parsing and ranking stay in the
address resolution service so that the cache can store raw replies.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol, Sequence


class GeocoderPort(Protocol):
    """Port for geocoding services.

    Implementation: adapters/geocoding/nominatim_adapter.py
    """

    def search(self, query: str, limit: int) -> Sequence[Mapping[str, Any]]:
        """Run a free-text search.

        Args:
            query: The free-text query to resolve.
            limit: Maximum number of matches to return.

        Returns:
            Raw reply objects (``place_id``, ``display_name``, ``lat``,
            ``lon``, ``importance``, ``address``); empty if nothing matched.

        Raises:
            UpstreamServiceError: On transport error or non-success status.
            ResponseParseError: If the reply cannot be decoded.
        """
        ...

    def reverse(self, latitude: float, longitude: float) -> Optional[Mapping[str, Any]]:
        """Look up the feature closest to a coordinate.

        Returns:
            The raw reply object, or None if nothing is there.

        Raises:
            UpstreamServiceError: On transport error or non-success status.
            ResponseParseError: If the reply cannot be decoded.
        """
        ...
