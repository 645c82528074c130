"""Nominatim geocoder adapter.

Wraps geopy's Nominatim client and returns the raw reply objects. It
performs exactly one HTTP call per method call: rate limiting, retries
and caching belong to the executor and the resolution service, so
geopy's own RateLimiter wrapper is not used here.

geopy failures are translated into domain errors:
- timeouts, unavailability, rate limiting and other service errors
  become a retryable UpstreamServiceError
- a rejected query becomes a non-retryable UpstreamServiceError
- an undecodable reply becomes ResponseParseError
"""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Sequence

from geopy.adapters import RequestsAdapter
from geopy.exc import (
    GeocoderParseError,
    GeocoderQueryError,
    GeocoderRateLimited,
    GeocoderServiceError,
    GeocoderTimedOut,
    GeocoderUnavailable,
    GeopyError,
)
from geopy.geocoders import Nominatim

from ...config import SERVICE_NOMINATIM, NominatimConfig, get_config
from ...domain.errors import ConfigurationError, ResponseParseError, UpstreamServiceError


@dataclass
class NominatimGeocoderAdapter:
    """Forward/reverse geocoding against a Nominatim instance.

    This adapter implements GeocoderPort. Every request carries the
    configured User-Agent, which Nominatim's usage policy requires.

    Attributes:
        config: Nominatim endpoint, identity and timeout settings
    """

    config: NominatimConfig = field(default_factory=lambda: get_config().nominatim)

    _geolocator: Optional[Nominatim] = field(default=None, repr=False)
    _logger: logging.Logger = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._logger = logging.getLogger(__name__)
        if not self.config.user_agent.strip():
            raise ConfigurationError(
                "A non-empty user agent is required for Nominatim",
                setting_name="nominatim.user_agent",
                expected_type="str",
            )

    def _get_geolocator(self) -> Nominatim:
        """Get or initialize the geopy client."""
        if self._geolocator is not None:
            return self._geolocator

        self._logger.debug(
            "Initializing Nominatim geocoder",
            extra={
                "domain": self.config.domain,
                "user_agent": self.config.user_agent,
                "timeout": self.config.timeout_seconds,
            },
        )
        self._geolocator = Nominatim(
            user_agent=self.config.user_agent,
            timeout=self.config.timeout_seconds,
            domain=self.config.domain,
            scheme=self.config.scheme,
            # No transport-level retries; the executor retries
            adapter_factory=functools.partial(RequestsAdapter, max_retries=0),
        )
        return self._geolocator

    def search(self, query: str, limit: int) -> Sequence[Mapping[str, Any]]:
        """Free-text search; returns raw reply objects (possibly empty).

        Raises:
            UpstreamServiceError: On transport error or non-success status.
            ResponseParseError: If the reply cannot be decoded.
        """
        geolocator = self._get_geolocator()
        try:
            locations = geolocator.geocode(
                query,
                exactly_one=False,
                limit=limit,
                addressdetails=True,
            )
        except GeopyError as e:
            raise self._translate(e, query) from e

        if not locations:
            return []
        return [location.raw for location in locations]

    def reverse(self, latitude: float, longitude: float) -> Optional[Mapping[str, Any]]:
        """Reverse lookup; returns the raw reply object or None.

        Raises:
            UpstreamServiceError: On transport error or non-success status.
            ResponseParseError: If the reply cannot be decoded.
        """
        geolocator = self._get_geolocator()
        try:
            location = geolocator.reverse(
                (latitude, longitude),
                exactly_one=True,
                addressdetails=True,
            )
        except GeopyError as e:
            raise self._translate(e, f"{latitude},{longitude}") from e

        if location is None:
            return None
        return location.raw

    def _translate(self, error: GeopyError, query: str) -> Exception:
        """Map a geopy exception onto the domain error hierarchy."""
        self._logger.warning(
            "Geocode service error",
            extra={"query": query, "error_type": type(error).__name__, "error": str(error)},
        )
        if isinstance(error, GeocoderParseError):
            return ResponseParseError(
                "Could not decode geocoding response",
                service=SERVICE_NOMINATIM,
                cause=error,
            )
        if isinstance(error, GeocoderRateLimited):
            return UpstreamServiceError(
                "Geocoding service rate limit exceeded",
                service=SERVICE_NOMINATIM,
                status_code=429,
                cause=error,
            )
        if isinstance(error, GeocoderQueryError):
            return UpstreamServiceError(
                "Geocoding service rejected the query",
                service=SERVICE_NOMINATIM,
                status_code=400,
                retryable=False,
                cause=error,
            )
        if isinstance(error, GeocoderTimedOut):
            return UpstreamServiceError(
                "Geocoding service timed out",
                service=SERVICE_NOMINATIM,
                cause=error,
            )
        if isinstance(error, GeocoderUnavailable):
            return UpstreamServiceError(
                "Geocoding service unavailable",
                service=SERVICE_NOMINATIM,
                status_code=503,
                cause=error,
            )
        if isinstance(error, GeocoderServiceError):
            return UpstreamServiceError(
                "Geocoding service error",
                service=SERVICE_NOMINATIM,
                cause=error,
            )
        # Authentication, privileges, adapter misconfiguration
        return UpstreamServiceError(
            f"Geocoding request failed: {error}",
            service=SERVICE_NOMINATIM,
            retryable=False,
            cause=error,
        )

    def close(self) -> None:
        """Close the underlying HTTP session."""
        if self._geolocator is not None:
            self._geolocator.__exit__(None, None, None)
            self._geolocator = None
