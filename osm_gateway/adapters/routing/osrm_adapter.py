"""OSRM routing adapter.

Issues a single ``GET /route/v1/{profile}/{lon},{lat};{lon},{lat}``
per call over a shared requests session and returns the decoded JSON
reply. Geometry is requested as an encoded polyline.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

import requests

from ...config import SERVICE_OSRM, OSRMConfig, get_config
from ...domain.errors import ResponseParseError, RoutingError, UpstreamServiceError
from ...domain.models import GeoLocation

# OSRM codes meaning the request was understood but no route exists
NO_ROUTE_CODES = ("NoRoute", "NoSegment")


@dataclass
class OSRMRoutingAdapter:
    """Route computation against an OSRM server.

    This adapter implements RoutingPort.

    Attributes:
        config: OSRM endpoint and timeout settings
        user_agent: User-Agent header sent with every request
    """

    config: OSRMConfig = field(default_factory=lambda: get_config().osrm)
    user_agent: str = field(default_factory=lambda: get_config().nominatim.user_agent)

    _session: Optional[requests.Session] = field(default=None, repr=False)
    _logger: logging.Logger = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._logger = logging.getLogger(__name__)

    def _get_session(self) -> requests.Session:
        if self._session is None:
            self._session = requests.Session()
            self._session.headers.update({"User-Agent": self.user_agent})
        return self._session

    def build_url(self, start: GeoLocation, end: GeoLocation, profile: str) -> str:
        """OSRM expects longitude first in the coordinate path."""
        base = self.config.base_url.rstrip("/")
        return (
            f"{base}/route/v1/{profile}/"
            f"{start.longitude:f},{start.latitude:f};{end.longitude:f},{end.latitude:f}"
        )

    def route(
        self,
        start: GeoLocation,
        end: GeoLocation,
        profile: str,
        alternatives: bool = False,
    ) -> Mapping[str, Any]:
        """Compute routes between two points.

        Raises:
            UpstreamServiceError: On transport error or non-success status.
            ResponseParseError: If the reply is not valid JSON.
            RoutingError: If OSRM reports a code other than ``Ok``.
        """
        url = self.build_url(start, end, profile)
        params = {
            "overview": "full",
            "geometries": "polyline",
            "steps": "true",
            "alternatives": "true" if alternatives else "false",
        }

        self._logger.debug("Requesting route", extra={"url": url, "profile": profile})
        try:
            response = self._get_session().get(
                url, params=params, timeout=self.config.timeout_seconds
            )
        except requests.RequestException as e:
            self._logger.warning(
                "Routing request failed",
                extra={"url": url, "error_type": type(e).__name__, "error": str(e)},
            )
            raise UpstreamServiceError(
                "Routing service request failed",
                service=SERVICE_OSRM,
                cause=e,
            ) from e

        if response.status_code != 200:
            raise self._status_error(response)

        try:
            payload = response.json()
        except ValueError as e:
            raise ResponseParseError(
                "Could not decode routing response",
                service=SERVICE_OSRM,
                cause=e,
            ) from e

        if not isinstance(payload, dict):
            raise ResponseParseError(
                "Routing response is not a JSON object", service=SERVICE_OSRM
            )

        code = payload.get("code", "")
        if code != "Ok":
            message = payload.get("message") or f"Routing failed with code {code!r}"
            raise RoutingError(message, upstream_code=str(code))

        return payload

    def _status_error(self, response: requests.Response) -> Exception:
        """Translate a non-200 reply into a domain error.

        OSRM answers NoRoute/NoSegment with a 400 and a JSON body; those
        are routing outcomes rather than transport failures.
        """
        code = ""
        message = ""
        try:
            body = response.json()
            if isinstance(body, dict):
                code = str(body.get("code") or "")
                message = str(body.get("message") or "")
        except ValueError:
            pass

        self._logger.warning(
            "Routing service returned error status",
            extra={"status_code": response.status_code, "osrm_code": code},
        )

        if code in NO_ROUTE_CODES:
            return RoutingError(message or "No route found", upstream_code=code)

        status = response.status_code
        retryable = status == 429 or status >= 500
        return UpstreamServiceError(
            message or f"Routing service returned status {status}",
            service=SERVICE_OSRM,
            status_code=status,
            retryable=retryable,
        )

    def close(self) -> None:
        if self._session is not None:
            self._session.close()
            self._session = None
