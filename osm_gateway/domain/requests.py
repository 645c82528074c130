"""Typed tool requests validated at the boundary.

Tool invocations arrive as loosely typed mappings. Each operation has a
pydantic model here; ``parse_request`` turns a raw payload into that
model or raises InputValidationError before anything reaches the
services.
"""

from __future__ import annotations

from typing import Any, Literal, Mapping, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import InputValidationError

RequestT = TypeVar("RequestT", bound=BaseModel)

Profile = Literal["driving", "walking", "cycling"]


class _ToolRequest(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True, str_strip_whitespace=True)


class GeocodeAddressRequest(_ToolRequest):
    """Forward geocoding input."""

    address: str = ""
    region: Optional[str] = None


class ReverseGeocodeRequest(_ToolRequest):
    """Reverse geocoding input."""

    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class RouteRequest(_ToolRequest):
    """Route computation input."""

    start_lat: float = Field(ge=-90, le=90)
    start_lon: float = Field(ge=-180, le=180)
    end_lat: float = Field(ge=-90, le=90)
    end_lon: float = Field(ge=-180, le=180)
    profile: Optional[Profile] = None
    alternatives: bool = False

    @field_validator("profile", mode="before")
    @classmethod
    def _lower_profile(cls, value: Any) -> Any:
        return value.lower() if isinstance(value, str) else value


class EncodePolylineRequest(_ToolRequest):
    """Polyline encoding input: a list of {latitude, longitude} points."""

    points: list[tuple[float, float]]

    @field_validator("points", mode="before")
    @classmethod
    def _coerce_points(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return value
        coerced = []
        for item in value:
            if isinstance(item, Mapping):
                coerced.append((item.get("latitude"), item.get("longitude")))
            else:
                coerced.append(item)
        return coerced


class DecodePolylineRequest(_ToolRequest):
    """Polyline decoding input."""

    polyline: str = ""


def _reason_for(field_name: str) -> str:
    if field_name in ("latitude", "start_lat", "end_lat"):
        return "INVALID_LATITUDE"
    if field_name in ("longitude", "start_lon", "end_lon"):
        return "INVALID_LONGITUDE"
    return "INVALID_REQUEST"


def parse_request(model: type[RequestT], payload: Mapping[str, Any]) -> RequestT:
    """Validate a raw tool payload against ``model``.

    Args:
        model: The request model to build.
        payload: Raw key/value arguments of the tool invocation.

    Returns:
        The validated request.

    Raises:
        InputValidationError: If the payload is malformed; the reason code
            names the first offending field.
    """
    try:
        return model.model_validate(dict(payload))
    except ValidationError as e:
        first = e.errors()[0]
        field_name = str(first["loc"][0]) if first.get("loc") else ""
        raise InputValidationError(
            f"Invalid value for '{field_name}': {first['msg']}",
            field_name=field_name,
            reason_code=_reason_for(field_name),
            cause=e,
        )
