"""Immutable domain models for the OSM gateway.

All models are frozen dataclasses with slots. They have no external
dependencies and represent the values that flow between the resolution
pipeline, the routing service and the tool-facing facade.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any, Iterable, Iterator, Mapping, Optional

if TYPE_CHECKING:
    from ..geo.distance import BoundingBox


@dataclass(frozen=True, slots=True)
class GeoLocation:
    """GPS coordinates representing a geographic location."""

    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        """Validate coordinate ranges."""
        if not -90 <= self.latitude <= 90:
            raise ValueError(
                f"Latitude must be between -90 and 90, got {self.latitude}"
            )
        if not -180 <= self.longitude <= 180:
            raise ValueError(
                f"Longitude must be between -180 and 180, got {self.longitude}"
            )

    def as_tuple(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)


@dataclass(frozen=True, slots=True)
class Address:
    """Structured address components of a geocoding match."""

    street: str = ""
    house_number: str = ""
    city: str = ""
    state: str = ""
    country: str = ""
    postal_code: str = ""
    formatted: str = ""

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any], formatted: str = "") -> Address:
        """Build from the ``address`` object of a geocoding reply.

        The city may be reported as ``town`` for smaller places.
        """
        return cls(
            street=str(raw.get("road") or ""),
            house_number=str(raw.get("house_number") or ""),
            city=str(raw.get("city") or raw.get("town") or ""),
            state=str(raw.get("state") or ""),
            country=str(raw.get("country") or ""),
            postal_code=str(raw.get("postcode") or ""),
            formatted=formatted,
        )


@dataclass(frozen=True, slots=True)
class ResolutionCandidate:
    """One geocoding match parsed from an upstream reply.

    Attributes:
        id: Upstream place identifier
        display_name: Full human-readable name
        location: Coordinates of the match
        importance: Upstream relevance score in [0, 1]
        address: Structured address components
        place_type: Upstream feature type (e.g. "temple", "house")
    """

    id: str
    display_name: str
    location: GeoLocation
    importance: float = 0.0
    address: Address = field(default_factory=Address)
    place_type: str = ""

    @property
    def latitude(self) -> float:
        return self.location.latitude

    @property
    def longitude(self) -> float:
        return self.location.longitude

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> ResolutionCandidate:
        """Parse one reply object.

        Raises:
            KeyError, TypeError, ValueError: If mandatory fields are
                missing or malformed.
        """
        display_name = str(raw.get("display_name") or "")
        importance = float(raw.get("importance") or 0.0)
        return cls(
            id=str(raw["place_id"]),
            display_name=display_name,
            location=GeoLocation(
                latitude=float(raw["lat"]),
                longitude=float(raw["lon"]),
            ),
            importance=min(max(importance, 0.0), 1.0),
            address=Address.from_raw(raw.get("address") or {}, display_name),
            place_type=str(raw.get("type") or ""),
        )

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready representation."""
        return {
            "id": self.id,
            "name": self.display_name,
            "location": {
                "latitude": self.location.latitude,
                "longitude": self.location.longitude,
            },
            "address": asdict(self.address),
            "importance": self.importance,
            "type": self.place_type,
        }


@dataclass(frozen=True, slots=True)
class SanitizedAddress:
    """Result of cleaning a free-text address.

    Attributes:
        original: Input with whitespace collapsed
        without_parens: Input with the parenthetical group removed
        parens_content: Bare content of the parenthetical group, or ""
    """

    original: str
    without_parens: str
    parens_content: str = ""

    @property
    def has_parens(self) -> bool:
        return bool(self.parens_content)


@dataclass(frozen=True, slots=True)
class QuerySequence:
    """Ordered, deduplicated fallback queries derived from one address."""

    queries: tuple[str, ...]
    source: SanitizedAddress

    def __iter__(self) -> Iterator[str]:
        return iter(self.queries)

    def __len__(self) -> int:
        return len(self.queries)


@dataclass(frozen=True, slots=True)
class ResolutionFailure:
    """Structured terminal failure returned to callers.

    ``suggestions`` is empty only for validation errors, where the
    message already says how to fix the input.
    """

    code: str
    message: str
    original_query: str = ""
    suggestions: tuple[str, ...] = ()
    recoverable: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "query": self.original_query,
            "suggestions": list(self.suggestions),
            "recoverable": self.recoverable,
        }


@dataclass(frozen=True, slots=True)
class AddressResolution:
    """Outcome of resolving a free-text address.

    Attributes:
        query: Original address text
        best_match: Selected candidate, or None on failure
        candidates: All candidates of the winning query, by importance
        winning_query: Fallback query that produced the candidates
        attempted_queries: Fallback queries tried, in order
        error: Structured failure, or None on success
    """

    query: str
    best_match: Optional[ResolutionCandidate] = None
    candidates: tuple[ResolutionCandidate, ...] = ()
    winning_query: Optional[str] = None
    attempted_queries: tuple[str, ...] = ()
    error: Optional[ResolutionFailure] = None

    @property
    def is_success(self) -> bool:
        return self.error is None and self.best_match is not None


@dataclass(frozen=True, slots=True)
class CoordinateResolution:
    """Outcome of reverse geocoding a coordinate pair."""

    location: Optional[GeoLocation] = None
    match: Optional[ResolutionCandidate] = None
    error: Optional[ResolutionFailure] = None

    @property
    def is_success(self) -> bool:
        return self.error is None and self.match is not None


@dataclass(frozen=True, slots=True)
class RouteGeometry:
    """Ordered route vertices decoded from or encoded into a polyline."""

    points: tuple[GeoLocation, ...] = ()

    def __iter__(self) -> Iterator[GeoLocation]:
        return iter(self.points)

    def __len__(self) -> int:
        return len(self.points)

    @classmethod
    def from_pairs(cls, pairs: Iterable[tuple[float, float]]) -> RouteGeometry:
        """Build from an iterable of (latitude, longitude) pairs."""
        return cls(tuple(GeoLocation(float(lat), float(lon)) for lat, lon in pairs))

    def as_pairs(self) -> list[tuple[float, float]]:
        return [p.as_tuple() for p in self.points]

    def length_m(self) -> float:
        """Sum of great-circle segment lengths in meters."""
        from ..geo.distance import haversine_distance

        total = 0.0
        for a, b in zip(self.points, self.points[1:]):
            total += haversine_distance(a.latitude, a.longitude, b.latitude, b.longitude)
        return total

    def bounds(self) -> BoundingBox:
        """Bounding box of all vertices."""
        from ..geo.distance import BoundingBox

        return BoundingBox.from_points(self.points)


@dataclass(frozen=True, slots=True)
class Route:
    """A computed route between two points.

    Attributes:
        distance_m: Route length reported by the routing service
        duration_s: Travel time reported by the routing service
        geometry: Decoded route vertices
        encoded_geometry: Polyline string as received
        instructions: Street names of the route steps, in order
        start: Requested start point
        end: Requested end point
        profile: Transport mode used
    """

    distance_m: float
    duration_s: float
    geometry: RouteGeometry
    encoded_geometry: str
    start: GeoLocation
    end: GeoLocation
    instructions: tuple[str, ...] = ()
    profile: str = "driving"

    def to_dict(self) -> dict[str, Any]:
        return {
            "distance": self.distance_m,
            "duration": self.duration_s,
            "profile": self.profile,
            "start_point": {
                "latitude": self.start.latitude,
                "longitude": self.start.longitude,
            },
            "end_point": {
                "latitude": self.end.latitude,
                "longitude": self.end.longitude,
            },
            "polyline": self.encoded_geometry,
            "points": [
                {"latitude": p.latitude, "longitude": p.longitude}
                for p in self.geometry
            ],
            "instructions": list(self.instructions),
        }


@dataclass(frozen=True, slots=True)
class RouteResult:
    """Primary route plus any alternatives, or a structured failure."""

    routes: tuple[Route, ...] = ()
    error: Optional[ResolutionFailure] = None

    @property
    def is_success(self) -> bool:
        return self.error is None and len(self.routes) > 0

    @property
    def primary(self) -> Optional[Route]:
        return self.routes[0] if self.routes else None
