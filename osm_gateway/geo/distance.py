"""Great-circle distance and bounding boxes."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable

from ..domain.models import GeoLocation

# Mean Earth radius (WGS-84) in meters
EARTH_RADIUS_M = 6371000.0

# Rough meters per degree, accurate near the equator
_METERS_PER_DEGREE = 111000.0


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points, in meters."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = phi2 - phi1
    dlambda = math.radians(lon2 - lon1)

    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(min(1.0, a)))


@dataclass
class BoundingBox:
    """Geographic box given by its south-west and north-east corners.

    ``empty()`` starts inverted so that the first extended point
    defines the box.
    """

    min_lat: float
    min_lon: float
    max_lat: float
    max_lon: float

    @classmethod
    def empty(cls) -> BoundingBox:
        return cls(min_lat=90.0, min_lon=180.0, max_lat=-90.0, max_lon=-180.0)

    @classmethod
    def from_points(cls, points: Iterable[GeoLocation]) -> BoundingBox:
        box = cls.empty()
        for point in points:
            box.extend(point.latitude, point.longitude)
        return box

    @property
    def is_empty(self) -> bool:
        return self.min_lat > self.max_lat or self.min_lon > self.max_lon

    def extend(self, lat: float, lon: float) -> None:
        self.min_lat = min(self.min_lat, lat)
        self.max_lat = max(self.max_lat, lat)
        self.min_lon = min(self.min_lon, lon)
        self.max_lon = max(self.max_lon, lon)

    def buffer(self, meters: float) -> None:
        """Grow the box by ``meters`` on every side, clamped to valid ranges."""
        degrees = meters / _METERS_PER_DEGREE
        self.min_lat = max(-90.0, self.min_lat - degrees)
        self.max_lat = min(90.0, self.max_lat + degrees)
        self.min_lon = max(-180.0, self.min_lon - degrees)
        self.max_lon = min(180.0, self.max_lon + degrees)

    def contains(self, lat: float, lon: float) -> bool:
        return self.min_lat <= lat <= self.max_lat and self.min_lon <= lon <= self.max_lon

    def __str__(self) -> str:
        return f"({self.min_lat:f},{self.min_lon:f},{self.max_lat:f},{self.max_lon:f})"
