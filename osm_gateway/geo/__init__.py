"""Geographic helpers: polyline codec, distances and bounding boxes."""

from .distance import EARTH_RADIUS_M, BoundingBox, haversine_distance
from .polyline import decode as decode_polyline
from .polyline import encode as encode_polyline

__all__ = [
    "decode_polyline",
    "encode_polyline",
    "haversine_distance",
    "BoundingBox",
    "EARTH_RADIUS_M",
]
