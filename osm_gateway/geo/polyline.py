"""Encoded polyline codec.

Implements the polyline algorithm format used by routing services such
as OSRM: coordinates are scaled to integers at 1e-5 degree precision,
delta-encoded against the previous point, zig-zag mapped to unsigned
values and written as 5-bit groups, least significant first. Every
group but the last carries the 0x20 continuation bit and each output
byte is offset by 63 into printable ASCII. Latitude precedes longitude
for each point.

Example:
    >>> encode([(38.5, -120.2)])
    '_p~iF~ps|U'
    >>> decode("_p~iF~ps|U")
    [(38.5, -120.2)]
"""

from __future__ import annotations

import math
from typing import Iterable, Sequence

PRECISION = 5

_OFFSET = 63
_CHUNK_BITS = 5
_CHUNK_MASK = 0x1F
_CONTINUATION = 0x20


def _round(value: float) -> int:
    """Round half away from zero."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def _encode_value(value: int, out: list[str]) -> None:
    # Zig-zag: non-negative values become even, negative values odd
    zigzag = ~(value << 1) if value < 0 else value << 1
    while zigzag >= _CONTINUATION:
        out.append(chr((_CONTINUATION | (zigzag & _CHUNK_MASK)) + _OFFSET))
        zigzag >>= _CHUNK_BITS
    out.append(chr(zigzag + _OFFSET))


def encode(points: Iterable[Sequence[float]], precision: int = PRECISION) -> str:
    """Encode (latitude, longitude) pairs into a polyline string.

    Args:
        points: Coordinate pairs in degrees.
        precision: Decimal places kept (5 for the standard format).

    Returns:
        The encoded string; empty for no points.
    """
    factor = 10 ** precision
    out: list[str] = []
    prev_lat = prev_lon = 0

    for point in points:
        lat = _round(float(point[0]) * factor)
        lon = _round(float(point[1]) * factor)
        _encode_value(lat - prev_lat, out)
        _encode_value(lon - prev_lon, out)
        prev_lat, prev_lon = lat, lon

    return "".join(out)


def _decode_value(encoded: str, index: int) -> tuple[int, int]:
    result = 0
    shift = 0
    while True:
        if index >= len(encoded):
            raise ValueError("Truncated polyline: value is missing its final chunk")
        chunk = ord(encoded[index]) - _OFFSET
        if chunk < 0 or chunk > 0x3F:
            raise ValueError(
                f"Invalid polyline character {encoded[index]!r} at position {index}"
            )
        index += 1
        result |= (chunk & _CHUNK_MASK) << shift
        shift += _CHUNK_BITS
        if not chunk & _CONTINUATION:
            break
    # Undo zig-zag
    value = ~(result >> 1) if result & 1 else result >> 1
    return value, index


def decode(encoded: str, precision: int = PRECISION) -> list[tuple[float, float]]:
    """Decode a polyline string into (latitude, longitude) pairs.

    Args:
        encoded: The polyline string.
        precision: Decimal places used when encoding.

    Returns:
        Coordinate pairs in degrees; empty for an empty string.

    Raises:
        ValueError: If the string holds characters outside the format's
            alphabet or ends in the middle of a point.
    """
    factor = 10 ** precision
    points: list[tuple[float, float]] = []
    index = lat = lon = 0

    while index < len(encoded):
        delta_lat, index = _decode_value(encoded, index)
        if index >= len(encoded):
            raise ValueError("Truncated polyline: latitude without longitude")
        delta_lon, index = _decode_value(encoded, index)
        lat += delta_lat
        lon += delta_lon
        points.append((lat / factor, lon / factor))

    return points
