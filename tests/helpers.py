"""Test doubles shared across the suite."""

from __future__ import annotations

from osm_gateway.services.request_executor import ResilientRequestExecutor


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingExecutor(ResilientRequestExecutor):
    """Executor whose backoff waits are recorded instead of slept."""

    def __post_init__(self) -> None:
        super().__post_init__()
        self.waits: list[float] = []

    def _wait(self, delay, cancel_event):
        self.waits.append(delay)
        return cancel_event.is_set()


def nominatim_result(place_id, name, lat, lon, importance, **address):
    """Raw search reply object as returned by the geocoding service."""
    return {
        "place_id": place_id,
        "display_name": name,
        "lat": str(lat),
        "lon": str(lon),
        "importance": importance,
        "type": "attraction",
        "address": address,
    }
