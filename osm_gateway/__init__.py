"""Top-level package for the OSM gateway.

This package resolves free-text addresses and coordinates against
OpenStreetMap services, computes routes and converts route geometry,
with caching, per-service rate limiting, retries and request
coalescing shared by every outbound call.
"""

from .config import AppConfig, get_config, reset_config
from .container import Container
from .gateway import OSMGateway

__version__ = "0.1.0"

__all__ = ["OSMGateway", "Container", "AppConfig", "get_config", "reset_config"]
