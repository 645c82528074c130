"""Routing adapters - Implementations of RoutingPort.

Available implementations:
- OSRMRoutingAdapter: OSRM route service over HTTP
"""

from .osrm_adapter import OSRMRoutingAdapter

__all__ = ["OSRMRoutingAdapter"]
