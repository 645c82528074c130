"""Services layer - Application orchestration.

This module contains the services that drive the adapters to fulfil
the gateway's operations.

Available services:
- ResilientRequestExecutor: Rate-limited, retried, coalesced outbound calls
- AddressResolutionService: Free-text and coordinate resolution
- RouteService: Point-to-point routing with decoded geometry
"""

from .address_resolver import AddressResolutionService
from .request_executor import ResilientRequestExecutor, SingleFlight
from .route_service import RouteService

__all__ = [
    "ResilientRequestExecutor",
    "SingleFlight",
    "AddressResolutionService",
    "RouteService",
]
