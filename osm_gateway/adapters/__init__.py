"""Adapters layer - Concrete implementations of ports.

This module contains implementations of the port interfaces,
connecting the gateway to external systems like:
- Geocoding services (Nominatim)
- Routing services (OSRM)
- Caching systems (in-memory TTL, null)
- Rate limiting (token buckets, no-op)
"""
