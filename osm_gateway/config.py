"""Centralized configuration using Pydantic Settings.

This module is the single source of truth for every tunable of the
gateway: cache sizing and TTLs, per-service rate limits, retry policy,
upstream endpoints and logging.

Configuration can be overridden via environment variables:
- OSMGW_CACHE_MAX_ITEMS=5000
- OSMGW_RATE_NOMINATIM_RPS=0.5
- OSMGW_NOMINATIM_USER_AGENT="my-agent/1.0 (ops@example.org)"
- OSMGW_LOG_LEVEL=DEBUG
- etc.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Logical upstream service names used by the rate limiter and executor
SERVICE_NOMINATIM = "nominatim"
# Spatial queries are issued by the tool layer through the shared
# executor; this package only carries their rate policy
SERVICE_OVERPASS = "overpass"
SERVICE_OSRM = "osrm"


class CacheConfig(BaseSettings):
    """In-memory cache configuration.

    Environment variables prefixed with OSMGW_CACHE_.
    """

    model_config = SettingsConfigDict(env_prefix="OSMGW_CACHE_")

    max_items: int = 1000
    cleanup_interval_seconds: float = 60.0
    geocode_ttl_seconds: float = 24 * 3600.0
    reverse_ttl_seconds: float = 24 * 3600.0
    route_ttl_seconds: float = 300.0


class RateLimitConfig(BaseSettings):
    """Per-service token bucket settings.

    Defaults follow the public OSM usage policies (Nominatim allows one
    request per second, Overpass two per minute).

    Environment variables prefixed with OSMGW_RATE_.
    """

    model_config = SettingsConfigDict(env_prefix="OSMGW_RATE_")

    nominatim_rps: float = 1.0
    nominatim_burst: int = 1
    overpass_rps: float = 1.0 / 30.0
    overpass_burst: int = 2
    osrm_rps: float = 1.0 / 0.6
    osrm_burst: int = 5

    def as_policies(self) -> dict[str, tuple[float, int]]:
        """Return the configured (rate, burst) policy keyed by service name."""
        return {
            SERVICE_NOMINATIM: (self.nominatim_rps, self.nominatim_burst),
            SERVICE_OVERPASS: (self.overpass_rps, self.overpass_burst),
            SERVICE_OSRM: (self.osrm_rps, self.osrm_burst),
        }


class RetryConfig(BaseSettings):
    """Retry and deadline policy for outbound requests.

    Environment variables prefixed with OSMGW_RETRY_.
    """

    model_config = SettingsConfigDict(env_prefix="OSMGW_RETRY_")

    max_attempts: int = 3
    initial_backoff_seconds: float = 0.5
    request_timeout_seconds: float = 30.0
    max_workers: int = 8


class NominatimConfig(BaseSettings):
    """Forward/reverse geocoding service configuration.

    Environment variables prefixed with OSMGW_NOMINATIM_.
    """

    model_config = SettingsConfigDict(env_prefix="OSMGW_NOMINATIM_")

    base_url: str = "https://nominatim.openstreetmap.org"
    user_agent: str = "osm-gateway/0.1.0"
    timeout_seconds: float = 10.0
    max_results: int = 3
    min_importance: float = 0.4
    default_region: str = ""

    @property
    def domain(self) -> str:
        """Host part of base_url, as geopy expects it."""
        return self.base_url.split("://", 1)[-1].rstrip("/")

    @property
    def scheme(self) -> str:
        """Scheme part of base_url."""
        return self.base_url.split("://", 1)[0] if "://" in self.base_url else "https"


class OSRMConfig(BaseSettings):
    """Routing service configuration.

    Environment variables prefixed with OSMGW_OSRM_.
    """

    model_config = SettingsConfigDict(env_prefix="OSMGW_OSRM_")

    base_url: str = "https://router.project-osrm.org"
    timeout_seconds: float = 10.0
    default_profile: str = "driving"


class ObservabilityConfig(BaseSettings):
    """Logging and observability configuration.

    Environment variables prefixed with OSMGW_LOG_.
    """

    model_config = SettingsConfigDict(env_prefix="OSMGW_LOG_")

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    structured: bool = False  # Set True for JSON logging


class AppConfig(BaseSettings):
    """Main application configuration aggregating all sub-configs.

    Sub-configurations are accessed via attributes:

        config = get_config()
        print(config.cache.max_items)
        print(config.rate_limits.as_policies())

    Environment variables prefixed with OSMGW_.
    """

    model_config = SettingsConfigDict(env_prefix="OSMGW_")

    cache: CacheConfig = Field(default_factory=CacheConfig)
    rate_limits: RateLimitConfig = Field(default_factory=RateLimitConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    nominatim: NominatimConfig = Field(default_factory=NominatimConfig)
    osrm: OSRMConfig = Field(default_factory=OSRMConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)


@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """Get the singleton application configuration.

    Configuration is loaded once and cached. To reload configuration
    (e.g., in tests), use reset_config() first.

    Returns:
        The application configuration instance.
    """
    return AppConfig()


def reset_config() -> None:
    """Reset the configuration cache.

    Call this in tests to ensure a fresh configuration is loaded.
    """
    get_config.cache_clear()
