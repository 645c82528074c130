"""Dependency injection container.

Owns the lifecycle of everything shared between tool invocations: the
caches, the rate limiter, the executor, the upstream adapters and the
services. ``create_default`` wires them from the configuration and
``close`` releases them. Callers construct a container and pass it
(or what it resolves) around.

Components are looked up by key: a port or class for single
implementations, a string such as ``"cache.geocode"`` where several
instances of one class coexist. Factories run lazily on first resolve.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Hashable, Optional

from .config import AppConfig, get_config

logger = logging.getLogger(__name__)

CACHE_GEOCODE = "cache.geocode"
CACHE_REVERSE = "cache.reverse"
CACHE_ROUTE = "cache.route"


@dataclass
class _Registration:
    factory: Callable[[], Any]
    singleton: bool = True
    instance: Any = None
    created: bool = False


@dataclass
class Container:
    """Dependency injection container.

    Usage:
        # Production
        container = Container.create_default()
        resolver = container.resolve(AddressResolutionService)
        ...
        container.close()

        # Testing
        container = Container.create_default(AppConfig())
        container.register(GeocoderPort, lambda: FakeGeocoder())

    Attributes:
        config: Application configuration
    """

    config: AppConfig = field(default_factory=get_config)

    _registrations: Dict[Hashable, _Registration] = field(default_factory=dict, repr=False)
    # Singletons in creation order, released in reverse
    _created: list[Any] = field(default_factory=list, repr=False)
    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    def register(
        self,
        key: Hashable,
        factory: Callable[[], Any],
        singleton: bool = True,
    ) -> None:
        """Bind ``key`` to ``factory``, replacing any earlier binding.

        Args:
            key: Port, class or name the component is resolved by.
            factory: Zero-argument callable building the component.
            singleton: Build once and share, or build on every resolve.
        """
        with self._lock:
            self._registrations[key] = _Registration(factory=factory, singleton=singleton)

    def resolve(self, key: Hashable) -> Any:
        """Return the component bound to ``key``.

        Raises:
            KeyError: If nothing is bound to ``key``.
        """
        with self._lock:
            registration = self._registrations.get(key)
            if registration is None:
                raise KeyError(f"Nothing registered for {key!r}")

            if not registration.singleton:
                return registration.factory()

            if not registration.created:
                registration.instance = registration.factory()
                registration.created = True
                self._created.append(registration.instance)
            return registration.instance

    def is_registered(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._registrations

    def close(self) -> None:
        """Release every singleton built so far, newest first.

        Each is asked to ``close()`` or ``stop()``, whichever it offers;
        bindings stay in place, so a later resolve builds afresh. A
        component failing to release is logged and the rest still are.
        """
        with self._lock:
            created = self._created
            self._created = []
            for registration in self._registrations.values():
                registration.instance = None
                registration.created = False

        failed = 0
        for component in reversed(created):
            release = getattr(component, "close", None) or getattr(component, "stop", None)
            if not callable(release):
                continue
            try:
                release()
            except Exception:
                failed += 1
                logger.exception(
                    "Failed to release component",
                    extra={"component": type(component).__name__},
                )
        logger.debug("Container closed", extra={"released": len(created), "failed": failed})

    @classmethod
    def create_default(cls, config: Optional[AppConfig] = None) -> Container:
        """Create a container with the production bindings.

        Args:
            config: Configuration to wire from; the process-wide one if None.
        """
        from .adapters.cache import TTLCache
        from .adapters.geocoding import NominatimGeocoderAdapter
        from .adapters.ratelimit import ServiceRateLimiter
        from .adapters.routing import OSRMRoutingAdapter
        from .ports.geocoding import GeocoderPort
        from .ports.rate_limit import RateLimiterPort
        from .ports.routing import RoutingPort
        from .services import (
            AddressResolutionService,
            ResilientRequestExecutor,
            RouteService,
        )

        config = config or get_config()
        container = cls(config=config)

        # Caches: one per result kind, each with its own default TTL
        for key, ttl in (
            (CACHE_GEOCODE, config.cache.geocode_ttl_seconds),
            (CACHE_REVERSE, config.cache.reverse_ttl_seconds),
            (CACHE_ROUTE, config.cache.route_ttl_seconds),
        ):
            container.register(
                key,
                lambda name=key.split(".", 1)[1], ttl=ttl: TTLCache(
                    name=name,
                    default_ttl_seconds=ttl,
                    max_items=config.cache.max_items,
                    cleanup_interval_seconds=config.cache.cleanup_interval_seconds,
                ),
            )

        # Admission control and execution, shared by every upstream call
        container.register(
            RateLimiterPort,
            lambda: ServiceRateLimiter.from_policies(config.rate_limits.as_policies()),
        )
        container.register(
            ResilientRequestExecutor,
            lambda: ResilientRequestExecutor(
                rate_limiter=container.resolve(RateLimiterPort),
                max_attempts=config.retry.max_attempts,
                initial_backoff_seconds=config.retry.initial_backoff_seconds,
                default_timeout_seconds=config.retry.request_timeout_seconds,
                max_workers=config.retry.max_workers,
            ),
        )

        # Upstream adapters
        container.register(GeocoderPort, lambda: NominatimGeocoderAdapter(config.nominatim))
        container.register(
            RoutingPort,
            lambda: OSRMRoutingAdapter(config.osrm, user_agent=config.nominatim.user_agent),
        )

        # Services
        container.register(
            AddressResolutionService,
            lambda: AddressResolutionService(
                geocoder=container.resolve(GeocoderPort),
                executor=container.resolve(ResilientRequestExecutor),
                cache=container.resolve(CACHE_GEOCODE),
                reverse_cache=container.resolve(CACHE_REVERSE),
                max_results=config.nominatim.max_results,
                min_importance=config.nominatim.min_importance,
                default_region=config.nominatim.default_region,
                search_ttl_seconds=config.cache.geocode_ttl_seconds,
                reverse_ttl_seconds=config.cache.reverse_ttl_seconds,
            ),
        )
        container.register(
            RouteService,
            lambda: RouteService(
                router=container.resolve(RoutingPort),
                executor=container.resolve(ResilientRequestExecutor),
                cache=container.resolve(CACHE_ROUTE),
                ttl_seconds=config.cache.route_ttl_seconds,
                default_profile=config.osrm.default_profile,
            ),
        )

        return container
