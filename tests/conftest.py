"""Shared fixtures for the gateway test suite."""

from __future__ import annotations

import pytest

from osm_gateway.adapters.cache import TTLCache
from osm_gateway.adapters.ratelimit import NoOpRateLimiter
from osm_gateway.config import reset_config

from tests.helpers import FakeClock, RecordingExecutor


@pytest.fixture(autouse=True)
def _fresh_config():
    reset_config()
    yield
    reset_config()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def executor():
    ex = RecordingExecutor(rate_limiter=NoOpRateLimiter(), initial_backoff_seconds=0.01)
    yield ex
    ex.close()


@pytest.fixture
def cache_factory():
    caches = []

    def make(name="test", **kwargs):
        cache = TTLCache(name=name, **kwargs)
        caches.append(cache)
        return cache

    yield make
    for cache in caches:
        cache.stop()
