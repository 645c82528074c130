"""Tests for the tool-facing gateway, its container and the launcher."""

import json
import logging
from unittest.mock import MagicMock

import pytest

import start
from osm_gateway import Container, OSMGateway
from osm_gateway.adapters.cache import TTLCache
from osm_gateway.adapters.ratelimit import ServiceRateLimiter
from osm_gateway.config import AppConfig, NominatimConfig, reset_config
from osm_gateway.container import CACHE_GEOCODE, CACHE_REVERSE, CACHE_ROUTE
from osm_gateway.domain.errors import UpstreamServiceError
from osm_gateway.geo.polyline import encode
from osm_gateway.logging_config import configure_logging, structured_formatter
from osm_gateway.ports.geocoding import GeocoderPort
from osm_gateway.ports.rate_limit import RateLimiterPort
from osm_gateway.ports.routing import RoutingPort
from osm_gateway.services import ResilientRequestExecutor

from tests.helpers import nominatim_result


@pytest.fixture
def geocoder():
    return MagicMock()


@pytest.fixture
def router():
    return MagicMock()


@pytest.fixture
def gateway(geocoder, router):
    container = Container.create_default(AppConfig())
    container.register(GeocoderPort, lambda: geocoder)
    container.register(RoutingPort, lambda: router)
    gw = OSMGateway(container=container)
    yield gw
    gw.close()


class TestGeocodeAddress:
    def test_success_shape(self, gateway, geocoder):
        geocoder.search.return_value = [
            nominatim_result(1, "Tour Eiffel", 48.8584, 2.2945, 0.3),
            nominatim_result(2, "Eiffel Tower", 48.8583, 2.2944, 0.9),
        ]

        result = gateway.geocode_address({"address": "Eiffel Tower"})

        assert result["place"]["id"] == "2"
        assert [c["id"] for c in result["candidates"]] == ["2", "1"]
        json.dumps(result)

    def test_empty_address(self, gateway, geocoder):
        result = gateway.geocode_address({"address": ""})
        assert result["error"]["code"] == "EMPTY_ADDRESS"
        assert result["error"]["suggestions"] == []
        geocoder.search.assert_not_called()

    def test_malformed_payload(self, gateway):
        result = gateway.geocode_address({"address": ["not", "a", "string"]})
        assert result["error"]["code"] == "INVALID_REQUEST"

    def test_no_results(self, gateway, geocoder):
        geocoder.search.return_value = []
        result = gateway.geocode_address({"address": "Nowhere Land"})
        assert result["error"]["code"] == "NO_RESULTS"
        assert result["error"]["query"] == "Nowhere Land"
        assert result["error"]["suggestions"]


class TestReverseGeocode:
    def test_success(self, gateway, geocoder):
        geocoder.reverse.return_value = nominatim_result(5, "Louvre", 48.86, 2.33, 0.8)
        result = gateway.reverse_geocode({"latitude": 48.86, "longitude": 2.33})
        assert result["place"]["name"] == "Louvre"

    def test_invalid_latitude(self, gateway, geocoder):
        result = gateway.reverse_geocode({"latitude": 123, "longitude": 2.33})
        assert result["error"]["code"] == "INVALID_LATITUDE"
        assert result["error"]["suggestions"] == []
        geocoder.reverse.assert_not_called()


class TestGetRoute:
    PAYLOAD = {"start_lat": 48.85, "start_lon": 2.35, "end_lat": 48.86, "end_lon": 2.29}

    def test_success(self, gateway, router):
        geometry = encode([(48.85, 2.35), (48.86, 2.29)])
        router.route.return_value = {
            "code": "Ok",
            "routes": [{"distance": 5000, "duration": 600, "geometry": geometry, "legs": []}],
        }

        result = gateway.get_route(dict(self.PAYLOAD, profile="walking"))

        assert result["route"]["polyline"] == geometry
        assert result["route"]["profile"] == "walking"
        assert result["alternatives"] == []
        assert router.route.call_args.args[2] == "foot"

    def test_profile_defaults_to_configured_one(self, router, monkeypatch):
        monkeypatch.setenv("OSMGW_OSRM_DEFAULT_PROFILE", "cycling")
        container = Container.create_default(AppConfig())
        container.register(RoutingPort, lambda: router)
        router.route.return_value = {
            "code": "Ok",
            "routes": [{"distance": 900, "duration": 240, "geometry": "", "legs": []}],
        }

        with OSMGateway(container=container) as gw:
            result = gw.get_route(self.PAYLOAD)

        assert result["route"]["profile"] == "cycling"
        assert router.route.call_args.args[2] == "bike"

    def test_explicit_profile_overrides_default(self, gateway, router):
        router.route.return_value = {
            "code": "Ok",
            "routes": [{"distance": 900, "duration": 240, "geometry": "", "legs": []}],
        }
        gateway.get_route(dict(self.PAYLOAD, profile="walking"))
        assert router.route.call_args.args[2] == "foot"

    def test_invalid_payload(self, gateway, router):
        result = gateway.get_route({"start_lat": 48.85})
        assert result["error"]["code"] == "INVALID_LONGITUDE"
        router.route.assert_not_called()

    def test_upstream_failure(self, gateway, router, monkeypatch):
        executor = gateway.container.resolve(ResilientRequestExecutor)
        monkeypatch.setattr(executor, "_wait", lambda delay, cancel_event: False)
        router.route.side_effect = UpstreamServiceError("down", service="osrm", status_code=502)

        result = gateway.get_route(self.PAYLOAD)

        assert result["error"]["code"] == "SERVICE_ERROR"
        assert result["error"]["recoverable"] is True


class TestPolylineTools:
    def test_encode(self, gateway):
        result = gateway.encode_polyline({"points": [{"latitude": 38.5, "longitude": -120.2}]})
        assert result == {"polyline": "_p~iF~ps|U"}

    def test_decode(self, gateway):
        result = gateway.decode_polyline({"polyline": "_p~iF~ps|U"})
        assert result == {"points": [{"latitude": 38.5, "longitude": -120.2}]}

    def test_decode_invalid(self, gateway):
        result = gateway.decode_polyline({"polyline": "_p~iF"})
        assert result["error"]["code"] == "INVALID_REQUEST"

    def test_encode_invalid(self, gateway):
        result = gateway.encode_polyline({"points": "nope"})
        assert result["error"]["code"] == "INVALID_REQUEST"


class TestContainer:
    def test_default_bindings(self):
        container = Container.create_default(AppConfig())
        try:
            limiter = container.resolve(RateLimiterPort)
            assert isinstance(limiter, ServiceRateLimiter)
            assert limiter.services() == ["nominatim", "osrm", "overpass"]

            executor = container.resolve(ResilientRequestExecutor)
            assert executor is container.resolve(ResilientRequestExecutor)
            assert executor.rate_limiter is limiter
        finally:
            container.close()

    def test_resolve_unregistered(self):
        with pytest.raises(KeyError):
            Container(config=AppConfig()).resolve(GeocoderPort)

    def test_non_singleton_factory(self):
        container = Container(config=AppConfig())
        container.register(list, list, singleton=False)
        assert container.resolve(list) is not container.resolve(list)

    def test_close_releases_created_singletons(self):
        container = Container(config=AppConfig())
        container.register(
            CACHE_ROUTE, lambda: TTLCache(name="route", cleanup_interval_seconds=60)
        )
        cache = container.resolve(CACHE_ROUTE)
        resource = MagicMock()
        container.register(RoutingPort, lambda: resource)
        container.resolve(RoutingPort)

        container.close()

        assert cache._sweeper is None
        resource.close.assert_called_once()
        assert container.resolve(CACHE_ROUTE) is not cache
        container.close()

    def test_close_continues_past_failing_component(self, caplog):
        container = Container(config=AppConfig())
        first = MagicMock()
        broken = MagicMock()
        broken.close.side_effect = RuntimeError("socket already gone")
        container.register(RoutingPort, lambda: first)
        container.register(GeocoderPort, lambda: broken)
        container.resolve(RoutingPort)
        container.resolve(GeocoderPort)

        with caplog.at_level(logging.ERROR, logger="osm_gateway.container"):
            container.close()

        broken.close.assert_called_once()
        first.close.assert_called_once()
        assert any(r.getMessage() == "Failed to release component" for r in caplog.records)

    def test_close_skips_unresolved_bindings(self):
        container = Container(config=AppConfig())
        factory = MagicMock()
        container.register(RoutingPort, factory)
        container.close()
        factory.assert_not_called()

    def test_named_caches_are_distinct(self):
        container = Container.create_default(AppConfig())
        try:
            assert container.resolve(CACHE_GEOCODE) is not container.resolve(CACHE_REVERSE)
            assert container.resolve(CACHE_REVERSE).name == "reverse"
        finally:
            container.close()

    def test_caches_follow_config(self):
        config = AppConfig()
        config.cache.max_items = 7
        with OSMGateway(container=Container.create_default(config)) as gw:
            assert gw._resolver.cache.max_items == 7
            assert gw._routes.cache.default_ttl_seconds == config.cache.route_ttl_seconds


class TestConfig:
    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("OSMGW_NOMINATIM_USER_AGENT", "env-agent/2.0")
        monkeypatch.setenv("OSMGW_RATE_OSRM_BURST", "9")
        reset_config()

        config = AppConfig()
        assert config.nominatim.user_agent == "env-agent/2.0"
        assert config.rate_limits.as_policies()["osrm"][1] == 9

    def test_domain_and_scheme(self):
        config = NominatimConfig(base_url="http://localhost:7070")
        assert config.domain == "localhost:7070"
        assert config.scheme == "http"

    def test_defaults(self):
        config = AppConfig()
        assert config.cache.geocode_ttl_seconds == 86400
        assert config.nominatim.min_importance == 0.4
        assert config.retry.max_attempts == 3


class TestLogging:
    def test_structured_formatter_includes_extra(self):
        record = logging.makeLogRecord(
            {"name": "x", "levelname": "INFO", "msg": "Query failed", "query": "paris"}
        )
        data = json.loads(structured_formatter().format(record))
        assert data["message"] == "Query failed"
        assert data["query"] == "paris"
        assert "args" not in data

    def test_configure_logging_replaces_previous_handler(self):
        root = logging.getLogger()
        level = root.level
        try:
            first = configure_logging(AppConfig().observability)
            second = configure_logging(AppConfig().observability)
            assert first not in root.handlers
            assert second in root.handlers
        finally:
            root.removeHandler(second)
            root.setLevel(level)


class TestLauncher:
    def test_runs_tool_and_prints_json(self, monkeypatch, capsys):
        fake = MagicMock()
        fake.__enter__.return_value = fake
        fake.encode_polyline.return_value = {"polyline": "_p~iF~ps|U"}
        monkeypatch.setattr(start.OSMGateway, "create", MagicMock(return_value=fake))
        monkeypatch.setattr(start, "configure_logging", MagicMock())

        code = start.main(["encode_polyline", '{"points": [[38.5, -120.2]]}'])

        assert code == 0
        assert json.loads(capsys.readouterr().out) == {"polyline": "_p~iF~ps|U"}
        fake.encode_polyline.assert_called_once_with({"points": [[38.5, -120.2]]})

    def test_unknown_tool(self, capsys):
        assert start.main(["teleport"]) == 2

    def test_bad_json(self, capsys):
        assert start.main(["decode_polyline", "{nope"]) == 2
