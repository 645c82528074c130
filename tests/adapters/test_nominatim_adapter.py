"""Tests for the Nominatim geocoder adapter."""

from unittest.mock import MagicMock, patch

import pytest
from geopy.exc import (
    GeocoderParseError,
    GeocoderQueryError,
    GeocoderRateLimited,
    GeocoderServiceError,
    GeocoderTimedOut,
    GeocoderUnavailable,
)

from osm_gateway.adapters.geocoding import NominatimGeocoderAdapter
from osm_gateway.config import NominatimConfig
from osm_gateway.domain.errors import (
    ConfigurationError,
    ResponseParseError,
    UpstreamServiceError,
)


def _location(raw):
    location = MagicMock()
    location.raw = raw
    return location


class TestNominatimGeocoderAdapter:
    """Adapter behaviour with geopy mocked out."""

    @pytest.fixture
    def adapter_with_mock(self):
        """Adapter whose geopy client is a MagicMock."""
        geolocator = MagicMock()
        adapter = NominatimGeocoderAdapter(NominatimConfig(user_agent="tests/1.0"))
        adapter._geolocator = geolocator
        return adapter, geolocator

    def test_search_returns_raw_results(self, adapter_with_mock):
        adapter, geolocator = adapter_with_mock
        geolocator.geocode.return_value = [_location({"place_id": 1}), _location({"place_id": 2})]

        results = adapter.search("Eiffel Tower", 3)

        assert results == [{"place_id": 1}, {"place_id": 2}]
        geolocator.geocode.assert_called_once_with(
            "Eiffel Tower", exactly_one=False, limit=3, addressdetails=True
        )

    def test_search_without_matches_returns_empty(self, adapter_with_mock):
        adapter, geolocator = adapter_with_mock
        geolocator.geocode.return_value = None
        assert adapter.search("Atlantis", 3) == []

    def test_reverse_returns_raw_result(self, adapter_with_mock):
        adapter, geolocator = adapter_with_mock
        geolocator.reverse.return_value = _location({"place_id": 9})

        assert adapter.reverse(48.85, 2.29) == {"place_id": 9}
        geolocator.reverse.assert_called_once_with(
            (48.85, 2.29), exactly_one=True, addressdetails=True
        )

    def test_reverse_without_match_returns_none(self, adapter_with_mock):
        adapter, geolocator = adapter_with_mock
        geolocator.reverse.return_value = None
        assert adapter.reverse(0.0, -140.0) is None

    @pytest.mark.parametrize(
        "error,status,retryable",
        [
            (GeocoderTimedOut("slow"), None, True),
            (GeocoderUnavailable("down"), 503, True),
            (GeocoderRateLimited("slow down"), 429, True),
            (GeocoderServiceError("boom"), None, True),
            (GeocoderQueryError("bad query"), 400, False),
        ],
    )
    def test_translates_service_errors(self, adapter_with_mock, error, status, retryable):
        adapter, geolocator = adapter_with_mock
        geolocator.geocode.side_effect = error

        with pytest.raises(UpstreamServiceError) as exc_info:
            adapter.search("x", 1)

        assert exc_info.value.service == "nominatim"
        assert exc_info.value.status_code == status
        assert exc_info.value.retryable is retryable
        assert exc_info.value.cause is error

    def test_translates_parse_error(self, adapter_with_mock):
        adapter, geolocator = adapter_with_mock
        geolocator.reverse.side_effect = GeocoderParseError("garbage")

        with pytest.raises(ResponseParseError):
            adapter.reverse(1.0, 1.0)

    def test_empty_user_agent_rejected(self):
        with pytest.raises(ConfigurationError):
            NominatimGeocoderAdapter(NominatimConfig(user_agent="  "))

    def test_geolocator_built_from_config(self):
        config = NominatimConfig(
            base_url="http://localhost:8080/", user_agent="tests/1.0", timeout_seconds=3
        )
        with patch("osm_gateway.adapters.geocoding.nominatim_adapter.Nominatim") as nominatim:
            adapter = NominatimGeocoderAdapter(config)
            adapter._get_geolocator()
            adapter._get_geolocator()

        nominatim.assert_called_once()
        kwargs = nominatim.call_args.kwargs
        assert kwargs["user_agent"] == "tests/1.0"
        assert kwargs["domain"] == "localhost:8080"
        assert kwargs["scheme"] == "http"
        assert kwargs["timeout"] == 3

    def test_transport_does_not_retry_on_its_own(self):
        adapter = NominatimGeocoderAdapter(
            NominatimConfig(base_url="https://nominatim.example.org", user_agent="tests/1.0")
        )
        try:
            session = adapter._get_geolocator().adapter.session
            transport = session.get_adapter("https://nominatim.example.org/search")
            assert transport.max_retries.total == 0
        finally:
            adapter.close()

    def test_close_releases_client(self, adapter_with_mock):
        adapter, geolocator = adapter_with_mock
        adapter.close()
        geolocator.__exit__.assert_called_once_with(None, None, None)
        assert adapter._geolocator is None
