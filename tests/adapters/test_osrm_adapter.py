"""Tests for the OSRM routing adapter."""

from unittest.mock import MagicMock

import pytest
import requests

from osm_gateway.adapters.routing import OSRMRoutingAdapter
from osm_gateway.config import OSRMConfig
from osm_gateway.domain.errors import ResponseParseError, RoutingError, UpstreamServiceError
from osm_gateway.domain.models import GeoLocation

START = GeoLocation(48.85661, 2.35222)
END = GeoLocation(48.85837, 2.29448)


def _response(status=200, body=None, json_error=False):
    response = MagicMock()
    response.status_code = status
    if json_error:
        response.json.side_effect = ValueError("not json")
    else:
        response.json.return_value = body
    return response


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def adapter(session):
    adapter = OSRMRoutingAdapter(
        OSRMConfig(base_url="https://osrm.example.org/"), user_agent="tests/1.0"
    )
    adapter._session = session
    return adapter


class TestOSRMRoutingAdapter:
    def test_builds_lon_lat_url(self, adapter):
        url = adapter.build_url(START, END, "foot")
        assert url == (
            "https://osrm.example.org/route/v1/foot/"
            "2.352220,48.856610;2.294480,48.858370"
        )

    def test_route_request_parameters(self, adapter, session):
        session.get.return_value = _response(body={"code": "Ok", "routes": []})

        reply = adapter.route(START, END, "driving", alternatives=True)

        assert reply["code"] == "Ok"
        _, kwargs = session.get.call_args
        assert kwargs["params"] == {
            "overview": "full",
            "geometries": "polyline",
            "steps": "true",
            "alternatives": "true",
        }
        assert kwargs["timeout"] == adapter.config.timeout_seconds

    def test_transport_error_is_retryable(self, adapter, session):
        session.get.side_effect = requests.ConnectionError("reset")

        with pytest.raises(UpstreamServiceError) as exc_info:
            adapter.route(START, END, "driving")
        assert exc_info.value.retryable
        assert exc_info.value.service == "osrm"

    @pytest.mark.parametrize("status,retryable", [(429, True), (500, True), (503, True), (403, False)])
    def test_error_status(self, adapter, session, status, retryable):
        session.get.return_value = _response(status=status, json_error=True)

        with pytest.raises(UpstreamServiceError) as exc_info:
            adapter.route(START, END, "driving")
        assert exc_info.value.status_code == status
        assert exc_info.value.retryable is retryable

    def test_no_route_status_body(self, adapter, session):
        session.get.return_value = _response(
            status=400, body={"code": "NoRoute", "message": "Impossible route between points"}
        )

        with pytest.raises(RoutingError) as exc_info:
            adapter.route(START, END, "driving")
        assert exc_info.value.error_code() == "NO_ROUTE"
        assert exc_info.value.message == "Impossible route between points"

    def test_non_ok_code_in_success_reply(self, adapter, session):
        session.get.return_value = _response(body={"code": "TooBig"})

        with pytest.raises(RoutingError) as exc_info:
            adapter.route(START, END, "driving")
        assert exc_info.value.error_code() == "ROUTING_ERROR"

    def test_invalid_json(self, adapter, session):
        session.get.return_value = _response(json_error=True)

        with pytest.raises(ResponseParseError):
            adapter.route(START, END, "driving")

    def test_non_object_json(self, adapter, session):
        session.get.return_value = _response(body=["not", "an", "object"])

        with pytest.raises(ResponseParseError):
            adapter.route(START, END, "driving")

    def test_session_carries_user_agent(self):
        adapter = OSRMRoutingAdapter(OSRMConfig(), user_agent="tests/1.0")
        try:
            assert adapter._get_session().headers["User-Agent"] == "tests/1.0"
            assert adapter._get_session() is adapter._get_session()
        finally:
            adapter.close()

    def test_close(self, adapter, session):
        adapter.close()
        session.close.assert_called_once()
        assert adapter._session is None
