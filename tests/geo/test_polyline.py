"""Tests for the encoded polyline codec."""

import pytest

from osm_gateway.geo.polyline import decode, encode


REFERENCE_POINTS = [(38.5, -120.2), (40.7, -120.95), (43.252, -126.453)]
REFERENCE_ENCODED = "_p~iF~ps|U_ulLnnqC_mqNvxq`@"


def _assert_points_close(actual, expected, tolerance=1e-5):
    assert len(actual) == len(expected)
    for (lat, lon), (exp_lat, exp_lon) in zip(actual, expected):
        assert lat == pytest.approx(exp_lat, abs=tolerance)
        assert lon == pytest.approx(exp_lon, abs=tolerance)


class TestEncode:
    def test_single_point(self):
        assert encode([(38.5, -120.2)]) == "_p~iF~ps|U"

    def test_reference_line(self):
        assert encode(REFERENCE_POINTS) == REFERENCE_ENCODED

    def test_empty(self):
        assert encode([]) == ""

    def test_accepts_lists_and_generators(self):
        assert encode([[38.5, -120.2]]) == encode(p for p in [(38.5, -120.2)])

    def test_rounds_half_away_from_zero(self):
        # 0.000005 * 1e5 == 0.5 rounds to 1; the negative mirrors it
        assert decode(encode([(0.000005, -0.000005)])) == [(0.00001, -0.00001)]

    def test_output_is_printable_ascii(self):
        encoded = encode([(-89.99999, 179.99999), (89.99999, -179.99999)])
        assert all(63 <= ord(c) <= 126 for c in encoded)


class TestDecode:
    def test_reference_line(self):
        _assert_points_close(decode(REFERENCE_ENCODED), REFERENCE_POINTS)

    def test_empty(self):
        assert decode("") == []

    def test_round_trip_within_precision(self):
        points = [(52.51667, 13.38333), (48.85661, 2.35222), (-33.86785, 151.20732),
                  (0.0, 0.0), (-0.00001, 0.00001)]
        _assert_points_close(decode(encode(points)), points)

    def test_repeated_point_encodes_zero_delta(self):
        encoded = encode([(10.0, 10.0), (10.0, 10.0)])
        assert encoded.endswith("??")
        assert decode(encoded) == [(10.0, 10.0), (10.0, 10.0)]

    @pytest.mark.parametrize("bad", ["_p~iF~ps|", "_p~iF", "_"])
    def test_truncated_input_raises(self, bad):
        with pytest.raises(ValueError):
            decode(bad)

    @pytest.mark.parametrize("bad", ["_p~iF ps|U", "\x01\x02", "_p~iF~ps|Ué"])
    def test_characters_outside_alphabet_raise(self, bad):
        with pytest.raises(ValueError):
            decode(bad)
