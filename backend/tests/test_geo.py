"""Tests for great-circle distance helpers."""

import math

import pytest
from pydantic import ValidationError

from firelink.realtime.geo import EARTH_RADIUS_KM, bounding_box, distance_km
from firelink.schemas.common import Coordinates

from conftest import SF


def point(lat: float, lng: float) -> Coordinates:
    return Coordinates(latitude=lat, longitude=lng)


class TestDistance:
    """Tests for distance_km."""

    def test_same_point_is_zero(self):
        """Distance from a point to itself is zero."""
        assert distance_km(SF, SF) == pytest.approx(0.0, abs=1e-12)

    @pytest.mark.parametrize(
        "a,b",
        [
            (point(37.7749, -122.4194), point(34.0522, -118.2437)),
            (point(-33.8688, 151.2093), point(51.5074, -0.1278)),
            (point(0.0, 179.9), point(0.0, -179.9)),
            (point(89.9, 10.0), point(-89.9, -170.0)),
        ],
    )
    def test_symmetric(self, a, b):
        """Distance does not depend on argument order."""
        assert distance_km(a, b) == pytest.approx(distance_km(b, a), abs=1e-9)
        assert distance_km(a, b) >= 0

    def test_short_hop_north(self):
        """About 180 m north of downtown SF sits inside a 200 m radius."""
        north = point(37.77652, -122.4194)

        distance = distance_km(SF, north)

        assert 0.15 < distance <= 0.2

    def test_san_francisco_to_los_angeles(self):
        """Known city pair lands near its published distance."""
        la = point(34.0522, -118.2437)

        assert distance_km(SF, la) == pytest.approx(559, abs=5)

    def test_across_antimeridian(self):
        """Points either side of the antimeridian are close, not half a world apart."""
        distance = distance_km(point(0.0, 179.999), point(0.0, -179.999))

        assert distance == pytest.approx(0.2224, abs=0.001)

    def test_at_pole_longitude_irrelevant(self):
        """Every longitude at a pole is the same place."""
        assert distance_km(point(90.0, 0.0), point(90.0, 135.0)) == pytest.approx(0.0, abs=1e-6)

    def test_antipodal_points_are_stable(self):
        """Antipodal points give half the circumference, never NaN."""
        distance = distance_km(point(0.0, 0.0), point(0.0, 180.0))

        assert not math.isnan(distance)
        assert distance == pytest.approx(math.pi * EARTH_RADIUS_KM, rel=1e-9)


class TestCoordinates:
    """Tests for coordinate validation at ingress."""

    def test_rejects_out_of_range_latitude(self):
        with pytest.raises(ValidationError):
            Coordinates(latitude=90.5, longitude=0.0)

    def test_rejects_out_of_range_longitude(self):
        with pytest.raises(ValidationError):
            Coordinates(latitude=0.0, longitude=-180.01)

    def test_is_immutable(self):
        with pytest.raises(ValidationError):
            SF.latitude = 0.0


class TestBoundingBox:
    """Tests for bounding_box."""

    def test_contains_center(self):
        """Box always contains its center."""
        box = bounding_box(SF, 0.2)

        assert box.contains(SF.latitude, SF.longitude) is True

    def test_latitude_delta(self):
        """Latitude half-height is radius / 111.32."""
        box = bounding_box(SF, 111.32)

        assert box.min_lat == pytest.approx(SF.latitude - 1.0)
        assert box.max_lat == pytest.approx(SF.latitude + 1.0)

    def test_longitude_widened_by_latitude(self):
        """Longitude half-width grows with 1 / cos(latitude)."""
        box = bounding_box(SF, 1.0)
        expected = 1.0 / (111.32 * math.cos(math.radians(SF.latitude)))

        assert box.max_lng - SF.longitude == pytest.approx(expected)

    def test_excludes_far_point(self):
        box = bounding_box(SF, 0.2)

        assert box.contains(37.80, -122.4194) is False

    def test_near_pole_uses_full_longitude_band(self):
        """A box touching a pole spans every longitude."""
        box = bounding_box(point(89.999, 45.0), 1.0)

        assert box.min_lng == -180.0
        assert box.max_lng == 180.0
        assert box.max_lat == 90.0

    def test_crossing_antimeridian_uses_full_longitude_band(self):
        """A box that would wrap past +/-180 keeps matches on both sides."""
        box = bounding_box(point(0.0, 179.9999), 1.0)

        assert box.contains(0.0, -179.9999) is True
