"""Tests for Web Mercator projection and slippy grid geometry."""

import math

import pytest

from domain.models import GeoBounds
from geo.projection import (
    Projector,
    latlng_to_planar,
    latlng_to_tile,
    latlng_to_tile_fraction,
    planar_to_latlng,
    tile_bounds,
    tiles_for_bounds,
)
from shared.constants import EARTH_RADIUS_M, MERCATOR_MAX_LAT_DEG


class TestPlanar:
    @pytest.mark.parametrize(
        ('lat', 'lng'),
        [(0.0, 0.0), (55.75, 37.62), (-33.9, 151.2), (84.0, -179.0), (-60.0, 10.5)],
    )
    def test_round_trip(self, lat, lng):
        """to_geographic(to_planar(p)) returns p within 1e-9 degrees."""
        projector = Projector()
        x, y = projector.to_planar(lat, lng)
        lat2, lng2 = projector.to_geographic(x, y)
        assert lat2 == pytest.approx(lat, abs=1e-9)
        assert lng2 == pytest.approx(lng, abs=1e-9)

    def test_origin(self):
        assert latlng_to_planar(0.0, 0.0) == pytest.approx((0.0, 0.0), abs=1e-6)

    def test_antimeridian_x(self):
        x, _ = latlng_to_planar(0.0, 180.0)
        assert x == pytest.approx(math.pi * EARTH_RADIUS_M)

    def test_latitude_is_clamped(self):
        """Poles map to the Mercator limit instead of infinity."""
        _, y_pole = latlng_to_planar(90.0, 0.0)
        _, y_limit = latlng_to_planar(MERCATOR_MAX_LAT_DEG, 0.0)
        assert math.isfinite(y_pole)
        assert y_pole == pytest.approx(y_limit)

    def test_inverse_of_world_edge(self):
        lat, lng = planar_to_latlng(math.pi * EARTH_RADIUS_M, math.pi * EARTH_RADIUS_M)
        assert lng == pytest.approx(180.0)
        assert lat == pytest.approx(MERCATOR_MAX_LAT_DEG, abs=1e-6)


class TestTileBounds:
    def test_world_tile(self):
        b = tile_bounds(0, 0, 0)
        assert b.west == pytest.approx(-180.0)
        assert b.east == pytest.approx(180.0)
        assert b.north == pytest.approx(MERCATOR_MAX_LAT_DEG, abs=1e-6)
        assert b.south == pytest.approx(-MERCATOR_MAX_LAT_DEG, abs=1e-6)

    def test_zoom_one_north_west(self):
        b = tile_bounds(1, 0, 0)
        assert b.west == pytest.approx(-180.0)
        assert b.east == pytest.approx(0.0)
        assert b.south == pytest.approx(0.0, abs=1e-9)

    def test_neighbours_share_edges(self):
        left = tile_bounds(5, 9, 15)
        right = tile_bounds(5, 10, 15)
        below = tile_bounds(5, 9, 16)
        assert left.east == pytest.approx(right.west)
        assert left.south == pytest.approx(below.north)

    def test_projector_delegates(self):
        assert Projector().tile_bounds(3, 2, 1) == tile_bounds(3, 2, 1)


class TestGridLookup:
    def test_point_to_tile(self):
        assert latlng_to_tile(0.0, 0.0, 1) == (1, 1)
        assert latlng_to_tile(45.0, -90.0, 1) == (0, 0)

    def test_clamped_to_grid(self):
        assert latlng_to_tile(89.9, 180.0, 2) == (3, 0)
        assert latlng_to_tile(-89.9, -180.0, 2) == (0, 3)

    def test_fraction_matches_tile_bounds(self):
        b = tile_bounds(4, 5, 6)
        fx, fy = latlng_to_tile_fraction(b.north, b.west, 4)
        assert fx == pytest.approx(5.0)
        assert fy == pytest.approx(6.0)

    def test_tiles_for_bounds_row_major(self):
        bounds = GeoBounds(west=-100.0, north=40.0, east=-80.0, south=20.0)
        cells = tiles_for_bounds(bounds, 3)
        xs = sorted({x for x, _ in cells})
        ys = sorted({y for _, y in cells})
        assert cells == [(x, y) for y in ys for x in xs]
        for x, y in cells:
            assert tile_bounds(3, x, y).intersects(bounds)
