"""Spherical Mercator projection and slippy-map grid geometry."""

from __future__ import annotations

import math

from domain.models import GeoBounds
from shared.constants import (
    EARTH_RADIUS_M,
    MERCATOR_MAX_LAT_DEG,
    WORLD_LNG_HALF_SPAN_DEG,
    WORLD_LNG_SPAN_DEG,
)


def clamp_lat(lat_deg: float) -> float:
    return min(max(lat_deg, -MERCATOR_MAX_LAT_DEG), MERCATOR_MAX_LAT_DEG)


def latlng_to_planar(lat_deg: float, lng_deg: float) -> tuple[float, float]:
    """WGS84 (lat, lng) -> Web Mercator (x, y) in metres."""
    phi = math.radians(clamp_lat(lat_deg))
    x = EARTH_RADIUS_M * math.radians(lng_deg)
    y = EARTH_RADIUS_M * math.log(math.tan(math.pi / 4 + phi / 2))
    return x, y


def planar_to_latlng(x: float, y: float) -> tuple[float, float]:
    """Web Mercator (x, y) in metres -> WGS84 (lat, lng)."""
    lng = math.degrees(x / EARTH_RADIUS_M)
    lat = math.degrees(2 * math.atan(math.exp(y / EARTH_RADIUS_M)) - math.pi / 2)
    return lat, lng


class Projector:
    """Stateless transform between geographic and display coordinates."""

    def to_planar(self, lat: float, lng: float) -> tuple[float, float]:
        return latlng_to_planar(lat, lng)

    def to_geographic(self, x: float, y: float) -> tuple[float, float]:
        return planar_to_latlng(x, y)

    def tile_bounds(self, zoom: int, x: int, y: int) -> GeoBounds:
        return tile_bounds(zoom, x, y)


def _row_to_lat(y: float, n: int) -> float:
    merc = math.pi * (1 - 2 * y / n)
    return math.degrees(math.atan(math.sinh(merc)))


def tile_bounds(zoom: int, x: int, y: int) -> GeoBounds:
    """Geographic footprint of slippy-map cell z/x/y."""
    n = 2**zoom
    west = x / n * WORLD_LNG_SPAN_DEG - WORLD_LNG_HALF_SPAN_DEG
    east = (x + 1) / n * WORLD_LNG_SPAN_DEG - WORLD_LNG_HALF_SPAN_DEG
    return GeoBounds(
        west=west,
        north=_row_to_lat(y, n),
        east=east,
        south=_row_to_lat(y + 1, n),
    )


def latlng_to_tile_fraction(lat: float, lng: float, zoom: int) -> tuple[float, float]:
    """Fractional grid position of the point; the integer part is the cell."""
    n = 2**zoom
    phi = math.radians(clamp_lat(lat))
    fx = (lng + WORLD_LNG_HALF_SPAN_DEG) / WORLD_LNG_SPAN_DEG * n
    fy = (1 - math.log(math.tan(phi) + 1 / math.cos(phi)) / math.pi) / 2 * n
    return fx, fy


def latlng_to_tile(lat: float, lng: float, zoom: int) -> tuple[int, int]:
    """Cell (x, y) containing the point, clamped to the grid."""
    n = 2**zoom
    fx, fy = latlng_to_tile_fraction(lat, lng, zoom)
    tx = min(max(math.floor(fx), 0), n - 1)
    ty = min(max(math.floor(fy), 0), n - 1)
    return tx, ty


def tiles_for_bounds(bounds: GeoBounds, zoom: int) -> list[tuple[int, int]]:
    """All cells intersecting bounds at zoom, row-major from the north-west."""
    x0, y0 = latlng_to_tile(bounds.north, bounds.west, zoom)
    x1, y1 = latlng_to_tile(bounds.south, bounds.east, zoom)
    return [(tx, ty) for ty in range(y0, y1 + 1) for tx in range(x0, x1 + 1)]
