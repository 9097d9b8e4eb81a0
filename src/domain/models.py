from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel, field_validator

from shared.constants import (
    HTTP_CACHE_ENABLED,
    HTTP_TIMEOUT_DEFAULT,
    MAX_ZOOM,
    MB,
    RENDER_CONCURRENCY,
    TILE_CACHE_ENTRY_ESTIMATE_MB,
    TILE_CACHE_MAX_SIZE_MB,
    TILE_SIZE,
    TileKind,
)


@dataclass(frozen=True)
class GeoBounds:
    """Axis-aligned geographic rectangle in degrees."""

    west: float
    north: float
    east: float
    south: float

    @classmethod
    def from_bbox(cls, bbox: tuple[float, float, float, float] | list[float]) -> GeoBounds:
        """Build from a manifest-style ``[west, north, east, south]`` sequence."""
        west, north, east, south = (float(v) for v in bbox)
        return cls(west=west, north=north, east=east, south=south)

    def as_bbox(self) -> tuple[float, float, float, float]:
        return self.west, self.north, self.east, self.south

    @property
    def width(self) -> float:
        return self.east - self.west

    @property
    def height(self) -> float:
        return self.north - self.south

    @property
    def center(self) -> tuple[float, float]:
        """(lat, lng) of the rectangle centre."""
        return (self.north + self.south) / 2, (self.west + self.east) / 2

    def is_finite(self) -> bool:
        return all(math.isfinite(v) for v in self.as_bbox())

    def is_degenerate(self) -> bool:
        return self.west >= self.east or self.south >= self.north

    def is_valid(self) -> bool:
        return self.is_finite() and not self.is_degenerate()

    def contains_point(self, lat: float, lng: float) -> bool:
        return self.west <= lng <= self.east and self.south <= lat <= self.north

    def intersects(self, other: GeoBounds) -> bool:
        # Closed intervals: touching edges count as overlap
        return (
            self.east >= other.west
            and self.west <= other.east
            and self.north >= other.south
            and self.south <= other.north
        )

    def overlap(self, other: GeoBounds) -> GeoBounds:
        """Intersection rectangle; may be degenerate when the two only touch."""
        return GeoBounds(
            west=max(self.west, other.west),
            north=min(self.north, other.north),
            east=min(self.east, other.east),
            south=max(self.south, other.south),
        )


@dataclass(frozen=True)
class HansenGrid:
    """Grid coordinates parsed from a Hansen file name (derived, not authoritative)."""

    lat: int
    lng: int
    lat_dir: Literal['N', 'S']
    lng_dir: Literal['E', 'W']


@dataclass(frozen=True)
class TileDescriptor:
    """One source raster tile: where to fetch it and what it covers."""

    locator: str
    bbox: GeoBounds
    kind: TileKind = TileKind.IMAGE
    filename: str | None = None
    grid: HansenGrid | None = None


@dataclass(frozen=True)
class OutputTileRequest:
    """One slippy-map cell to render."""

    zoom: int
    x: int
    y: int
    width: int = TILE_SIZE
    height: int = TILE_SIZE

    @property
    def key(self) -> str:
        return f'{self.zoom}/{self.x}/{self.y}'

    @property
    def geo_bounds(self) -> GeoBounds:
        from geo.projection import tile_bounds

        return tile_bounds(self.zoom, self.x, self.y)


class RendererSettings(BaseModel):
    """Runtime settings of the renderer, loadable from a TOML profile."""

    model_config = {
        'extra': 'ignore',
    }

    # Cache budget for decoded payloads (MB)
    cache_budget_mb: float = TILE_CACHE_MAX_SIZE_MB
    # Size assumed for an entry before it is decoded (MB)
    entry_size_estimate_mb: float = TILE_CACHE_ENTRY_ESTIMATE_MB
    # Account entries by decoded array size instead of the fixed estimate
    exact_entry_sizes: bool = True

    # Output tile edge (px)
    tile_size: int = TILE_SIZE
    # Deepest zoom accepted from callers
    max_zoom: int = MAX_ZOOM
    # Output tiles composited at once
    concurrency: int = RENDER_CONCURRENCY

    # Per-fetch timeout (seconds)
    fetch_timeout_s: float = HTTP_TIMEOUT_DEFAULT
    # Prefix for relative locators
    base_url: str | None = None
    http_cache_enabled: bool = HTTP_CACHE_ENABLED
    http_cache_dir: str | None = None

    log_level: str = 'INFO'

    @field_validator('cache_budget_mb', 'entry_size_estimate_mb', 'fetch_timeout_s')
    @classmethod
    def validate_positive(cls, v: float | str) -> float:
        fv = float(v)
        if not (fv > 0):
            msg = 'Value must be positive'
            raise ValueError(msg)
        return fv

    @field_validator('tile_size', 'concurrency')
    @classmethod
    def validate_positive_int(cls, v: int | str) -> int:
        iv = int(v)
        if iv < 1:
            msg = 'Value must be at least 1'
            raise ValueError(msg)
        return iv

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = str(v).upper()
        if level not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            msg = f'Unknown log level: {v}'
            raise ValueError(msg)
        return level

    @property
    def cache_budget_bytes(self) -> int:
        return int(self.cache_budget_mb * MB)

    @property
    def entry_size_estimate_bytes(self) -> int:
        return int(self.entry_size_estimate_mb * MB)
