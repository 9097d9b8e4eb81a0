"""Loss-year colour map for forest-loss rasters."""

from __future__ import annotations

import math

import numpy as np

from shared.constants import (
    LOSS_BASE_YEAR,
    LOSS_LAST_YEAR_VALUE,
    LOSS_NODATA_VALUE,
    LOSS_NONE_VALUE,
    NODATA_COLOR,
    TRANSPARENT_COLOR,
)

RGBA = tuple[int, int, int, int]

_OPAQUE = 255


def lerp(a: float, b: float, t: float) -> float:
    """Linear interpolation between a and b."""
    return a + (b - a) * t


def _ramp(
    value: float,
    start: float,
    span: float,
    c0: tuple[int, int, int],
    c1: tuple[int, int, int],
) -> tuple[int, int, int]:
    t = (value - start) / span
    r, g, b = (math.floor(lerp(a, z, t)) for a, z in zip(c0, c1))
    return r, g, b


def loss_year_color(value: float) -> RGBA:
    """
    Colour for a raw loss-year pixel value.

    0 = no loss (transparent), 255 = water / no data (grey),
    1..24 = loss in 2001..2024 on a yellow -> orange -> red -> cyan ramp.
    Values outside 0..255 are clamped.
    """
    value = min(max(value, 0), 255)
    if value == LOSS_NONE_VALUE:
        return TRANSPARENT_COLOR
    if value == LOSS_NODATA_VALUE:
        return NODATA_COLOR

    if value >= LOSS_LAST_YEAR_VALUE:
        rgb = (0, 255, 255)
    elif value >= 23:
        rgb = _ramp(value, 23, 1, (0, 230, 230), (0, 255, 255))
    elif value >= 22:
        rgb = _ramp(value, 22, 1, (255, 50, 50), (0, 230, 230))
    elif value >= 20:
        rgb = _ramp(value, 20, 2, (255, 0, 0), (255, 50, 50))
    elif value >= 15:
        rgb = _ramp(value, 15, 5, (255, 0, 0), (255, 50, 0))
    elif value >= 10:
        rgb = _ramp(value, 10, 5, (255, 50, 0), (255, 165, 0))
    elif value >= 5:
        rgb = _ramp(value, 5, 5, (255, 165, 0), (255, 255, 0))
    else:
        # Yellow with a slight blue tint per year
        rgb = (255, 255, math.floor(value * 10))
    return (*rgb, _OPAQUE)


def year_for_value(value: int) -> int | None:
    """Calendar year of loss for a pixel value, None for no-loss / no-data."""
    if value in (LOSS_NONE_VALUE, LOSS_NODATA_VALUE):
        return None
    return LOSS_BASE_YEAR + int(value)


def build_color_lut() -> np.ndarray:
    """256x4 uint8 RGBA lookup table indexed by pixel value."""
    return np.array([loss_year_color(i) for i in range(256)], dtype=np.uint8)


class ColorMap:
    """Loss-year colours via a LUT built once per instance."""

    def __init__(self) -> None:
        self._lut = build_color_lut()
        self._lut.setflags(write=False)

    def color_for(self, value: float) -> RGBA:
        idx = int(min(max(math.floor(value), 0), 255))
        r, g, b, a = (int(c) for c in self._lut[idx])
        return r, g, b, a

    def apply(self, values: np.ndarray) -> np.ndarray:
        """Map an array of pixel values to an (..., 4) uint8 RGBA array."""
        if values.dtype != np.uint8:
            values = np.clip(values, 0, 255).astype(np.uint8)
        return self._lut[values]

    @property
    def lut(self) -> np.ndarray:
        """Access the underlying LUT as numpy array."""
        return self._lut
