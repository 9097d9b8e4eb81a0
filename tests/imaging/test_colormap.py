"""Tests for the loss-year colour map."""

import numpy as np
import pytest

from imaging.colormap import ColorMap, build_color_lut, loss_year_color, year_for_value
from shared.constants import NODATA_COLOR, TRANSPARENT_COLOR


class TestLossYearColor:
    @pytest.mark.parametrize(
        ('value', 'expected'),
        [
            (0, (0, 0, 0, 0)),
            (1, (255, 255, 10, 255)),
            (5, (255, 165, 0, 255)),
            (7, (255, 201, 0, 255)),
            (10, (255, 50, 0, 255)),
            (12, (255, 96, 0, 255)),
            (15, (255, 0, 0, 255)),
            (20, (255, 0, 0, 255)),
            (21, (255, 25, 25, 255)),
            (22, (255, 50, 50, 255)),
            (23, (0, 230, 230, 255)),
            (24, (0, 255, 255, 255)),
            (100, (0, 255, 255, 255)),
            (255, (100, 100, 100, 128)),
        ],
    )
    def test_fixed_points(self, value, expected):
        assert loss_year_color(value) == expected

    def test_out_of_range_clamped(self):
        assert loss_year_color(-5) == TRANSPARENT_COLOR
        assert loss_year_color(300) == NODATA_COLOR

    def test_fractional_value_interpolates(self):
        assert loss_year_color(23.5) == (0, 242, 242, 255)


class TestYearForValue:
    def test_years(self):
        assert year_for_value(1) == 2001
        assert year_for_value(24) == 2024

    def test_no_year(self):
        assert year_for_value(0) is None
        assert year_for_value(255) is None


class TestColorMap:
    def test_lut_shape(self):
        lut = build_color_lut()
        assert lut.shape == (256, 4)
        assert lut.dtype == np.uint8

    def test_lut_matches_function(self):
        lut = ColorMap().lut
        for value in (0, 3, 11, 19, 22, 24, 200, 255):
            assert tuple(int(c) for c in lut[value]) == loss_year_color(value)

    def test_lut_is_read_only(self):
        with pytest.raises(ValueError):
            ColorMap().lut[0, 0] = 1

    def test_color_for_floors_and_clamps(self):
        cmap = ColorMap()
        assert cmap.color_for(5.9) == loss_year_color(5)
        assert cmap.color_for(-3) == TRANSPARENT_COLOR
        assert cmap.color_for(1000) == NODATA_COLOR

    def test_apply(self):
        values = np.array([[0, 24], [255, 1]], dtype=np.uint8)
        rgba = ColorMap().apply(values)
        assert rgba.shape == (2, 2, 4)
        assert tuple(rgba[0, 1]) == (0, 255, 255, 255)
        assert rgba[0, 0, 3] == 0

    def test_apply_clips_wide_types(self):
        values = np.array([-1, 300], dtype=np.int32)
        rgba = ColorMap().apply(values)
        assert tuple(rgba[0]) == TRANSPARENT_COLOR
        assert tuple(rgba[1]) == NODATA_COLOR
