"""Imaging package - colour mapping and mosaic assembly."""

from imaging.colormap import ColorMap, build_color_lut, loss_year_color, year_for_value
from imaging.composer import assemble_mosaic

__all__ = [
    'ColorMap',
    'assemble_mosaic',
    'build_color_lut',
    'loss_year_color',
    'year_for_value',
]
