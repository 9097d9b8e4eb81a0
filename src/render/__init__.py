# Tile rendering
from render.compositor import (
    PixelBuffer,
    TileCompositor,
    paint_image,
    paint_scalar_raster,
)
from render.viewport import Viewport, ViewportFrame, ViewportRenderer

__all__ = [
    'PixelBuffer',
    'TileCompositor',
    'Viewport',
    'ViewportFrame',
    'ViewportRenderer',
    'paint_image',
    'paint_scalar_raster',
]
