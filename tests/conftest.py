"""Pytest configuration and fixtures for forest-loss renderer tests."""

import sys
from io import BytesIO
from pathlib import Path

import numpy as np
import pytest
from PIL import Image

# Add src directory to path for imports
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))


@pytest.fixture
def png_bytes():
    """Factory: solid-colour RGBA PNG encoded to bytes."""

    def _make(color=(255, 0, 0, 255), size=(2, 2)) -> bytes:
        buf = BytesIO()
        Image.new('RGBA', size, color).save(buf, format='PNG')
        return buf.getvalue()

    return _make


@pytest.fixture
def geotiff_bytes(tmp_path):
    """Factory: single-band uint8 GeoTIFF of the given values, as bytes."""
    import rasterio
    from rasterio.transform import from_bounds

    counter = {'n': 0}

    def _make(values, bbox=(0.0, 10.0, 10.0, 0.0)) -> bytes:
        values = np.asarray(values, dtype=np.uint8)
        height, width = values.shape
        west, north, east, south = bbox
        counter['n'] += 1
        path = tmp_path / f'raster_{counter["n"]}.tif'
        with rasterio.open(
            path,
            'w',
            driver='GTiff',
            height=height,
            width=width,
            count=1,
            dtype='uint8',
            crs='EPSG:4326',
            transform=from_bounds(west, south, east, north, width, height),
        ) as dst:
            dst.write(values, 1)
        return path.read_bytes()

    return _make
