"""Geo module - projection, slippy-grid geometry and the source tile index."""

from geo.manifest import (
    build_index,
    descriptors_from_records,
    load_index,
    parse_tile_filename,
    read_manifest,
)
from geo.projection import (
    Projector,
    latlng_to_tile,
    tile_bounds,
    tiles_for_bounds,
)
from geo.tile_index import TileIndex

__all__ = [
    'Projector',
    'TileIndex',
    'build_index',
    'descriptors_from_records',
    'latlng_to_tile',
    'load_index',
    'parse_tile_filename',
    'read_manifest',
    'tile_bounds',
    'tiles_for_bounds',
]
