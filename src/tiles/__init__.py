"""Source tile loading and caching.

This module provides:
- TileCache: decoded payload store with LRU eviction and single-flight loads
- TileSource: raw byte transport (HTTP or local files)
- Payload types and decoders for image and scalar raster tiles
"""

from tiles.cache import CacheEntry, CacheStats, TileCache
from tiles.fetcher import TileSource
from tiles.payload import ImagePayload, Payload, ScalarRasterPayload, decode_payload

__all__ = [
    'CacheEntry',
    'CacheStats',
    'ImagePayload',
    'Payload',
    'ScalarRasterPayload',
    'TileCache',
    'TileSource',
    'decode_payload',
]
