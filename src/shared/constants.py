from enum import Enum

# Earth radius for spherical (Web) Mercator, metres
EARTH_RADIUS_M = 6378137.0

# Latitude limit of the Mercator projection (degrees)
MERCATOR_MAX_LAT_DEG = 85.05112878

# Span of the world in longitude (degrees)
WORLD_LNG_SPAN_DEG = 360.0
WORLD_LNG_HALF_SPAN_DEG = 180.0

# Output tile edge in pixels
TILE_SIZE = 256

# Maximum slippy-map zoom accepted by the renderer
MAX_ZOOM = 22

# Source tile edge in degrees (Hansen Global Forest Change grid)
SOURCE_TILE_SPAN_DEG = 10

# Cache budget and per-entry size estimate (MB)
TILE_CACHE_MAX_SIZE_MB = 200
TILE_CACHE_ENTRY_ESTIMATE_MB = 10

# Number of output tiles composited concurrently
RENDER_CONCURRENCY = 8

# HTTP
HTTP_TIMEOUT_DEFAULT = 30.0
HTTP_OK = 200
HTTP_CACHE_DIR = '.cache/forest_loss'
HTTP_CACHE_ENABLED = False
HTTP_CACHE_EXPIRE_HOURS = 24 * 7
HTTP_CACHE_RESPECT_HEADERS = True
HTTP_CACHE_STALE_IF_ERROR_HOURS = 24

# Loss-year pixel values
LOSS_NONE_VALUE = 0
LOSS_NODATA_VALUE = 255
LOSS_BASE_YEAR = 2000
LOSS_LAST_YEAR_VALUE = 24

# Colour of water / no-data pixels (RGBA)
NODATA_COLOR = (100, 100, 100, 128)

# Fully transparent pixel (RGBA)
TRANSPARENT_COLOR = (0, 0, 0, 0)

# File suffixes decoded as single-band rasters
SCALAR_RASTER_SUFFIXES = ('.tif', '.tiff')

# Log line format
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

MB = 1024 * 1024


class TileKind(str, Enum):
    IMAGE = 'image'
    SCALAR_RASTER = 'scalar_raster'


class RenderState(str, Enum):
    REQUESTED = 'requested'
    RESOLVING = 'resolving'
    LOADING = 'loading'
    COMPOSITING = 'compositing'
    READY = 'ready'
