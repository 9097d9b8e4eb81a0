"""Per-output-tile compositing of source rasters."""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np
from PIL import Image

from geo.projection import Projector
from imaging.colormap import ColorMap
from shared.constants import RenderState
from tiles.payload import ImagePayload, ScalarRasterPayload

if TYPE_CHECKING:
    from collections.abc import Callable

    from domain.models import GeoBounds, OutputTileRequest, TileDescriptor
    from geo.tile_index import TileIndex
    from tiles.cache import TileCache

    StateCallback = Callable[[OutputTileRequest, RenderState], None]

logger = logging.getLogger(__name__)


@dataclass
class PixelBuffer:
    """RGBA pixels of one output tile and their geographic placement."""

    pixels: np.ndarray
    bounds: GeoBounds

    @classmethod
    def transparent(cls, width: int, height: int, bounds: GeoBounds) -> PixelBuffer:
        return cls(pixels=np.zeros((height, width, 4), dtype=np.uint8), bounds=bounds)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def is_empty(self) -> bool:
        return not bool(self.pixels[..., 3].any())

    def to_image(self) -> Image.Image:
        return Image.fromarray(self.pixels)


def _pixel_centers(lo: float, hi: float, size: int) -> np.ndarray:
    """Indices of pixels whose centres fall in [lo, hi), clipped to [0, size)."""
    start = max(0, math.ceil(lo - 0.5))
    stop = min(size, math.ceil(hi - 0.5))
    return np.arange(start, stop, dtype=np.int64)


def paint_scalar_raster(
    dest: np.ndarray,
    bounds: GeoBounds,
    src_bounds: GeoBounds,
    overlap: GeoBounds,
    values: np.ndarray,
    lut: np.ndarray,
) -> bool:
    """
    Nearest-neighbour resample of a loss-year raster through the colour LUT.

    Each destination pixel whose centre lies in the overlap takes the source
    pixel under that centre; centres mapping outside the source stay
    untouched. Returns False when no destination pixel is covered.
    """
    height, width = dest.shape[:2]
    src_h, src_w = values.shape

    cols = _pixel_centers(
        (overlap.west - bounds.west) / bounds.width * width,
        (overlap.east - bounds.west) / bounds.width * width,
        width,
    )
    rows = _pixel_centers(
        (bounds.north - overlap.north) / bounds.height * height,
        (bounds.north - overlap.south) / bounds.height * height,
        height,
    )
    if cols.size == 0 or rows.size == 0:
        return False

    lng = bounds.west + (cols + 0.5) * (bounds.width / width)
    lat = bounds.north - (rows + 0.5) * (bounds.height / height)
    src_cols = np.floor((lng - src_bounds.west) / src_bounds.width * src_w).astype(np.int64)
    src_rows = np.floor((src_bounds.north - lat) / src_bounds.height * src_h).astype(np.int64)

    col_ok = (src_cols >= 0) & (src_cols < src_w)
    row_ok = (src_rows >= 0) & (src_rows < src_h)
    cols, src_cols = cols[col_ok], src_cols[col_ok]
    rows, src_rows = rows[row_ok], src_rows[row_ok]
    if cols.size == 0 or rows.size == 0:
        return False

    dest[np.ix_(rows, cols)] = lut[values[np.ix_(src_rows, src_cols)]]
    return True


def paint_image(
    dest: np.ndarray,
    bounds: GeoBounds,
    src_bounds: GeoBounds,
    overlap: GeoBounds,
    pixels: np.ndarray,
) -> bool:
    """
    Scaled copy of the overlapping part of a pre-coloured image.

    The destination rectangle is snapped to whole pixels and the source box
    is derived from the snapped edges. Returns False when the snapped
    rectangle or the source box is empty.
    """
    height, width = dest.shape[:2]
    src_h, src_w = pixels.shape[:2]

    x0 = max(0, round((overlap.west - bounds.west) / bounds.width * width))
    x1 = min(width, round((overlap.east - bounds.west) / bounds.width * width))
    y0 = max(0, round((bounds.north - overlap.north) / bounds.height * height))
    y1 = min(height, round((bounds.north - overlap.south) / bounds.height * height))
    if x1 <= x0 or y1 <= y0:
        return False

    def src_x(px: int) -> float:
        lng = bounds.west + px / width * bounds.width
        return min(max((lng - src_bounds.west) / src_bounds.width * src_w, 0.0), src_w)

    def src_y(py: int) -> float:
        lat = bounds.north - py / height * bounds.height
        return min(max((src_bounds.north - lat) / src_bounds.height * src_h, 0.0), src_h)

    box = (src_x(x0), src_y(y0), src_x(x1), src_y(y1))
    if box[2] <= box[0] or box[3] <= box[1]:
        return False

    with Image.fromarray(pixels) as img:
        patch = img.resize(
            (x1 - x0, y1 - y0), resample=Image.Resampling.NEAREST, box=box
        )
    dest[y0:y1, x0:x1] = np.asarray(patch.convert('RGBA'), dtype=np.uint8)
    return True


class TileCompositor:
    """Builds output tiles from the source tiles that intersect them.

    Usage:
        compositor = TileCompositor(index, cache)
        buffer = await compositor.composite(OutputTileRequest(zoom=5, x=9, y=15))
    """

    def __init__(
        self,
        index: TileIndex,
        cache: TileCache,
        *,
        colormap: ColorMap | None = None,
        projector: Projector | None = None,
    ) -> None:
        self.index = index
        self.cache = cache
        self.colormap = colormap or ColorMap()
        self.projector = projector or Projector()

    def candidates(self, bounds: GeoBounds) -> list[tuple[TileDescriptor, GeoBounds]]:
        """Descriptors overlapping bounds with a non-empty overlap rectangle."""
        out = []
        for descriptor in self.index.range_query(bounds):
            overlap = descriptor.bbox.overlap(bounds)
            if overlap.is_degenerate():
                continue
            out.append((descriptor, overlap))
        return out

    async def composite(
        self,
        request: OutputTileRequest,
        on_state: StateCallback | None = None,
    ) -> PixelBuffer:
        """
        Render one output tile.

        Areas without coverage and tiles that fail to load are left
        transparent; a partially filled buffer is a valid result.
        """

        def notify(state: RenderState) -> None:
            logger.debug('Tile %s: %s', request.key, state.value)
            if on_state is not None:
                on_state(request, state)

        notify(RenderState.REQUESTED)
        bounds = self.projector.tile_bounds(request.zoom, request.x, request.y)
        buffer = PixelBuffer.transparent(request.width, request.height, bounds)

        notify(RenderState.RESOLVING)
        candidates = self.candidates(bounds)
        if not candidates:
            notify(RenderState.READY)
            return buffer

        notify(RenderState.LOADING)
        compositing = False

        async def contribute(descriptor: TileDescriptor, overlap: GeoBounds) -> None:
            nonlocal compositing
            async with self.cache.borrow(descriptor) as payload:
                if payload is None:
                    return
                if not compositing:
                    compositing = True
                    notify(RenderState.COMPOSITING)
                painted = self._paint(buffer, descriptor, overlap, payload)
                if not painted:
                    logger.debug(
                        'Tile %s: empty pixel mapping for %s',
                        request.key,
                        descriptor.locator,
                    )

        await asyncio.gather(*(contribute(d, ov) for d, ov in candidates))
        notify(RenderState.READY)
        return buffer

    def _paint(
        self,
        buffer: PixelBuffer,
        descriptor: TileDescriptor,
        overlap: GeoBounds,
        payload: ImagePayload | ScalarRasterPayload,
    ) -> bool:
        if isinstance(payload, ScalarRasterPayload):
            return paint_scalar_raster(
                buffer.pixels,
                buffer.bounds,
                descriptor.bbox,
                overlap,
                payload.values,
                self.colormap.lut,
            )
        return paint_image(
            buffer.pixels, buffer.bounds, descriptor.bbox, overlap, payload.pixels
        )
