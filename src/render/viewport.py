"""Display-surface side: render every grid cell of a viewport."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from domain.errors import InvalidGeometryError
from domain.models import GeoBounds, OutputTileRequest
from geo.projection import latlng_to_tile_fraction, tiles_for_bounds
from imaging.composer import assemble_mosaic
from shared.constants import MAX_ZOOM, RENDER_CONCURRENCY, TILE_SIZE

if TYPE_CHECKING:
    from PIL import Image

    from domain.models import RendererSettings
    from render.compositor import PixelBuffer, StateCallback, TileCompositor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Viewport:
    """Visible geographic area at a zoom level."""

    bounds: GeoBounds
    zoom: int

    @classmethod
    def from_corners(
        cls, west: float, south: float, east: float, north: float, zoom: int
    ) -> Viewport:
        return cls(GeoBounds(west=west, north=north, east=east, south=south), zoom)

    def cells(self) -> list[tuple[int, int]]:
        return tiles_for_bounds(self.bounds, self.zoom)


@dataclass
class ViewportFrame:
    """Output tiles of one viewport render, keyed by (x, y)."""

    viewport: Viewport
    tile_size: int
    generation: int
    buffers: dict[tuple[int, int], PixelBuffer] = field(default_factory=dict)

    @property
    def x_range(self) -> tuple[int, int]:
        xs = [x for x, _ in self.buffers]
        return min(xs), max(xs)

    @property
    def y_range(self) -> tuple[int, int]:
        ys = [y for _, y in self.buffers]
        return min(ys), max(ys)

    @property
    def cols(self) -> int:
        x0, x1 = self.x_range
        return x1 - x0 + 1

    @property
    def rows(self) -> int:
        y0, y1 = self.y_range
        return y1 - y0 + 1

    def crop_rect(self) -> tuple[int, int, int, int]:
        """Viewport bounds in pixels of the cell canvas, as (x, y, w, h)."""
        x0, _ = self.x_range
        y0, _ = self.y_range
        b = self.viewport.bounds
        fx0, fy0 = latlng_to_tile_fraction(b.north, b.west, self.viewport.zoom)
        fx1, fy1 = latlng_to_tile_fraction(b.south, b.east, self.viewport.zoom)
        canvas_w = self.cols * self.tile_size
        canvas_h = self.rows * self.tile_size
        px0 = min(max(round((fx0 - x0) * self.tile_size), 0), canvas_w)
        py0 = min(max(round((fy0 - y0) * self.tile_size), 0), canvas_h)
        px1 = min(max(round((fx1 - x0) * self.tile_size), 0), canvas_w)
        py1 = min(max(round((fy1 - y0) * self.tile_size), 0), canvas_h)
        return px0, py0, px1 - px0, py1 - py0

    def mosaic(self, *, crop: bool = True) -> Image.Image:
        """Assemble the buffers into one RGBA image, cropped to the viewport."""
        x0, x1 = self.x_range
        y0, y1 = self.y_range
        images = []
        for ty in range(y0, y1 + 1):
            for tx in range(x0, x1 + 1):
                buffer = self.buffers.get((tx, ty))
                images.append(buffer.to_image() if buffer is not None else None)
        return assemble_mosaic(
            images,
            self.cols,
            self.rows,
            self.tile_size,
            self.crop_rect() if crop else None,
        )


class ViewportRenderer:
    """Composites the visible cells of successive viewport states.

    Only the latest render counts: when a newer render starts, the older one
    returns None. Loads it already started still complete into the cache.
    """

    def __init__(
        self,
        compositor: TileCompositor,
        *,
        tile_size: int = TILE_SIZE,
        concurrency: int = RENDER_CONCURRENCY,
        max_zoom: int = MAX_ZOOM,
    ) -> None:
        self.compositor = compositor
        self.tile_size = tile_size
        self.concurrency = max(1, concurrency)
        self.max_zoom = max_zoom
        self._generation = 0

    @classmethod
    def from_settings(
        cls, compositor: TileCompositor, settings: RendererSettings
    ) -> ViewportRenderer:
        return cls(
            compositor,
            tile_size=settings.tile_size,
            concurrency=settings.concurrency,
            max_zoom=settings.max_zoom,
        )

    @property
    def generation(self) -> int:
        return self._generation

    def supersede(self) -> None:
        """Stop caring about any render in progress."""
        self._generation += 1

    async def render(
        self,
        viewport: Viewport,
        on_state: StateCallback | None = None,
    ) -> ViewportFrame | None:
        """
        Render all cells of the viewport.

        Returns:
            The frame, or None when a newer render superseded this one.

        Raises:
            InvalidGeometryError: non-finite or empty viewport bounds.
            ValueError: zoom outside 0..max_zoom.
        """
        if not 0 <= viewport.zoom <= self.max_zoom:
            msg = f'Zoom must be within 0..{self.max_zoom}, got {viewport.zoom}'
            raise ValueError(msg)
        if not viewport.bounds.is_valid():
            msg = f'Invalid viewport bounds: {viewport.bounds}'
            raise InvalidGeometryError(msg)

        self._generation += 1
        generation = self._generation
        cells = viewport.cells()
        logger.info(
            'Rendering viewport z=%d: %d cells (generation %d)',
            viewport.zoom,
            len(cells),
            generation,
        )

        semaphore = asyncio.Semaphore(self.concurrency)

        async def render_cell(x: int, y: int) -> PixelBuffer | None:
            async with semaphore:
                if generation != self._generation:
                    return None
                request = OutputTileRequest(
                    zoom=viewport.zoom,
                    x=x,
                    y=y,
                    width=self.tile_size,
                    height=self.tile_size,
                )
                return await self.compositor.composite(request, on_state)

        results = await asyncio.gather(*(render_cell(x, y) for x, y in cells))

        if generation != self._generation:
            logger.info('Viewport render %d superseded; frame dropped', generation)
            return None

        frame = ViewportFrame(
            viewport=viewport, tile_size=self.tile_size, generation=generation
        )
        for (x, y), buffer in zip(cells, results):
            if buffer is not None:
                frame.buffers[(x, y)] = buffer
        return frame
