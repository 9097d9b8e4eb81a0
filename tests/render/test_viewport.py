"""Tests for the viewport renderer and mosaic assembly."""

from __future__ import annotations

import asyncio

import pytest
from PIL import Image

from domain.errors import InvalidGeometryError
from domain.models import GeoBounds, RendererSettings, TileDescriptor
from geo.tile_index import TileIndex
from imaging.composer import assemble_mosaic
from render.compositor import TileCompositor
from render.viewport import Viewport, ViewportRenderer
from shared.constants import MB
from tiles.cache import TileCache

RED = (255, 0, 0, 255)


class SlowSource:
    """Counts fetches and answers after a delay."""

    def __init__(self, data: bytes, delay: float = 0.0):
        self.data = data
        self.delay = delay
        self.calls = 0

    async def fetch(self, locator: str) -> bytes:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.data


def _renderer(source: SlowSource, **kwargs) -> ViewportRenderer:
    index = TileIndex(
        [TileDescriptor(locator='X', bbox=GeoBounds.from_bbox([-10, 10, 0, 0]))]
    )
    cache = TileCache(source.fetch, budget_bytes=10 * MB, entry_size_estimate=1024)
    return ViewportRenderer(TileCompositor(index, cache), **kwargs)


class TestViewportRenderer:
    @pytest.mark.asyncio
    async def test_renders_all_visible_cells(self, png_bytes):
        source = SlowSource(png_bytes(RED))
        renderer = _renderer(source)
        viewport = Viewport.from_corners(-10.0, 0.0, 0.0, 10.0, zoom=2)

        frame = await renderer.render(viewport)

        assert frame is not None
        assert set(frame.buffers) == set(viewport.cells())
        assert (frame.cols, frame.rows) == (2, 2)
        assert source.calls == 1

    @pytest.mark.asyncio
    async def test_mosaic_is_cropped_to_viewport(self, png_bytes):
        renderer = _renderer(SlowSource(png_bytes(RED)))
        frame = await renderer.render(Viewport.from_corners(-10.0, 0.0, 0.0, 10.0, zoom=2))

        mosaic = frame.mosaic()

        _, _, w, h = frame.crop_rect()
        assert mosaic.mode == 'RGBA'
        assert mosaic.size == (w, h)
        assert mosaic.getpixel((w // 2, h // 2)) == RED

    @pytest.mark.asyncio
    async def test_uncropped_mosaic_covers_all_cells(self, png_bytes):
        renderer = _renderer(SlowSource(png_bytes(RED)), tile_size=64)
        frame = await renderer.render(Viewport.from_corners(-10.0, 0.0, 0.0, 10.0, zoom=2))

        assert frame.mosaic(crop=False).size == (128, 128)

    @pytest.mark.asyncio
    async def test_newer_render_supersedes_older(self, png_bytes):
        """The older frame is dropped; its fetch still feeds the newer one."""
        source = SlowSource(png_bytes(RED), delay=0.05)
        renderer = _renderer(source)
        viewport = Viewport.from_corners(-10.0, 0.0, 0.0, 10.0, zoom=2)

        first = asyncio.create_task(renderer.render(viewport))
        await asyncio.sleep(0.01)
        second = await renderer.render(viewport)

        assert await first is None
        assert second is not None
        assert second.generation == renderer.generation
        assert source.calls == 1

    @pytest.mark.asyncio
    async def test_supersede_drops_frame(self, png_bytes):
        source = SlowSource(png_bytes(RED), delay=0.05)
        renderer = _renderer(source)

        task = asyncio.create_task(
            renderer.render(Viewport.from_corners(-10.0, 0.0, 0.0, 10.0, zoom=2))
        )
        await asyncio.sleep(0.01)
        renderer.supersede()

        assert await task is None

    @pytest.mark.asyncio
    async def test_rejects_bad_zoom(self, png_bytes):
        renderer = _renderer(SlowSource(png_bytes(RED)), max_zoom=5)
        with pytest.raises(ValueError):
            await renderer.render(Viewport.from_corners(-10.0, 0.0, 0.0, 10.0, zoom=6))

    @pytest.mark.asyncio
    async def test_rejects_empty_bounds(self, png_bytes):
        renderer = _renderer(SlowSource(png_bytes(RED)))
        with pytest.raises(InvalidGeometryError):
            await renderer.render(Viewport.from_corners(0.0, 0.0, 0.0, 10.0, zoom=2))

    def test_from_settings(self, png_bytes):
        settings = RendererSettings(tile_size=512, concurrency=2, max_zoom=10)
        compositor = _renderer(SlowSource(png_bytes(RED))).compositor
        renderer = ViewportRenderer.from_settings(compositor, settings)
        assert (renderer.tile_size, renderer.concurrency, renderer.max_zoom) == (512, 2, 10)


class TestAssembleMosaic:
    def test_crop_across_tiles(self):
        left = Image.new('RGBA', (2, 2), (255, 0, 0, 255))
        right = Image.new('RGBA', (2, 2), (0, 0, 255, 255))

        result = assemble_mosaic([left, right], 2, 1, 2, (1, 0, 2, 2))

        assert result.size == (2, 2)
        assert result.getpixel((0, 0)) == (255, 0, 0, 255)
        assert result.getpixel((1, 1)) == (0, 0, 255, 255)

    def test_missing_tile_is_transparent(self):
        tile = Image.new('RGBA', (2, 2), (255, 0, 0, 255))

        result = assemble_mosaic([tile, None], 2, 1, 2)

        assert result.size == (4, 2)
        assert result.getpixel((3, 0)) == (0, 0, 0, 0)

    def test_count_mismatch(self):
        with pytest.raises(ValueError):
            assemble_mosaic([], 1, 1, 256)
