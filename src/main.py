"""Command line entry point for the forest-loss tile renderer."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from domain.models import GeoBounds, OutputTileRequest, RendererSettings
from geo.manifest import load_index
from geo.tile_index import TileIndex
from infrastructure.http import (
    cleanup_sqlite_cache,
    make_http_session,
    resolve_cache_dir,
)
from render.compositor import TileCompositor
from render.viewport import Viewport, ViewportRenderer
from settings import load_settings
from shared.constants import LOG_FORMAT
from shared.diagnostics import (
    get_http_cache_info,
    log_cache_stats,
    log_memory_usage,
    log_thread_status,
)
from tiles.cache import TileCache
from tiles.fetcher import TileSource

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2


def setup_logging(level: str = 'INFO', log_file: Path | None = None) -> None:
    """Log to stdout and, optionally, to a file."""
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(str(log_file), encoding='utf-8'))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )


def parse_tile_key(value: str) -> tuple[int, int, int]:
    """'Z/X/Y' -> (zoom, x, y)."""
    parts = value.strip().split('/')
    if len(parts) != 3:
        msg = f'Expected Z/X/Y, got {value!r}'
        raise argparse.ArgumentTypeError(msg)
    try:
        zoom, x, y = (int(p) for p in parts)
    except ValueError as e:
        msg = f'Tile key parts must be integers: {value!r}'
        raise argparse.ArgumentTypeError(msg) from e
    if zoom < 0 or not (0 <= x < 2**zoom and 0 <= y < 2**zoom):
        msg = f'Tile {value} is outside the grid'
        raise argparse.ArgumentTypeError(msg)
    return zoom, x, y


def parse_bbox(value: str) -> GeoBounds:
    """'W,S,E,N' in degrees -> GeoBounds."""
    parts = value.split(',')
    if len(parts) != 4:
        msg = f'Expected W,S,E,N, got {value!r}'
        raise argparse.ArgumentTypeError(msg)
    try:
        west, south, east, north = (float(p) for p in parts)
    except ValueError as e:
        msg = f'Bounding box values must be numbers: {value!r}'
        raise argparse.ArgumentTypeError(msg) from e
    bounds = GeoBounds(west=west, north=north, east=east, south=south)
    if not bounds.is_valid():
        msg = f'Empty or non-finite bounding box: {value!r}'
        raise argparse.ArgumentTypeError(msg)
    return bounds


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='forest-loss-render',
        description='Render forest-loss source tiles onto slippy-map tiles',
    )
    parser.add_argument(
        '--manifest',
        type=Path,
        required=True,
        help='Tile manifest: JSON list, {"files": [...]} or newline list',
    )
    parser.add_argument('--settings', type=Path, help='TOML settings profile')
    parser.add_argument('--output', type=Path, help='Output PNG path')
    parser.add_argument('--log-file', type=Path, help='Also write the log here')
    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Overrides the level from settings',
    )

    sub = parser.add_subparsers(dest='command', required=True)
    tile = sub.add_parser('tile', help='Render one output tile')
    tile.add_argument('key', type=parse_tile_key, metavar='Z/X/Y')

    viewport = sub.add_parser('viewport', help='Render a viewport mosaic')
    viewport.add_argument(
        '--bbox', type=parse_bbox, required=True, metavar='W,S,E,N'
    )
    viewport.add_argument('--zoom', type=int, required=True)
    return parser


def default_output(args: argparse.Namespace) -> Path:
    if args.command == 'tile':
        zoom, x, y = args.key
        return Path(f'tile_{zoom}_{x}_{y}.png')
    return Path(f'viewport_z{args.zoom}.png')


async def render(
    args: argparse.Namespace, settings: RendererSettings, index: TileIndex
) -> Path:
    """Render the requested tile or viewport and save it as PNG."""
    cache_dir = (
        resolve_cache_dir(settings.http_cache_dir)
        if settings.http_cache_enabled
        else None
    )
    session = make_http_session(cache_dir)
    try:
        source = TileSource.from_settings(settings, session)
        cache = TileCache.from_settings(source.fetch, settings)
        compositor = TileCompositor(index, cache)

        if args.command == 'tile':
            zoom, x, y = args.key
            request = OutputTileRequest(
                zoom=zoom,
                x=x,
                y=y,
                width=settings.tile_size,
                height=settings.tile_size,
            )
            image = (await compositor.composite(request)).to_image()
        else:
            renderer = ViewportRenderer.from_settings(compositor, settings)
            frame = await renderer.render(Viewport(args.bbox, args.zoom))
            if frame is None:
                msg = 'Viewport render was superseded'
                raise RuntimeError(msg)
            image = frame.mosaic()

        output = args.output or default_output(args)
        output.parent.mkdir(parents=True, exist_ok=True)
        image.save(output, format='PNG')
        logger.info('Saved %dx%d image to %s', image.width, image.height, output)
        log_cache_stats(cache.stats(), 'after render')
        logger.info('Source fetches: %s', source.stats)
        return output
    finally:
        await session.close()
        if cache_dir is not None:
            cleanup_sqlite_cache(cache_dir)
            logger.debug('HTTP cache: %s', get_http_cache_info(cache_dir))


def main(argv: list[str] | None = None) -> int:
    """Main application entry point."""
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings(args.settings)
    except (OSError, ValueError) as e:
        setup_logging('ERROR', args.log_file)
        logger.error('Cannot load settings: %s', e)
        return EXIT_USAGE

    setup_logging(args.log_level or settings.log_level, args.log_file)
    logger.info('Starting forest-loss renderer: %s', args.command)
    log_memory_usage('startup')

    if args.command == 'tile':
        zoom = args.key[0]
    else:
        zoom = args.zoom
    if not 0 <= zoom <= settings.max_zoom:
        logger.error('Zoom must be within 0..%d, got %d', settings.max_zoom, zoom)
        return EXIT_USAGE

    try:
        index = load_index(args.manifest, settings.base_url)
    except (OSError, ValueError) as e:
        logger.error('Cannot load manifest %s: %s', args.manifest, e)
        return EXIT_USAGE

    try:
        asyncio.run(render(args, settings, index))
    except Exception as e:
        logger.error('Render failed: %s', e, exc_info=True)
        return EXIT_FAILURE

    log_memory_usage('finished')
    log_thread_status('finished')
    return EXIT_OK


if __name__ == '__main__':
    sys.exit(main())
