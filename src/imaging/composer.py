"""Image composition utilities - tile assembly and cropping."""

import logging

from PIL import Image

logger = logging.getLogger(__name__)


def assemble_mosaic(
    images: list[Image.Image | None],
    tiles_x: int,
    tiles_y: int,
    tile_px: int,
    crop_rect: tuple[int, int, int, int] | None = None,
) -> Image.Image:
    """
    Paste row-major output tiles into one RGBA image.

    Only the parts of each tile that intersect crop_rect (x, y, w, h on the
    full tiles_x * tile_px canvas) are copied. Missing tiles (None) leave a
    transparent hole.
    """
    if crop_rect is None:
        crop_rect = (0, 0, tiles_x * tile_px, tiles_y * tile_px)
    crop_x, crop_y, crop_w, crop_h = crop_rect
    if len(images) != tiles_x * tiles_y:
        msg = f'Expected {tiles_x * tiles_y} tiles, got {len(images)}'
        raise ValueError(msg)

    result = Image.new('RGBA', (max(crop_w, 0), max(crop_h, 0)), (0, 0, 0, 0))

    for idx, img in enumerate(images):
        if img is None:
            continue
        j, i = divmod(idx, tiles_x)
        if img.size != (tile_px, tile_px):
            img = img.resize((tile_px, tile_px), Image.Resampling.NEAREST)

        tile_x0 = i * tile_px
        tile_y0 = j * tile_px

        inter_x0 = max(tile_x0, crop_x)
        inter_y0 = max(tile_y0, crop_y)
        inter_x1 = min(tile_x0 + tile_px, crop_x + crop_w)
        inter_y1 = min(tile_y0 + tile_px, crop_y + crop_h)
        if inter_x0 >= inter_x1 or inter_y0 >= inter_y1:
            continue

        tile_crop = img.crop(
            (
                inter_x0 - tile_x0,
                inter_y0 - tile_y0,
                inter_x1 - tile_x0,
                inter_y1 - tile_y0,
            )
        )
        result.paste(tile_crop, (inter_x0 - crop_x, inter_y0 - crop_y))
        tile_crop.close()

    logger.debug(
        'Assembled %dx%d tiles into %dx%d mosaic',
        tiles_x,
        tiles_y,
        result.width,
        result.height,
    )
    return result
