"""Decoded tile payloads and the decoders that produce them."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from io import BytesIO

import numpy as np
from PIL import Image, UnidentifiedImageError
from rasterio.errors import RasterioError
from rasterio.io import MemoryFile

from domain.errors import DecodeFailure
from shared.constants import TileKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImagePayload:
    """Pre-coloured image tile, RGBA uint8 array of shape (H, W, 4)."""

    pixels: np.ndarray

    kind = TileKind.IMAGE

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def nbytes(self) -> int:
        return int(self.pixels.nbytes)


@dataclass(frozen=True)
class ScalarRasterPayload:
    """Single-band loss-year raster, uint8 array of shape (H, W)."""

    values: np.ndarray

    kind = TileKind.SCALAR_RASTER

    @property
    def width(self) -> int:
        return int(self.values.shape[1])

    @property
    def height(self) -> int:
        return int(self.values.shape[0])

    @property
    def nbytes(self) -> int:
        return int(self.values.nbytes)


Payload = ImagePayload | ScalarRasterPayload


def decode_image(locator: str, data: bytes) -> ImagePayload:
    """PNG / JPEG / WebP bytes -> RGBA array."""
    try:
        with Image.open(BytesIO(data)) as img:
            pixels = np.asarray(img.convert('RGBA'), dtype=np.uint8)
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise DecodeFailure(locator, f'Not a readable image: {e}') from e
    pixels.setflags(write=False)
    return ImagePayload(pixels=pixels)


def decode_scalar_raster(locator: str, data: bytes) -> ScalarRasterPayload:
    """GeoTIFF bytes -> first band as uint8 array."""
    try:
        with MemoryFile(data) as memfile, memfile.open() as src:
            band = src.read(1)
    except (RasterioError, OSError, ValueError, IndexError) as e:
        raise DecodeFailure(locator, f'Not a readable raster: {e}') from e
    if band.dtype != np.uint8:
        band = np.clip(band, 0, 255).astype(np.uint8)
    band.setflags(write=False)
    return ScalarRasterPayload(values=band)


def decode_payload(kind: TileKind, locator: str, data: bytes) -> Payload:
    """
    Decode fetched bytes according to the tile's declared kind.

    Raises:
        DecodeFailure: empty data or a format the decoder cannot parse.
    """
    if not data:
        raise DecodeFailure(locator, 'Empty tile data')
    if kind is TileKind.SCALAR_RASTER:
        payload: Payload = decode_scalar_raster(locator, data)
    else:
        payload = decode_image(locator, data)
    logger.debug(
        'Decoded %s %s: %dx%d, %d bytes',
        kind.value,
        locator,
        payload.width,
        payload.height,
        payload.nbytes,
    )
    return payload
