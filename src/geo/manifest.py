"""Manifest records -> tile descriptors.

A manifest is a sequence of records, each at minimum
``{"url": ..., "bbox": [west, north, east, south]}``, or plain Hansen file
names whose footprint is derived from the name. Malformed entries are
skipped here and never reach the index.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import TYPE_CHECKING, Any
from urllib.parse import urlparse

from pydantic import BaseModel, ValidationError, field_validator, model_validator

from domain.errors import InvalidGeometryError
from domain.models import GeoBounds, HansenGrid, TileDescriptor
from geo.tile_index import TileIndex
from shared.constants import SCALAR_RASTER_SUFFIXES, SOURCE_TILE_SPAN_DEG, TileKind

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)

# Hansen_GFC-2024-v1.12_lossyear_10N_080W.tif
_HANSEN_RE = re.compile(
    r'Hansen_GFC-\d{4}-v\d+\.\d+_lossyear_(\d{2})(N|S)_(\d{3})(E|W)\.(tif|tiff|png)$',
    re.IGNORECASE,
)


class ManifestRecord(BaseModel):
    """One manifest entry as found in the JSON file."""

    model_config = {
        'extra': 'ignore',
    }

    locator: str | None = None
    url: str | None = None
    filename: str | None = None
    bbox: tuple[float, float, float, float] | None = None
    kind: TileKind | None = None

    @field_validator('locator', 'url', 'filename')
    @classmethod
    def strip_blank(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        return v or None

    @model_validator(mode='after')
    def require_source(self) -> ManifestRecord:
        if not (self.locator or self.url or self.filename):
            msg = 'record has no locator, url or filename'
            raise ValueError(msg)
        return self


def parse_tile_filename(filename: str) -> tuple[HansenGrid, GeoBounds] | None:
    """
    Parse a Hansen tile name into grid coordinates and footprint.

    Hansen names a tile by its north-west corner: ``10N_080W`` covers
    0..10N and 80W..70W. Some map viewers read the latitude as the south
    edge instead (``10N`` -> 10..20N); an explicit ``bbox`` in the manifest
    always takes precedence over the name.
    """
    match = _HANSEN_RE.search(filename.strip())
    if match is None:
        return None

    lat_abs, lat_dir, lng_abs, lng_dir, _ = match.groups()
    lat_dir = lat_dir.upper()
    lng_dir = lng_dir.upper()
    north = int(lat_abs) if lat_dir == 'N' else -int(lat_abs)
    west = int(lng_abs) if lng_dir == 'E' else -int(lng_abs)

    grid = HansenGrid(lat=north, lng=west, lat_dir=lat_dir, lng_dir=lng_dir)
    bounds = GeoBounds(
        west=float(west),
        north=float(north),
        east=float(west + SOURCE_TILE_SPAN_DEG),
        south=float(north - SOURCE_TILE_SPAN_DEG),
    )
    return grid, bounds


def kind_for_locator(locator: str) -> TileKind:
    """Payload kind implied by the locator's file suffix."""
    path = urlparse(locator).path if '://' in locator else locator
    if path.lower().endswith(SCALAR_RASTER_SUFFIXES):
        return TileKind.SCALAR_RASTER
    return TileKind.IMAGE


def resolve_locator(locator: str, base_url: str | None) -> str:
    """Join a relative locator onto base_url; absolute URLs and paths pass through."""
    if not base_url or '://' in locator or Path(locator).is_absolute():
        return locator
    return f'{base_url.rstrip("/")}/{locator.lstrip("/")}'


def descriptor_from_record(
    record: ManifestRecord,
    base_url: str | None = None,
) -> TileDescriptor:
    """
    Build a descriptor from a validated record.

    Raises:
        InvalidGeometryError: no usable footprint.
        ValueError: record carries no locator, url or filename.
    """
    raw_locator = record.url or record.locator or record.filename
    if not raw_locator:
        msg = 'record has no locator, url or filename'
        raise ValueError(msg)
    filename = record.filename or Path(urlparse(raw_locator).path).name

    parsed = parse_tile_filename(filename)
    grid = parsed[0] if parsed else None
    if record.bbox is not None:
        bbox = GeoBounds.from_bbox(record.bbox)
    elif parsed is not None:
        bbox = parsed[1]
    else:
        msg = f'No bbox and unparseable file name: {filename}'
        raise InvalidGeometryError(msg)

    if not bbox.is_valid():
        msg = f'Invalid bbox {bbox.as_bbox()} for {raw_locator}'
        raise InvalidGeometryError(msg)

    return TileDescriptor(
        locator=resolve_locator(raw_locator, base_url),
        bbox=bbox,
        kind=record.kind or kind_for_locator(filename or raw_locator),
        filename=filename,
        grid=grid,
    )


def descriptors_from_records(
    records: Iterable[Any],
    base_url: str | None = None,
) -> list[TileDescriptor]:
    """Convert raw manifest entries, skipping malformed ones."""
    descriptors: list[TileDescriptor] = []
    skipped = 0
    for i, raw in enumerate(records):
        data = {'filename': raw} if isinstance(raw, str) else raw
        try:
            record = ManifestRecord.model_validate(data)
            descriptors.append(descriptor_from_record(record, base_url))
        except (ValidationError, InvalidGeometryError, ValueError, TypeError) as e:
            skipped += 1
            logger.warning('Skipping manifest entry #%d: %s', i, e)
    logger.info(
        'Manifest: %d tile descriptors loaded, %d skipped', len(descriptors), skipped
    )
    return descriptors


def read_manifest(path: str | Path) -> list[Any]:
    """
    Read raw manifest entries from a local file.

    Accepts a JSON list, a JSON object with a ``files`` list, or a plain
    newline-separated list of file names.
    """
    text = Path(path).read_text(encoding='utf-8')
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return [line.strip() for line in text.splitlines() if line.strip()]

    if isinstance(data, list):
        return data
    if isinstance(data, dict) and isinstance(data.get('files'), list):
        return data['files']
    msg = f'Unsupported manifest layout in {path}'
    raise ValueError(msg)


def build_index(records: Iterable[Any], base_url: str | None = None) -> TileIndex:
    return TileIndex(descriptors_from_records(records, base_url))


def load_index(path: str | Path, base_url: str | None = None) -> TileIndex:
    """Read a manifest file and index its descriptors."""
    return build_index(read_manifest(path), base_url)
