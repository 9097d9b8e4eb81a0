"""Registry of source tile descriptors with point and range lookups.

Lookups are linear scans over a few hundred 10x10 degree tiles. Callers only
use ``point_query`` and ``range_query``, so a spatial tree can replace the scan.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from domain.errors import InvalidGeometryError

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from domain.models import GeoBounds, TileDescriptor

logger = logging.getLogger(__name__)


class TileIndex:
    """Descriptors keyed by locator, kept in registration order."""

    def __init__(self, descriptors: Iterable[TileDescriptor] = ()) -> None:
        self._tiles: dict[str, TileDescriptor] = {}
        self.register_many(descriptors)

    def register(self, descriptor: TileDescriptor) -> None:
        """
        Add a descriptor, replacing one with the same locator.

        Raises:
            InvalidGeometryError: bbox is non-finite or degenerate.
        """
        bbox = descriptor.bbox
        if not bbox.is_finite():
            msg = f'Non-finite bbox for {descriptor.locator}: {bbox.as_bbox()}'
            raise InvalidGeometryError(msg)
        if bbox.is_degenerate():
            msg = f'Degenerate bbox for {descriptor.locator}: {bbox.as_bbox()}'
            raise InvalidGeometryError(msg)
        if descriptor.locator in self._tiles:
            logger.debug('Replacing descriptor %s', descriptor.locator)
        self._tiles[descriptor.locator] = descriptor

    def register_many(self, descriptors: Iterable[TileDescriptor]) -> None:
        for descriptor in descriptors:
            self.register(descriptor)

    def unregister(self, locator: str) -> bool:
        return self._tiles.pop(locator, None) is not None

    def get(self, locator: str) -> TileDescriptor | None:
        return self._tiles.get(locator)

    def point_query(self, lat: float, lng: float) -> TileDescriptor | None:
        """
        Descriptor whose bbox contains the point, or None.

        With overlapping descriptors (malformed manifest) the first one in
        registration order wins.
        """
        for descriptor in self._tiles.values():
            if descriptor.bbox.contains_point(lat, lng):
                return descriptor
        return None

    def range_query(self, bounds: GeoBounds) -> list[TileDescriptor]:
        """All descriptors whose bbox overlaps bounds (closed intervals)."""
        return [d for d in self._tiles.values() if d.bbox.intersects(bounds)]

    def __len__(self) -> int:
        return len(self._tiles)

    def __iter__(self) -> Iterator[TileDescriptor]:
        return iter(list(self._tiles.values()))

    def __contains__(self, locator: object) -> bool:
        return locator in self._tiles
