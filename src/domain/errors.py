"""Exceptions raised by the tile pipeline."""

from __future__ import annotations


class TileLoadError(RuntimeError):
    """A source tile could not be turned into a payload."""

    def __init__(self, locator: str, message: str) -> None:
        super().__init__(f'{message} (locator={locator})')
        self.locator = locator


class FetchFailure(TileLoadError):
    """Transport error, unexpected HTTP status or timeout."""


class DecodeFailure(TileLoadError):
    """Fetched bytes do not parse as the declared tile kind."""


class InvalidGeometryError(ValueError):
    """Bounding box is non-finite or degenerate."""
