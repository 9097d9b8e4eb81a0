"""Domain layer - geometry, descriptors, settings and errors."""
from domain.errors import (
    DecodeFailure,
    FetchFailure,
    InvalidGeometryError,
    TileLoadError,
)
from domain.models import (
    GeoBounds,
    HansenGrid,
    OutputTileRequest,
    RendererSettings,
    TileDescriptor,
)

__all__ = [
    'DecodeFailure',
    'FetchFailure',
    'GeoBounds',
    'HansenGrid',
    'InvalidGeometryError',
    'OutputTileRequest',
    'RendererSettings',
    'TileDescriptor',
    'TileLoadError',
]
