"""Data models for thumbnailer."""

from thumbnailer.models.context import RequestContext
from thumbnailer.models.format import (
    UNKNOWN,
    Format,
    FormatRegistry,
    get_format_registry,
)
from thumbnailer.models.identifier import Identifier
from thumbnailer.models.operations import (
    CropToSquare,
    Encode,
    Operation,
    OperationList,
    OperationListBuilder,
    ScaleByPixels,
    ScaleMode,
)

__all__ = [
    # Identifier
    "Identifier",
    # Formats
    "Format",
    "FormatRegistry",
    "UNKNOWN",
    "get_format_registry",
    # Operations
    "CropToSquare",
    "Encode",
    "Operation",
    "OperationList",
    "OperationListBuilder",
    "ScaleByPixels",
    "ScaleMode",
    # Request context
    "RequestContext",
]
