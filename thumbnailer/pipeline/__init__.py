"""Image pipeline: sources, processing and variant caching."""

from thumbnailer.pipeline.cache import VariantCache, VariantCacheStats, VariantEntry
from thumbnailer.pipeline.handler import (
    Callback,
    ImageRequestHandler,
    ImageRequestHandlerBuilder,
)
from thumbnailer.pipeline.processor import ImageProcessor, Info
from thumbnailer.pipeline.services import PipelineServices, get_default_services
from thumbnailer.pipeline.sources import (
    FilesystemSource,
    HttpSource,
    Source,
    SourceFactory,
    StatResult,
)

__all__ = [
    "Callback",
    "FilesystemSource",
    "HttpSource",
    "ImageProcessor",
    "ImageRequestHandler",
    "ImageRequestHandlerBuilder",
    "Info",
    "PipelineServices",
    "Source",
    "SourceFactory",
    "StatResult",
    "VariantCache",
    "VariantCacheStats",
    "VariantEntry",
    "get_default_services",
]
