"""Collaborators the image pipeline works with."""

from __future__ import annotations

from thumbnailer.config import Configuration
from thumbnailer.pipeline.cache import VariantCache
from thumbnailer.pipeline.processor import ImageProcessor
from thumbnailer.pipeline.sources import SourceFactory


class PipelineServices:
    """Source factory, processor and optional variant cache."""

    def __init__(
        self,
        sources: SourceFactory,
        processor: ImageProcessor,
        variant_cache: VariantCache | None = None,
    ) -> None:
        self.sources = sources
        self.processor = processor
        self.variant_cache = variant_cache

    @classmethod
    def from_config(cls, config: Configuration) -> PipelineServices:
        return cls(
            sources=SourceFactory(config),
            processor=ImageProcessor.from_config(config),
            variant_cache=VariantCache.from_config(config),
        )

    def close(self) -> None:
        self.sources.close()
        if self.variant_cache is not None:
            self.variant_cache.close()


_services: PipelineServices | None = None


def get_default_services() -> PipelineServices:
    """Get or create services built from the application configuration."""
    global _services
    if _services is None:
        _services = PipelineServices.from_config(Configuration.for_application())
    return _services
