"""HTTP resources and the plugin interfaces they implement."""

from thumbnailer.resources.base import AbstractImageResource, Plugin, Resource, Route
from thumbnailer.resources.thumbnail import (
    FORMAT_CONFIG_KEY,
    ThumbnailCallback,
    ThumbnailResource,
    build_operation_list,
    resolve_variant_format,
)

__all__ = [
    "AbstractImageResource",
    "FORMAT_CONFIG_KEY",
    "Plugin",
    "Resource",
    "Route",
    "ThumbnailCallback",
    "ThumbnailResource",
    "build_operation_list",
    "resolve_variant_format",
]
