"""thumbnailer - Square thumbnail endpoint for an image server."""

from thumbnailer.config import Configuration
from thumbnailer.models import Format, Identifier, OperationList
from thumbnailer.resources import ThumbnailResource

__version__ = "0.1.0"
__all__ = ["Configuration", "Format", "Identifier", "OperationList", "ThumbnailResource"]
