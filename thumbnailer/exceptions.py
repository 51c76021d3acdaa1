"""Exception hierarchy for thumbnailer."""

from __future__ import annotations


class ThumbnailerError(Exception):
    """Base exception for all thumbnailer errors."""


class ConfigurationError(ThumbnailerError):
    """Raised when the application configuration cannot be loaded or read."""


class ResourceError(ThumbnailerError):
    """Client-facing error raised by a resource, carrying an HTTP status."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class PipelineError(ThumbnailerError):
    """Error raised while the image pipeline handles a request."""

    status_code = 500


class SourceNotFoundError(PipelineError):
    """The source image does not exist."""

    status_code = 404


class SourceAccessDeniedError(PipelineError):
    """The source image exists but may not be read."""

    status_code = 403


class UpstreamSourceError(PipelineError):
    """A remote source answered with an unexpected error."""

    status_code = 502


class UnsupportedFormatError(PipelineError):
    """No decoder or encoder is available for a format."""


class ImageProcessingError(PipelineError):
    """Decoding, transforming or encoding an image failed."""
