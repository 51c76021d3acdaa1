"""Thumbnail endpoint.

Serves square, 256-pixel variant images:

    GET /thumbs?identifier=my-image.jpg

The output format is read from ``endpoint.thumbnailer.format`` (default
``jpg``) on every request. Everything beyond building the operation list
(authorization sequencing, source access, processing, caching) is done by
:class:`~thumbnailer.pipeline.ImageRequestHandler`.
"""

from __future__ import annotations

from thumbnailer.auth.authorizer import AuthorizerFactory
from thumbnailer.config import Configuration
from thumbnailer.exceptions import ResourceError
from thumbnailer.models.format import Format
from thumbnailer.models.identifier import Identifier
from thumbnailer.models.operations import (
    CropToSquare,
    Encode,
    OperationList,
    ScaleByPixels,
    ScaleMode,
)
from thumbnailer.pipeline.handler import ImageRequestHandler
from thumbnailer.pipeline.processor import Info
from thumbnailer.pipeline.sources import StatResult
from thumbnailer.resources.base import AbstractImageResource, Plugin, Route

FORMAT_CONFIG_KEY = "endpoint.thumbnailer.format"
DEFAULT_FORMAT = "jpg"
THUMBNAIL_SIZE = 256


def build_operation_list(identifier: Identifier, fmt: Format) -> OperationList:
    """Operations producing a square thumbnail of ``identifier`` in ``fmt``."""
    return (
        OperationList.builder()
        .with_identifier(identifier)
        .with_operations(
            CropToSquare(),
            ScaleByPixels(
                width=THUMBNAIL_SIZE,
                height=THUMBNAIL_SIZE,
                mode=ScaleMode.ASPECT_FIT_INSIDE,
            ),
            Encode(format=fmt),
        )
        .build()
    )


def resolve_variant_format(config: Configuration | None = None) -> Format:
    """Read the thumbnail format from the configuration.

    Unknown keys resolve to the UNKNOWN format; the pipeline fails on it when
    encoding.
    """
    config = config or Configuration.for_application()
    format_key = config.get_string(FORMAT_CONFIG_KEY, DEFAULT_FORMAT) or DEFAULT_FORMAT
    return Format.get(format_key)


class ThumbnailCallback:
    """Pipeline callback wiring the two authorization checkpoints."""

    def __init__(
        self,
        resource: AbstractImageResource,
        authorizer_factory: AuthorizerFactory | None = None,
    ) -> None:
        self.resource = resource
        self.authorizer_factory = authorizer_factory or AuthorizerFactory()

    def authorize_before_access(self) -> bool:
        authorizer = self.authorizer_factory.new_authorizer(self.resource.delegate)
        info = authorizer.authorize_before_access()
        if info is not None:
            return self.resource.handle_auth_info(info)
        return True

    def authorize(self) -> bool:
        authorizer = self.authorizer_factory.new_authorizer(self.resource.delegate)
        info = authorizer.authorize()
        if info is not None:
            return self.resource.handle_auth_info(info)
        return True

    def source_accessed(self, result: StatResult) -> None:
        pass

    def info_available(self, info: Info) -> None:
        pass

    def will_stream_image_from_variant_cache(self) -> None:
        pass

    def will_process_image(self, info: Info) -> None:
        pass


class ThumbnailResource(AbstractImageResource, Plugin):
    """Image endpoint providing downscaled square variants."""

    def __init__(self) -> None:
        super().__init__()
        self._identifier: Identifier | None = None

    # --- Plugin ---

    def plugin_config_keys(self) -> set[str]:
        return {FORMAT_CONFIG_KEY}

    # --- Resource ---

    def routes(self) -> set[Route]:
        return {Route(methods=frozenset({"GET"}), paths=frozenset({"/thumbs"}))}

    def get_identifier(self) -> Identifier:
        if self._identifier is None:
            self._identifier = self._parse_identifier()
            self.request_context.set_identifier(self._identifier)
        return self._identifier

    def do_init(self) -> None:
        super().do_init()
        self.request_context.set_identifier(self.get_identifier())

    def do_get(self) -> None:
        identifier = self.get_identifier()
        fmt = resolve_variant_format()
        self.logger.debug(f"Thumbnail of {identifier} as {fmt.key}")

        op_list = build_operation_list(identifier, fmt)

        # Must precede any body bytes
        self.response.set_header("Content-Type", fmt.preferred_media_type)

        handler = (
            ImageRequestHandler.builder()
            .with_reference(self.request.reference)
            .with_request_context(self.request_context)
            .with_delegate(self.delegate)
            .with_operation_list(op_list)
            .with_callback(ThumbnailCallback(self))
            .with_services(self.services)
            .build()
        )
        # The response owns the stream; it is not closed here.
        handler.handle(self.response.open_body_stream())

    def _parse_identifier(self) -> Identifier:
        """Read the ``identifier`` query argument.

        Raises:
            ResourceError: 400 if the argument is missing or blank
        """
        query = self.request.reference.query
        identifier_str = query.get_first_value("identifier", "") or ""
        if not identifier_str.strip():
            raise ResourceError(400, "Identifier not supplied")
        return Identifier(identifier_str)
