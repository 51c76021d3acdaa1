"""Image request handler: turns an operation list into bytes on a stream.

The handler owns authorization sequencing, source access, variant caching
and processing. Resources only describe *what* they want and get called
back at defined points:

1. ``authorize_before_access`` before the source is touched
2. ``source_accessed`` once the source has been stat'ed
3. ``info_available`` once the image size and format are known
4. ``authorize`` before any processing
5. ``will_stream_image_from_variant_cache`` on a cache hit, or
   ``will_process_image`` before processing
"""

from __future__ import annotations

import logging
from typing import BinaryIO, Protocol

from thumbnailer.auth.delegate import Delegate
from thumbnailer.http import Reference
from thumbnailer.models.context import RequestContext
from thumbnailer.models.operations import OperationList
from thumbnailer.pipeline.cache import VariantEntry
from thumbnailer.pipeline.processor import Info
from thumbnailer.pipeline.services import PipelineServices, get_default_services
from thumbnailer.pipeline.sources import StatResult

logger = logging.getLogger(__name__)


class Callback(Protocol):
    """Call-ins from the handler into the resource."""

    def authorize_before_access(self) -> bool:
        """Return False to stop before any source access."""
        ...

    def authorize(self) -> bool:
        """Return False to stop before processing."""
        ...

    def source_accessed(self, result: StatResult) -> None:
        ...

    def info_available(self, info: Info) -> None:
        ...

    def will_stream_image_from_variant_cache(self) -> None:
        ...

    def will_process_image(self, info: Info) -> None:
        ...


class ImageRequestHandler:
    """Handles one image request. Build with :meth:`builder`."""

    def __init__(
        self,
        reference: Reference | None,
        request_context: RequestContext,
        delegate: Delegate | None,
        operation_list: OperationList,
        callback: Callback,
        services: PipelineServices,
    ) -> None:
        self.reference = reference
        self.request_context = request_context
        self.delegate = delegate
        self.operation_list = operation_list
        self.callback = callback
        self.services = services

    @classmethod
    def builder(cls) -> ImageRequestHandlerBuilder:
        return ImageRequestHandlerBuilder()

    def handle(self, output: BinaryIO) -> None:
        """Write the variant image to ``output``.

        Returns without writing anything if a checkpoint denies the request.
        The stream is left open.
        """
        op_list = self.operation_list
        self.request_context.set_operation_list(op_list)

        if not self.callback.authorize_before_access():
            logger.debug(f"Pre-access authorization denied for {op_list.identifier}")
            return

        source = self.services.sources.new_source(op_list.identifier)
        stat = source.stat()
        self.callback.source_accessed(stat)

        cache = self.services.variant_cache
        entry = self._cached_entry(stat)

        data: bytes | None = None
        if entry is not None and entry.source_info is not None:
            info = entry.source_info
        else:
            data = source.read_bytes()
            info = self.services.processor.read_info(data, source.format_hint())
        self.request_context.full_size = (info.width, info.height)
        self.callback.info_available(info)

        if not self.callback.authorize():
            logger.debug(f"Authorization denied for {op_list.identifier}")
            return

        if cache is not None and entry is not None:
            cached = cache.read_entry(entry)
            if cached is not None:
                logger.debug(f"Variant cache hit for {op_list.identifier}")
                self.callback.will_stream_image_from_variant_cache()
                output.write(cached)
                return

        if data is None:
            data = source.read_bytes()
        self.callback.will_process_image(info)
        result = self.services.processor.process(data, info, op_list)
        if cache is not None:
            cache.put(op_list, result, source_info=info)
        output.write(result)

    def _cached_entry(self, stat: StatResult) -> VariantEntry | None:
        """Cache entry for the operation list, unless the source changed since."""
        cache = self.services.variant_cache
        if cache is None:
            return None
        entry = cache.get_entry(self.operation_list)
        if entry is None:
            return None
        if stat.last_modified is not None and entry.is_older_than(stat.last_modified):
            logger.debug(f"Source {self.operation_list.identifier} changed since it was cached")
            return None
        return entry


class ImageRequestHandlerBuilder:
    """Builder for ImageRequestHandler."""

    def __init__(self) -> None:
        self._reference: Reference | None = None
        self._request_context: RequestContext | None = None
        self._delegate: Delegate | None = None
        self._operation_list: OperationList | None = None
        self._callback: Callback | None = None
        self._services: PipelineServices | None = None

    def with_reference(self, reference: Reference) -> ImageRequestHandlerBuilder:
        self._reference = reference
        return self

    def with_request_context(self, context: RequestContext) -> ImageRequestHandlerBuilder:
        self._request_context = context
        return self

    def with_delegate(self, delegate: Delegate | None) -> ImageRequestHandlerBuilder:
        self._delegate = delegate
        return self

    def with_operation_list(self, operation_list: OperationList) -> ImageRequestHandlerBuilder:
        self._operation_list = operation_list
        return self

    def with_callback(self, callback: Callback) -> ImageRequestHandlerBuilder:
        self._callback = callback
        return self

    def with_services(self, services: PipelineServices | None) -> ImageRequestHandlerBuilder:
        self._services = services
        return self

    def build(self) -> ImageRequestHandler:
        if self._operation_list is None:
            raise ValueError("An operation list is required")
        if self._callback is None:
            raise ValueError("A callback is required")
        return ImageRequestHandler(
            reference=self._reference,
            request_context=self._request_context or RequestContext(),
            delegate=self._delegate,
            operation_list=self._operation_list,
            callback=self._callback,
            services=self._services or get_default_services(),
        )
