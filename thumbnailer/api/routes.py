"""FastAPI application exposing resource plugins.

Usage:
    from thumbnailer.api import create_app
    from thumbnailer.plugins import PluginHost
    from thumbnailer.resources import ThumbnailResource

    app = create_app(PluginHost([ThumbnailResource]))

    # Or mount the resources on an existing app
    app.include_router(create_router(host))
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable

from fastapi import APIRouter, FastAPI
from fastapi import Request as StarletteRequest
from fastapi import Response as StarletteResponse
from fastapi.responses import PlainTextResponse

from thumbnailer.exceptions import PipelineError, ResourceError
from thumbnailer.http import Request, Response
from thumbnailer.models.context import RequestContext
from thumbnailer.plugins import PluginHost
from thumbnailer.resources.base import Resource

logger = logging.getLogger(__name__)


def _make_endpoint(
    host: PluginHost, resource_class: type[Resource]
) -> Callable[[StarletteRequest], StarletteResponse]:
    """Build the endpoint that runs one resource instance per request."""

    def endpoint(request: StarletteRequest) -> StarletteResponse:
        req = Request.from_starlette(request)
        response = Response()
        context = RequestContext(
            request_uri=str(req.reference),
            client_ip=req.client_ip,
            request_headers=req.headers,
        )

        resource = resource_class()
        resource.setup(
            request=req,
            response=response,
            request_context=context,
            delegate=host.new_delegate(context),
            services=host.services,
        )
        resource.do_init()
        resource.do_get()
        return response.to_starlette()

    endpoint.__name__ = f"{resource_class.__name__}_endpoint"
    return endpoint


def create_router(host: PluginHost) -> APIRouter:
    """Create a router with one route per resource path.

    Args:
        host: Plugin host whose resources are mounted

    Returns:
        APIRouter that can be included in a FastAPI app
    """
    router = APIRouter()
    for resource_class in host.resource_classes:
        endpoint = _make_endpoint(host, resource_class)
        for route in resource_class().routes():
            for path in sorted(route.paths):
                router.add_api_route(
                    path,
                    endpoint,
                    methods=sorted(route.methods),
                    include_in_schema=False,
                )
    return router


def _resource_error_handler(request: StarletteRequest, exc: ResourceError) -> StarletteResponse:
    return PlainTextResponse(exc.message, status_code=exc.status_code)


def _pipeline_error_handler(request: StarletteRequest, exc: PipelineError) -> StarletteResponse:
    if exc.status_code >= 500:
        logger.error(f"Pipeline error for {request.url}: {exc}", exc_info=exc)
    else:
        logger.debug(f"Pipeline error for {request.url}: {exc}")
    return PlainTextResponse(str(exc), status_code=exc.status_code)


def create_app(host: PluginHost, *, title: str = "thumbnailer") -> FastAPI:
    """Create the FastAPI application for a plugin host."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        host.start()
        try:
            yield
        finally:
            host.stop()

    app = FastAPI(title=title, lifespan=lifespan)
    app.include_router(create_router(host))
    app.add_exception_handler(ResourceError, _resource_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(PipelineError, _pipeline_error_handler)  # type: ignore[arg-type]
    app.state.host = host
    return app
