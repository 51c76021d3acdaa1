"""Plugin and resource base classes."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from pydantic import BaseModel, ConfigDict, Field

from thumbnailer.auth.delegate import Delegate
from thumbnailer.auth.info import AuthInfo
from thumbnailer.http import Request, Response
from thumbnailer.models.context import RequestContext
from thumbnailer.models.identifier import Identifier
from thumbnailer.pipeline.services import PipelineServices


class Route(BaseModel):
    """HTTP methods and exact paths a resource responds to."""

    model_config = ConfigDict(frozen=True)

    methods: frozenset[str] = Field(..., description="Upper-case HTTP methods")
    paths: frozenset[str] = Field(..., description="Exact request paths")

    def matches(self, method: str, path: str) -> bool:
        return method.upper() in self.methods and path in self.paths


class Plugin(ABC):
    """Something the host loads at startup and may configure."""

    @property
    def plugin_name(self) -> str:
        return type(self).__name__

    @abstractmethod
    def plugin_config_keys(self) -> set[str]:
        """Configuration keys the plugin recognizes."""
        ...

    def initialize_plugin(self) -> None:
        """Called once after the plugin is loaded."""

    def on_application_start(self) -> None:
        """Called when the application starts."""

    def on_application_stop(self) -> None:
        """Called when the application stops."""


class Resource(ABC):
    """An HTTP endpoint. A new instance handles each request.

    The host calls :meth:`setup`, then :meth:`do_init`, then the method
    handler (``do_get``).
    """

    def __init__(self) -> None:
        self._request: Request | None = None
        self._response: Response | None = None
        self._request_context: RequestContext | None = None
        self._delegate: Delegate | None = None
        self._services: PipelineServices | None = None

    @abstractmethod
    def routes(self) -> set[Route]:
        ...

    def setup(
        self,
        request: Request,
        response: Response,
        request_context: RequestContext,
        delegate: Delegate | None = None,
        services: PipelineServices | None = None,
    ) -> None:
        self._request = request
        self._response = response
        self._request_context = request_context
        self._delegate = delegate
        self._services = services

    @property
    def request(self) -> Request:
        if self._request is None:
            raise RuntimeError("Resource has not been set up with a request")
        return self._request

    @property
    def response(self) -> Response:
        if self._response is None:
            raise RuntimeError("Resource has not been set up with a response")
        return self._response

    @property
    def request_context(self) -> RequestContext:
        if self._request_context is None:
            raise RuntimeError("Resource has not been set up with a request context")
        return self._request_context

    @property
    def delegate(self) -> Delegate | None:
        return self._delegate

    @property
    def services(self) -> PipelineServices | None:
        return self._services

    def do_init(self) -> None:
        """Prepare for handling the request."""

    def do_get(self) -> None:
        raise NotImplementedError


class AbstractImageResource(Resource):
    """Resource serving images of a single identifier."""

    @abstractmethod
    def get_identifier(self) -> Identifier:
        ...

    @property
    def logger(self) -> logging.Logger:
        return logging.getLogger(type(self).__module__)

    def handle_auth_info(self, info: AuthInfo) -> bool:
        """Apply an authorization decision to the response.

        Returns True if the request may proceed. Otherwise the response has
        been given the redirect or error status and False is returned.
        """
        if info.is_authorized:
            return True
        response = self.response
        if info.redirect_uri is not None:
            self.logger.debug(f"Redirecting {info.response_status} to {info.redirect_uri}")
            response.set_status(info.response_status)
            response.set_header("Cache-Control", "no-cache")
            response.set_header("Location", info.redirect_uri)
            return False
        if info.response_status >= 400:
            self.logger.debug(f"Denying request with status {info.response_status}")
            response.set_status(info.response_status)
            response.set_header("Cache-Control", "no-cache")
            if info.response_status == 401 and info.challenge_value:
                response.set_header("WWW-Authenticate", info.challenge_value)
            return False
        return True
