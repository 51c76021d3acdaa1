"""Sources: where source images are read from.

The source kind is selected by ``source.static`` (``filesystem`` or ``http``)
and is re-read for every request.
"""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from pathlib import Path, PurePosixPath

import httpx
from pydantic import BaseModel

from thumbnailer.config import Configuration
from thumbnailer.exceptions import (
    ConfigurationError,
    SourceAccessDeniedError,
    SourceNotFoundError,
    UpstreamSourceError,
)
from thumbnailer.models.format import UNKNOWN, Format, get_format_registry
from thumbnailer.models.identifier import Identifier

logger = logging.getLogger(__name__)


class StatResult(BaseModel):
    """What a source knows about an image without reading it."""

    size: int | None = None
    last_modified: datetime | None = None


class Source(ABC):
    """Reads the image named by one identifier."""

    def __init__(self, identifier: Identifier) -> None:
        self.identifier = identifier

    @abstractmethod
    def stat(self) -> StatResult:
        """Check that the image exists and is readable."""
        ...

    @abstractmethod
    def read_bytes(self) -> bytes:
        ...

    def format_hint(self) -> Format:
        """Format guessed from the identifier's extension (UNKNOWN if none)."""
        suffix = PurePosixPath(str(self.identifier)).suffix
        if not suffix:
            return UNKNOWN
        return get_format_registry().for_extension(suffix)


class FilesystemSource(Source):
    """Source reading from ``path_prefix + identifier + path_suffix``."""

    def __init__(self, identifier: Identifier, path_prefix: str = "", path_suffix: str = "") -> None:
        super().__init__(identifier)
        self.path_prefix = path_prefix
        self.path_suffix = path_suffix

    @property
    def path(self) -> Path:
        return Path(f"{self.path_prefix}{self.identifier}{self.path_suffix}")

    @property
    def root(self) -> Path:
        """Directory every resolved path must stay inside.

        The directory part of the prefix, or the working directory when no
        prefix is set.
        """
        if not self.path_prefix:
            return Path.cwd().resolve()
        if self.path_prefix.endswith(("/", os.sep)):
            return Path(self.path_prefix).resolve()
        return Path(self.path_prefix).parent.resolve()

    def _checked_path(self) -> Path:
        path = self.path.resolve()
        if not path.is_relative_to(self.root):
            raise SourceAccessDeniedError(f"{self.identifier} is outside the source root")
        if not path.is_file():
            raise SourceNotFoundError(f"Image not found: {self.identifier}")
        return path

    def stat(self) -> StatResult:
        path = self._checked_path()
        try:
            st = path.stat()
        except PermissionError as e:
            raise SourceAccessDeniedError(f"Cannot access {self.identifier}") from e
        return StatResult(
            size=st.st_size,
            last_modified=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
        )

    def read_bytes(self) -> bytes:
        path = self._checked_path()
        try:
            return path.read_bytes()
        except PermissionError as e:
            raise SourceAccessDeniedError(f"Cannot read {self.identifier}") from e


class HttpSource(Source):
    """Source fetching ``url_prefix + identifier + url_suffix`` over HTTP."""

    def __init__(
        self,
        identifier: Identifier,
        client: httpx.Client,
        url_prefix: str = "",
        url_suffix: str = "",
    ) -> None:
        super().__init__(identifier)
        self.client = client
        self.url_prefix = url_prefix
        self.url_suffix = url_suffix
        self._content_type: str | None = None

    @property
    def url(self) -> str:
        return f"{self.url_prefix}{self.identifier}{self.url_suffix}"

    def _request(self, method: str) -> httpx.Response:
        try:
            response = self.client.request(method, self.url)
        except httpx.HTTPError as e:
            raise UpstreamSourceError(f"{method} {self.url} failed: {e}") from e

        if response.status_code == 404:
            raise SourceNotFoundError(f"Image not found: {self.identifier}")
        if response.status_code in (401, 403):
            raise SourceAccessDeniedError(
                f"Access to {self.identifier} denied by upstream ({response.status_code})"
            )
        if response.status_code >= 400:
            raise UpstreamSourceError(
                f"{method} {self.url} returned HTTP {response.status_code}"
            )
        self._content_type = response.headers.get("content-type", self._content_type)
        return response

    def stat(self) -> StatResult:
        response = self._request("HEAD")

        size = None
        if "content-length" in response.headers:
            try:
                size = int(response.headers["content-length"])
            except ValueError:
                size = None

        last_modified = None
        if "last-modified" in response.headers:
            try:
                last_modified = parsedate_to_datetime(response.headers["last-modified"])
            except (TypeError, ValueError):
                logger.debug(f"Unparseable Last-Modified from {self.url}")

        return StatResult(size=size, last_modified=last_modified)

    def read_bytes(self) -> bytes:
        return self._request("GET").content

    def format_hint(self) -> Format:
        if self._content_type:
            fmt = get_format_registry().for_media_type(self._content_type)
            if not fmt.is_unknown:
                return fmt
        return super().format_hint()


class SourceFactory:
    """Creates the configured kind of source for an identifier."""

    def __init__(
        self,
        config: Configuration | None = None,
        http_client: httpx.Client | None = None,
    ) -> None:
        self._config = config
        self._http_client = http_client

    @property
    def config(self) -> Configuration:
        return self._config or Configuration.for_application()

    @property
    def http_client(self) -> httpx.Client:
        if self._http_client is None:
            timeout = self.config.get_float("source.http.timeout", 10.0)
            self._http_client = httpx.Client(timeout=timeout, follow_redirects=True)
        return self._http_client

    def new_source(self, identifier: Identifier) -> Source:
        kind = (self.config.get_string("source.static", "filesystem") or "").lower()
        if kind == "filesystem":
            return FilesystemSource(
                identifier,
                path_prefix=self.config.get_string("source.filesystem.path_prefix", "") or "",
                path_suffix=self.config.get_string("source.filesystem.path_suffix", "") or "",
            )
        if kind == "http":
            return HttpSource(
                identifier,
                client=self.http_client,
                url_prefix=self.config.get_string("source.http.url_prefix", "") or "",
                url_suffix=self.config.get_string("source.http.url_suffix", "") or "",
            )
        raise ConfigurationError(f"Unknown source.static value: {kind!r}")

    def close(self) -> None:
        if self._http_client is not None:
            self._http_client.close()
            self._http_client = None
