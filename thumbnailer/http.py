"""Request and response objects handed to resources.

They wrap the Starlette request that FastAPI dispatches, so resources and the
pipeline do not depend on the web framework, and can be built directly in
tests.
"""

from __future__ import annotations

from io import BytesIO
from urllib.parse import parse_qsl, urlsplit

from fastapi import Request as StarletteRequest
from fastapi import Response as StarletteResponse


class Query:
    """Ordered, multi-valued URI query."""

    def __init__(self, pairs: list[tuple[str, str]] | None = None) -> None:
        self._pairs = list(pairs or [])

    @classmethod
    def from_string(cls, query: str) -> Query:
        return cls(parse_qsl(query, keep_blank_values=True))

    def get_first_value(self, name: str, default: str | None = None) -> str | None:
        """Value of the first occurrence of ``name``, or ``default``."""
        for key, value in self._pairs:
            if key == name:
                return value
        return default

    def get_all(self, name: str) -> list[str]:
        return [value for key, value in self._pairs if key == name]

    def __contains__(self, name: str) -> bool:
        return any(key == name for key, _ in self._pairs)

    def __len__(self) -> int:
        return len(self._pairs)


class Reference:
    """An absolute request URI."""

    def __init__(self, uri: str) -> None:
        self.uri = uri
        self._parts = urlsplit(uri)

    @property
    def path(self) -> str:
        return self._parts.path

    @property
    def query(self) -> Query:
        return Query.from_string(self._parts.query)

    def __str__(self) -> str:
        return self.uri

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Reference) and other.uri == self.uri

    def __hash__(self) -> int:
        return hash(self.uri)


class Request:
    """An inbound request."""

    def __init__(
        self,
        method: str,
        reference: Reference | str,
        headers: dict[str, str] | None = None,
        client_ip: str | None = None,
    ) -> None:
        self.method = method.upper()
        self.reference = reference if isinstance(reference, Reference) else Reference(reference)
        self.headers = dict(headers or {})
        self.client_ip = client_ip

    @classmethod
    def from_starlette(cls, request: StarletteRequest) -> Request:
        return cls(
            method=request.method,
            reference=str(request.url),
            headers=dict(request.headers),
            client_ip=request.client.host if request.client else None,
        )


class ResponseCommittedError(RuntimeError):
    """Raised when headers are changed after body bytes were written."""


class Response:
    """An outbound response being assembled.

    The body stream is owned by the response: it is opened on first use and
    handed out as-is on later calls. Callers write to it but never close it.
    """

    def __init__(self) -> None:
        self.status = 200
        self._headers: dict[str, str] = {}
        self._body: BytesIO | None = None

    @property
    def headers(self) -> dict[str, str]:
        return dict(self._headers)

    @property
    def is_committed(self) -> bool:
        """True once any body bytes have been written."""
        return self._body is not None and self._body.tell() > 0

    def set_header(self, name: str, value: str) -> None:
        if self.is_committed:
            raise ResponseCommittedError(f"Cannot set {name}: body already written")
        for existing in list(self._headers):
            if existing.lower() == name.lower():
                del self._headers[existing]
        self._headers[name] = value

    def get_header(self, name: str) -> str | None:
        for key, value in self._headers.items():
            if key.lower() == name.lower():
                return value
        return None

    def set_status(self, status: int) -> None:
        if self.is_committed:
            raise ResponseCommittedError("Cannot set status: body already written")
        self.status = status

    def open_body_stream(self) -> BytesIO:
        if self._body is None:
            self._body = BytesIO()
        return self._body

    @property
    def body(self) -> bytes:
        return self._body.getvalue() if self._body is not None else b""

    def to_starlette(self) -> StarletteResponse:
        """Convert into the framework response sent to the client."""
        headers = dict(self._headers)
        media_type = None
        for key in list(headers):
            if key.lower() == "content-type":
                media_type = headers.pop(key)
        return StarletteResponse(
            content=self.body,
            status_code=self.status,
            headers=headers,
            media_type=media_type,
        )
