"""Per-request context shared between the resource, the pipeline and delegates."""

from __future__ import annotations

from typing import Any

from thumbnailer.models.format import Format
from thumbnailer.models.identifier import Identifier
from thumbnailer.models.operations import OperationList


class RequestContext:
    """Mutable bag of facts about the request being handled.

    Collaborators fill it in as they learn things (the resource sets the
    identifier, the pipeline sets the full size), and delegates read it.
    """

    def __init__(
        self,
        request_uri: str | None = None,
        client_ip: str | None = None,
        request_headers: dict[str, str] | None = None,
    ) -> None:
        self.request_uri = request_uri
        self.client_ip = client_ip
        self.request_headers: dict[str, str] = dict(request_headers or {})
        self.identifier: Identifier | None = None
        self.operation_list: OperationList | None = None
        self.output_format: Format | None = None
        self.full_size: tuple[int, int] | None = None

    def set_identifier(self, identifier: Identifier) -> None:
        """Register the request's identifier.

        Registering the same identifier again is a no-op. A request names
        exactly one image, so a different identifier is rejected.
        """
        if self.identifier is None:
            self.identifier = identifier
        elif self.identifier != identifier:
            raise ValueError(
                f"Identifier already set to {self.identifier}, cannot change to {identifier}"
            )

    def set_operation_list(self, operation_list: OperationList) -> None:
        self.operation_list = operation_list
        self.output_format = operation_list.output_format

    def to_dict(self) -> dict[str, Any]:
        """Plain-data view for delegates."""
        return {
            "client_ip": self.client_ip,
            "full_size": (
                {"width": self.full_size[0], "height": self.full_size[1]}
                if self.full_size
                else None
            ),
            "identifier": str(self.identifier) if self.identifier else None,
            "operations": (
                [op.model_dump(mode="json") for op in self.operation_list.operations]
                if self.operation_list
                else None
            ),
            "output_format": self.output_format.key if self.output_format else None,
            "request_headers": dict(self.request_headers),
            "request_uri": self.request_uri,
        }
