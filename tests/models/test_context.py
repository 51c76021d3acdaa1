"""Tests for RequestContext."""

import pytest

from thumbnailer.models import Format, Identifier, RequestContext
from thumbnailer.resources import build_operation_list


class TestRequestContext:
    """Tests for RequestContext."""

    def test_set_identifier_once(self) -> None:
        context = RequestContext()
        context.set_identifier(Identifier("a.jpg"))
        context.set_identifier(Identifier("a.jpg"))
        assert context.identifier == Identifier("a.jpg")

    def test_set_different_identifier_rejected(self) -> None:
        context = RequestContext()
        context.set_identifier(Identifier("a.jpg"))
        with pytest.raises(ValueError):
            context.set_identifier(Identifier("b.jpg"))

    def test_set_operation_list_records_format(self) -> None:
        context = RequestContext()
        op_list = build_operation_list(Identifier("a.jpg"), Format.get("png"))
        context.set_operation_list(op_list)

        assert context.operation_list == op_list
        assert context.output_format == Format.get("png")

    def test_to_dict_empty(self) -> None:
        data = RequestContext(request_uri="http://localhost/thumbs").to_dict()
        assert data["request_uri"] == "http://localhost/thumbs"
        assert data["identifier"] is None
        assert data["operations"] is None
        assert data["full_size"] is None

    def test_to_dict_copies_headers(self) -> None:
        headers = {"accept": "image/*"}
        context = RequestContext(request_headers=headers)
        data = context.to_dict()
        data["request_headers"]["accept"] = "text/html"
        assert context.request_headers == {"accept": "image/*"}
