"""Tests for the thumbnail resource."""

from __future__ import annotations

from io import BytesIO
from unittest.mock import MagicMock, patch

import pytest
from PIL import Image

from thumbnailer.auth import AuthInfo, Delegate
from thumbnailer.config import Configuration
from thumbnailer.exceptions import ResourceError
from thumbnailer.models import CropToSquare, Encode, Format, Identifier, ScaleByPixels, ScaleMode
from thumbnailer.resources import (
    FORMAT_CONFIG_KEY,
    ThumbnailCallback,
    ThumbnailResource,
    build_operation_list,
    resolve_variant_format,
)


class DenyBeforeAccessDelegate(Delegate):
    def authorize_before_access(self):
        return False


class RedirectDelegate(Delegate):
    def authorize(self):
        return {"status_code": 303, "location": "https://example.org/login"}


class FailingDelegate(Delegate):
    def authorize_before_access(self):
        raise RuntimeError("policy script crashed")


@pytest.fixture
def resource(make_request, services) -> ThumbnailResource:
    """Resource set up for GET /thumbs?identifier=my-image.jpg."""
    request, response, context = make_request("http://localhost/thumbs?identifier=my-image.jpg")
    resource = ThumbnailResource()
    resource.setup(request, response, context, services=services)
    return resource


class TestPlugin:
    """Tests for the plugin surface."""

    def test_plugin_name(self) -> None:
        assert ThumbnailResource().plugin_name == "ThumbnailResource"

    def test_declares_single_config_key(self) -> None:
        assert ThumbnailResource().plugin_config_keys() == {"endpoint.thumbnailer.format"}

    def test_lifecycle_hooks_are_noops(self) -> None:
        plugin = ThumbnailResource()
        plugin.initialize_plugin()
        plugin.on_application_start()
        plugin.on_application_stop()

    def test_routes(self) -> None:
        routes = ThumbnailResource().routes()
        assert len(routes) == 1
        route = next(iter(routes))
        assert route.matches("GET", "/thumbs")
        assert not route.matches("POST", "/thumbs")
        assert not route.matches("GET", "/thumbs/extra")


class TestIdentifierParsing:
    """Tests for reading the identifier query argument."""

    @pytest.mark.parametrize(
        "raw",
        ["my-image.jpg", "a b.png", "folder/sub/image.tif", "%2F", " padded ", "ünïcode.jpg"],
    )
    def test_returns_value_verbatim(self, make_request, raw: str) -> None:
        from urllib.parse import quote

        request, response, context = make_request(
            f"http://localhost/thumbs?identifier={quote(raw)}"
        )
        resource = ThumbnailResource()
        resource.setup(request, response, context)

        assert resource.get_identifier().value == raw

    @pytest.mark.parametrize(
        "query",
        ["", "?identifier=", "?identifier=%20%20", "?other=x", "?other=x&identifier=\t"],
    )
    def test_missing_or_blank_is_bad_request(self, make_request, query: str) -> None:
        request, response, context = make_request(f"http://localhost/thumbs{query}")
        resource = ThumbnailResource()
        resource.setup(request, response, context)

        with pytest.raises(ResourceError) as exc_info:
            resource.get_identifier()

        assert exc_info.value.status_code == 400
        assert exc_info.value.message == "Identifier not supplied"

    def test_first_value_wins(self, make_request) -> None:
        request, response, context = make_request(
            "http://localhost/thumbs?identifier=first.jpg&identifier=second.jpg"
        )
        resource = ThumbnailResource()
        resource.setup(request, response, context)

        assert resource.get_identifier() == Identifier("first.jpg")

    def test_registers_identifier_in_context(self, resource: ThumbnailResource) -> None:
        identifier = resource.get_identifier()
        assert resource.request_context.identifier == identifier

    def test_identifier_is_cached(self, resource: ThumbnailResource) -> None:
        first = resource.get_identifier()
        second = resource.get_identifier()
        assert first is second

    def test_do_init_registration_is_idempotent(self, resource: ThumbnailResource) -> None:
        resource.get_identifier()
        resource.do_init()
        resource.do_init()
        assert resource.request_context.identifier == Identifier("my-image.jpg")


class TestFormatResolution:
    """Tests for resolving the output format from configuration."""

    def test_defaults_to_jpg(self) -> None:
        assert resolve_variant_format().key == "jpg"

    def test_reads_configured_key(self, app_config: Configuration) -> None:
        app_config.set_property(FORMAT_CONFIG_KEY, "png")
        assert resolve_variant_format() == Format.get("png")

    def test_is_read_on_every_call(self, app_config: Configuration) -> None:
        app_config.set_property(FORMAT_CONFIG_KEY, "png")
        assert resolve_variant_format().key == "png"
        app_config.set_property(FORMAT_CONFIG_KEY, "webp")
        assert resolve_variant_format().key == "webp"

    def test_unknown_key_is_not_validated_here(self, app_config: Configuration) -> None:
        app_config.set_property(FORMAT_CONFIG_KEY, "jpgg")
        assert resolve_variant_format().is_unknown

    def test_explicit_configuration(self) -> None:
        config = Configuration({"endpoint": {"thumbnailer": {"format": "gif"}}})
        assert resolve_variant_format(config).key == "gif"


class TestBuildOperationList:
    """Tests for the thumbnail directive."""

    def test_crop_scale_encode(self) -> None:
        fmt = Format.get("png")
        op_list = build_operation_list(Identifier("cat.jpg"), fmt)

        assert op_list.identifier == Identifier("cat.jpg")
        assert len(op_list) == 3
        crop, scale, encode = op_list.operations
        assert isinstance(crop, CropToSquare)
        assert isinstance(scale, ScaleByPixels)
        assert (scale.width, scale.height, scale.mode) == (256, 256, ScaleMode.ASPECT_FIT_INSIDE)
        assert isinstance(encode, Encode)
        assert encode.format == fmt

    def test_deterministic(self) -> None:
        fmt = Format.get("jpg")
        first = build_operation_list(Identifier("cat.jpg"), fmt)
        second = build_operation_list(Identifier("cat.jpg"), fmt)

        assert first == second
        assert first.cache_key() == second.cache_key()

    def test_result_is_immutable(self) -> None:
        op_list = build_operation_list(Identifier("cat.jpg"), Format.get("jpg"))
        with pytest.raises(Exception):
            op_list.operations = ()  # type: ignore[misc]


class TestThumbnailCallback:
    """Tests for the authorization checkpoints."""

    def _resource(self, make_request, delegate_class: type[Delegate] | None = None) -> ThumbnailResource:
        request, response, context = make_request("http://localhost/thumbs?identifier=x.jpg")
        delegate = delegate_class(context) if delegate_class else None
        resource = ThumbnailResource()
        resource.setup(request, response, context, delegate=delegate)
        return resource

    def test_no_decision_allows_without_mutation(self, make_request) -> None:
        resource = self._resource(make_request)
        callback = ThumbnailCallback(resource)

        assert callback.authorize_before_access() is True
        assert callback.authorize() is True
        assert resource.response.status == 200
        assert resource.response.headers == {}

    def test_deny_before_access(self, make_request) -> None:
        resource = self._resource(make_request, DenyBeforeAccessDelegate)
        callback = ThumbnailCallback(resource)

        assert callback.authorize_before_access() is False
        assert resource.response.status == 403
        assert resource.response.get_header("Cache-Control") == "no-cache"

    def test_redirect_on_authorize(self, make_request) -> None:
        resource = self._resource(make_request, RedirectDelegate)
        callback = ThumbnailCallback(resource)

        assert callback.authorize_before_access() is True
        assert callback.authorize() is False
        assert resource.response.status == 303
        assert resource.response.get_header("Location") == "https://example.org/login"

    def test_unauthorized_sets_challenge(self, make_request) -> None:
        resource = self._resource(make_request)
        factory = MagicMock()
        factory.new_authorizer.return_value.authorize.return_value = AuthInfo.unauthorized(
            'Basic realm="thumbs"'
        )
        callback = ThumbnailCallback(resource, authorizer_factory=factory)

        assert callback.authorize() is False
        assert resource.response.status == 401
        assert resource.response.get_header("WWW-Authenticate") == 'Basic realm="thumbs"'

    def test_explicit_authorization_allows(self, make_request) -> None:
        resource = self._resource(make_request)
        factory = MagicMock()
        factory.new_authorizer.return_value.authorize.return_value = AuthInfo.authorized()
        callback = ThumbnailCallback(resource, authorizer_factory=factory)

        assert callback.authorize() is True
        assert resource.response.status == 200

    def test_errors_propagate(self, make_request) -> None:
        resource = self._resource(make_request, FailingDelegate)
        callback = ThumbnailCallback(resource)

        with pytest.raises(RuntimeError, match="policy script crashed"):
            callback.authorize_before_access()

    def test_notifications_are_noops(self, make_request) -> None:
        resource = self._resource(make_request)
        callback = ThumbnailCallback(resource)

        callback.source_accessed(MagicMock())
        callback.info_available(MagicMock())
        callback.will_stream_image_from_variant_cache()
        callback.will_process_image(MagicMock())

        assert resource.response.status == 200
        assert resource.response.headers == {}


class TestDoGet:
    """Tests for the GET handler."""

    def test_writes_jpeg_thumbnail(self, resource: ThumbnailResource) -> None:
        resource.do_init()
        resource.do_get()

        response = resource.response
        assert response.status == 200
        assert response.get_header("Content-Type") == "image/jpeg"
        image = Image.open(BytesIO(response.body))
        assert image.format == "JPEG"
        assert image.size == (256, 256)

    def test_does_not_close_body_stream(self, resource: ThumbnailResource) -> None:
        resource.do_get()
        assert not resource.response.open_body_stream().closed

    def test_sets_content_type_before_delegating(self, resource: ThumbnailResource) -> None:
        seen: dict[str, object] = {}

        def fake_handle(stream) -> None:
            seen["content_type"] = resource.response.get_header("Content-Type")
            seen["committed"] = resource.response.is_committed

        with patch("thumbnailer.resources.thumbnail.ImageRequestHandler.handle") as handle:
            handle.side_effect = fake_handle
            resource.do_get()

        handle.assert_called_once()
        assert seen == {"content_type": "image/jpeg", "committed": False}

    def test_hands_response_stream_to_pipeline(self, resource: ThumbnailResource) -> None:
        with patch("thumbnailer.resources.thumbnail.ImageRequestHandler.handle") as handle:
            resource.do_get()

        handle.assert_called_once_with(resource.response.open_body_stream())

    def test_delegates_operation_list(self, resource: ThumbnailResource) -> None:
        resource.do_get()

        assert resource.request_context.operation_list == build_operation_list(
            Identifier("my-image.jpg"), Format.get("jpg")
        )

    def test_missing_identifier_never_reaches_pipeline(self, make_request, services) -> None:
        request, response, context = make_request("http://localhost/thumbs")
        resource = ThumbnailResource()
        resource.setup(request, response, context, services=services)

        with patch("thumbnailer.resources.thumbnail.ImageRequestHandler.handle") as handle:
            with pytest.raises(ResourceError):
                resource.do_get()

        handle.assert_not_called()
        assert response.headers == {}

    def test_png_format(self, resource: ThumbnailResource, app_config: Configuration) -> None:
        app_config.set_property(FORMAT_CONFIG_KEY, "png")
        resource.do_get()

        assert resource.response.get_header("Content-Type") == "image/png"
        assert Image.open(BytesIO(resource.response.body)).format == "PNG"
