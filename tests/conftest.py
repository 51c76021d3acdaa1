"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from io import BytesIO
from pathlib import Path
from typing import Generator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from PIL import Image

from thumbnailer.config import Configuration
from thumbnailer.http import Request, Response
from thumbnailer.models import RequestContext
from thumbnailer.pipeline import ImageProcessor, PipelineServices, SourceFactory


def image_bytes(size: tuple[int, int], format: str = "JPEG", mode: str = "RGB", color="green") -> bytes:
    """Encode a solid-color test image."""
    image = Image.new(mode, size, color=color)
    buffer = BytesIO()
    image.save(buffer, format=format)
    return buffer.getvalue()


@pytest.fixture(autouse=True)
def app_config() -> Generator[Configuration, None, None]:
    """Fresh, empty process-wide configuration for every test."""
    config = Configuration()
    Configuration.set_application(config)
    yield config
    Configuration.set_application(None)


@pytest.fixture
def image_dir(tmp_path: Path) -> Path:
    """Directory of source images."""
    images = tmp_path / "images"
    images.mkdir()
    (images / "my-image.jpg").write_bytes(image_bytes((400, 200)))
    (images / "secret.jpg").write_bytes(image_bytes((300, 300), color="red"))
    (images / "portrait.png").write_bytes(
        image_bytes((100, 300), format="PNG", mode="RGBA", color=(0, 0, 255, 128))
    )
    (images / "icon.svg").write_bytes(
        b'<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 24 24">'
        b'<rect width="24" height="24" fill="red"/></svg>'
    )
    return images


@pytest.fixture
def services(app_config: Configuration, image_dir: Path) -> PipelineServices:
    """Pipeline services reading from image_dir, without a variant cache."""
    app_config.set_property("source.static", "filesystem")
    app_config.set_property("source.filesystem.path_prefix", f"{image_dir}/")
    return PipelineServices(
        sources=SourceFactory(app_config),
        processor=ImageProcessor(),
    )


@pytest.fixture
def make_request():
    """Factory for a GET request, a fresh response and a request context."""

    def _make(uri: str = "http://localhost/thumbs") -> tuple[Request, Response, RequestContext]:
        request = Request("GET", uri, client_ip="127.0.0.1")
        context = RequestContext(request_uri=uri, client_ip="127.0.0.1")
        return request, Response(), context

    return _make


@pytest.fixture
def fastapi_app(services: PipelineServices) -> FastAPI:
    """App serving ThumbnailResource without a delegate."""
    from thumbnailer.api import create_app
    from thumbnailer.plugins import PluginHost
    from thumbnailer.resources import ThumbnailResource

    return create_app(PluginHost([ThumbnailResource], services=services))


@pytest.fixture
def api_client(fastapi_app: FastAPI) -> TestClient:
    """Create a test client for the FastAPI app."""
    return TestClient(fastapi_app)
