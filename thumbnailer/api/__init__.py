"""FastAPI application for thumbnailer."""

from thumbnailer.api.routes import create_app, create_router

__all__ = ["create_app", "create_router"]
