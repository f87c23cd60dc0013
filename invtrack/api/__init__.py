"""HTTP adapter over the build services."""

from .app import create_app

__all__ = ["create_app"]
