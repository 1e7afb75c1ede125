"""HLS stream proxy service."""

from .app import create_app

__all__ = ["create_app"]
