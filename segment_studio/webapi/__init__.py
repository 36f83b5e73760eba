"""FastAPI surface for segment-studio."""

from .application import create_app

__all__ = ["create_app"]
