"""Command line interface for segment-studio."""

from .main import run_cli

__all__ = ["run_cli"]
