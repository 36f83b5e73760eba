"""segment-studio: sentence-aware text segmentation and per-segment image generation."""

__version__ = "0.1.0"

__all__ = ["__version__"]
