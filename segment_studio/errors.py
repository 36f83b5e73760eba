"""Exception hierarchy for segmentation, prompting and image generation."""

from __future__ import annotations

from typing import Sequence


class SegmentStudioError(RuntimeError):
    """Base exception raised by segment-studio components."""


class ChunkingError(SegmentStudioError, ValueError):
    """Raised when chunking parameters are invalid."""


class StoryConfigError(SegmentStudioError, ValueError):
    """Raised when a story configuration payload fails validation."""

    def __init__(self, message: str, *, errors: Sequence[dict] | None = None) -> None:
        super().__init__(message)
        self.errors = list(errors or ())


class EnrichmentError(SegmentStudioError):
    """Raised internally when the text-generation model yields no usable prompt."""


class ImageGenerationError(SegmentStudioError):
    """Raised when an image provider fails or returns an unusable payload."""

    def __init__(
        self,
        message: str,
        *,
        provider: str | None = None,
        status_code: int | None = None,
        timeout: bool = False,
    ) -> None:
        self.provider = provider
        self.status_code = status_code
        self.timeout = timeout

        detail = []
        if provider:
            detail.append(f"provider={provider}")
        if status_code is not None:
            detail.append(f"status={status_code}")
        if timeout:
            detail.append("timeout")
        detail_str = f" ({', '.join(detail)})" if detail else ""
        super().__init__(f"{message}{detail_str}")


class InvalidRequestError(SegmentStudioError, ValueError):
    """Raised when a generation request is malformed before any work starts."""


__all__ = [
    "ChunkingError",
    "EnrichmentError",
    "ImageGenerationError",
    "InvalidRequestError",
    "SegmentStudioError",
    "StoryConfigError",
]
