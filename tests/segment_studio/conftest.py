"""Shared fixtures for segment-studio tests."""

from __future__ import annotations

import threading
import time
from typing import Callable, Dict, List, Optional

import pytest

from segment_studio import config_manager as cfg
from segment_studio.errors import ImageGenerationError
from segment_studio.images.providers import (
    ImageProviderRegistry,
    ImageRequest,
    ImageResponse,
    ProviderConfig,
)


class RecordingProvider:
    """In-memory provider that records requests and fails on demand."""

    name = "fake"

    def __init__(
        self,
        *,
        fail_when: Optional[Callable[[str], bool]] = None,
        delays: Optional[Dict[str, float]] = None,
        default_delay: float = 0.0,
        image: str = "aW1hZ2U=",
    ) -> None:
        self.requests: List[ImageRequest] = []
        self.max_active = 0
        self._active = 0
        self._fail_when = fail_when or (lambda prompt: "fail" in prompt)
        self._delays = delays or {}
        self._default_delay = default_delay
        self._image = image
        self._lock = threading.Lock()

    @property
    def prompts(self) -> List[str]:
        return [request.prompt for request in self.requests]

    def generate(self, request: ImageRequest) -> ImageResponse:
        with self._lock:
            self.requests.append(request)
            self._active += 1
            self.max_active = max(self.max_active, self._active)
        try:
            delay = self._delays.get(request.prompt, self._default_delay)
            if delay:
                time.sleep(delay)
            if self._fail_when(request.prompt):
                raise ImageGenerationError("upstream exploded", provider=self.name, status_code=500)
            return ImageResponse(image_base64=self._image)
        finally:
            with self._lock:
                self._active -= 1


def build_registry(provider: RecordingProvider, dimension_format: str = "size") -> ImageProviderRegistry:
    return ImageProviderRegistry(
        [
            ProviderConfig(
                key="fake",
                display_name="Fake Images",
                dimension_format=dimension_format,
                models=("fake-model",),
                default_models={"performance": "fake-model", "quality": "fake-model"},
                factory=lambda: provider,
            )
        ]
    )


@pytest.fixture
def recording_provider() -> RecordingProvider:
    return RecordingProvider()


@pytest.fixture
def fake_registry(recording_provider: RecordingProvider) -> ImageProviderRegistry:
    return build_registry(recording_provider)


@pytest.fixture
def settings() -> cfg.SegmentStudioSettings:
    return cfg.SegmentStudioSettings()


@pytest.fixture(autouse=True)
def _reset_active_settings():
    yield
    cfg.reset_settings()


@pytest.fixture
def story_config_payload() -> dict:
    return {
        "identity_core": {
            "name": "Mira",
            "base_age": 30,
            "origin": "a coastal village",
            "domains": "sailing and cartography",
            "values": "curiosity",
            "hair_general": "short silver hair",
            "demeanor": "calm",
            "age_progression": {
                "enabled": True,
                "milestones": {
                    "0-2": {"age": 8, "description": "childhood"},
                    "3+": {"age": 40, "description": "captain years"},
                },
            },
        },
        "style_throughline": {
            "art_style": "watercolor illustration",
            "mood": "wistful",
            "color_palette_base": "muted blues",
        },
        "camera_baseline": {
            "perspective": "wide shot",
            "lens_mm": 35,
            "composition": "rule of thirds",
            "depth_of_field": "shallow depth of field",
        },
        "global_constraints": "no text in the image",
    }


@pytest.fixture
def provider_factory() -> Callable[..., RecordingProvider]:
    return RecordingProvider


@pytest.fixture
def registry_factory() -> Callable[..., ImageProviderRegistry]:
    return build_registry
