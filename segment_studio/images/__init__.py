"""Prompt building, prompt enrichment and image-provider helpers."""

from .enrichment import PromptEnricher
from .prompting import (
    PROMPT_DEFAULTS,
    SCENE_PLACEHOLDER,
    build_enrichment_context,
    build_prompt,
    resolve_age,
    resolve_milestone,
    stable_seed,
)
from .providers import (
    DrawThingsProvider,
    ImageProvider,
    ImageProviderRegistry,
    ImageRequest,
    ImageResponse,
    ProviderConfig,
    VertexImagenProvider,
    build_default_registry,
)

__all__ = [
    "DrawThingsProvider",
    "ImageProvider",
    "ImageProviderRegistry",
    "ImageRequest",
    "ImageResponse",
    "PROMPT_DEFAULTS",
    "PromptEnricher",
    "ProviderConfig",
    "SCENE_PLACEHOLDER",
    "VertexImagenProvider",
    "build_default_registry",
    "build_enrichment_context",
    "build_prompt",
    "resolve_age",
    "resolve_milestone",
    "stable_seed",
]
