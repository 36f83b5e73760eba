"""Dependency wiring for the FastAPI application."""

from __future__ import annotations

from functools import lru_cache

from fastapi import Depends

from .. import config_manager as cfg
from ..images.enrichment import PromptEnricher
from ..images.providers import ImageProviderRegistry, build_default_registry


def get_settings() -> cfg.SegmentStudioSettings:
    """Return the active application settings."""

    return cfg.get_settings()


@lru_cache
def get_provider_registry() -> ImageProviderRegistry:
    """Return the process-wide provider table built from the active settings."""

    return build_default_registry(cfg.get_settings())


def get_prompt_enricher(
    settings: cfg.SegmentStudioSettings = Depends(get_settings),
) -> PromptEnricher | None:
    """Return an enricher when prompt enrichment is switched on."""

    if not settings.enrich_prompts:
        return None
    return PromptEnricher(enabled=True)


__all__ = ["get_prompt_enricher", "get_provider_registry", "get_settings"]
