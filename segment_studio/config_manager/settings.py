"""Pydantic models and helper utilities for configuration values."""
from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    ValidationError,
    field_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from segment_studio import logging_manager

from .constants import (
    DEFAULT_API_HOST,
    DEFAULT_API_PORT,
    DEFAULT_ASPECT_RATIO,
    DEFAULT_CHUNKING_STRATEGY,
    DEFAULT_DRAWTHINGS_URL,
    DEFAULT_IMAGE_MAX_CONCURRENCY,
    DEFAULT_IMAGE_PROVIDER,
    DEFAULT_IMAGE_SIZE,
    DEFAULT_IMAGE_TIMEOUT_SECONDS,
    DEFAULT_LLM_URL,
    DEFAULT_MODEL,
    DEFAULT_VERTEX_LOCATION,
    DEFAULT_WORDS_PER_SEGMENT,
    VALID_ASPECT_RATIOS,
    VALID_CHUNKING_STRATEGIES,
)

logger = logging_manager.get_logger()


class SegmentStudioSettings(BaseModel):
    """Typed representation of the application configuration."""

    model_config = ConfigDict(extra="allow")

    words_per_segment: int = Field(default=DEFAULT_WORDS_PER_SEGMENT, ge=1)
    chunking_strategy: str = DEFAULT_CHUNKING_STRATEGY
    image_provider: str = DEFAULT_IMAGE_PROVIDER
    image_model: Optional[str] = None
    image_timeout_seconds: float = Field(default=DEFAULT_IMAGE_TIMEOUT_SECONDS, gt=0)
    image_max_concurrency: int = Field(default=DEFAULT_IMAGE_MAX_CONCURRENCY, ge=1)
    aspect_ratio: str = DEFAULT_ASPECT_RATIO
    image_size: str = DEFAULT_IMAGE_SIZE
    vertex_project: Optional[str] = None
    vertex_location: str = DEFAULT_VERTEX_LOCATION
    vertex_access_token: Optional[SecretStr] = None
    drawthings_url: str = DEFAULT_DRAWTHINGS_URL
    llm_model: str = DEFAULT_MODEL
    llm_url: str = DEFAULT_LLM_URL
    llm_api_key: Optional[SecretStr] = None
    enrich_prompts: bool = False
    debug: bool = False
    api_host: str = DEFAULT_API_HOST
    api_port: int = Field(default=DEFAULT_API_PORT, ge=1, le=65535)
    api_reload: bool = False

    @field_validator("chunking_strategy")
    @classmethod
    def _check_strategy(cls, value: str) -> str:
        normalized = (value or "").strip().lower()
        if normalized not in VALID_CHUNKING_STRATEGIES:
            raise ValueError(
                f"chunking_strategy must be one of {sorted(VALID_CHUNKING_STRATEGIES)}"
            )
        return normalized

    @field_validator("aspect_ratio")
    @classmethod
    def _check_aspect_ratio(cls, value: str) -> str:
        if value not in VALID_ASPECT_RATIOS:
            raise ValueError(f"aspect_ratio must be one of {list(VALID_ASPECT_RATIOS)}")
        return value


class EnvironmentOverrides(BaseSettings):
    """Configuration overrides sourced from environment variables."""

    model_config = SettingsConfigDict(env_prefix="", env_nested_delimiter="__", extra="ignore")

    words_per_segment: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("SEGMENT_STUDIO_WORDS_PER_SEGMENT")
    )
    chunking_strategy: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("SEGMENT_STUDIO_CHUNKING_STRATEGY")
    )
    image_provider: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("IMAGE_PROVIDER", "SEGMENT_STUDIO_IMAGE_PROVIDER"),
    )
    image_model: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("IMAGE_MODEL", "SEGMENT_STUDIO_IMAGE_MODEL"),
    )
    image_timeout_seconds: Optional[float] = Field(
        default=None,
        validation_alias=AliasChoices(
            "IMAGE_TIMEOUT_SECONDS", "SEGMENT_STUDIO_IMAGE_TIMEOUT_SECONDS"
        ),
    )
    image_max_concurrency: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("SEGMENT_STUDIO_IMAGE_MAX_CONCURRENCY")
    )
    aspect_ratio: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("SEGMENT_STUDIO_ASPECT_RATIO")
    )
    vertex_project: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices(
            "GOOGLE_VERTEX_PROJECT", "GOOGLE_CLOUD_PROJECT", "SEGMENT_STUDIO_VERTEX_PROJECT"
        ),
    )
    vertex_location: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices(
            "GOOGLE_VERTEX_LOCATION", "SEGMENT_STUDIO_VERTEX_LOCATION"
        ),
    )
    vertex_access_token: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices(
            "GOOGLE_VERTEX_ACCESS_TOKEN", "SEGMENT_STUDIO_VERTEX_ACCESS_TOKEN"
        ),
    )
    drawthings_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("DRAWTHINGS_URL", "SEGMENT_STUDIO_DRAWTHINGS_URL"),
    )
    llm_model: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("OLLAMA_MODEL", "SEGMENT_STUDIO_LLM_MODEL"),
    )
    llm_url: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("OLLAMA_URL", "SEGMENT_STUDIO_LLM_URL")
    )
    llm_api_key: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices("OLLAMA_API_KEY", "SEGMENT_STUDIO_LLM_API_KEY"),
    )
    enrich_prompts: Optional[bool] = Field(
        default=None, validation_alias=AliasChoices("SEGMENT_STUDIO_ENRICH_PROMPTS")
    )
    debug: Optional[bool] = Field(
        default=None, validation_alias=AliasChoices("SEGMENT_STUDIO_DEBUG")
    )
    api_host: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("SEGMENT_STUDIO_API_HOST")
    )
    api_port: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("SEGMENT_STUDIO_API_PORT")
    )
    api_reload: Optional[bool] = Field(
        default=None, validation_alias=AliasChoices("SEGMENT_STUDIO_API_RELOAD")
    )


def load_environment_overrides() -> Dict[str, Any]:
    """Return configuration overrides sourced from environment variables."""

    try:
        overrides = EnvironmentOverrides()
    except ValidationError as exc:
        logger.warning(
            "Invalid environment configuration detected; using defaults.",
            extra={
                "event": "config.env.validation_error",
                "error": str(exc),
                "console_suppress": True,
            },
        )
        return {}
    return overrides.model_dump(exclude_none=True)


def apply_settings_updates(
    settings: SegmentStudioSettings, updates: Dict[str, Any]
) -> SegmentStudioSettings:
    """Return a validated copy of ``settings`` updated with ``updates``."""

    if not updates:
        return settings
    payload = settings.model_dump(mode="python")
    payload.update(updates)
    return SegmentStudioSettings.model_validate(payload)


__all__ = [
    "EnvironmentOverrides",
    "SegmentStudioSettings",
    "apply_settings_updates",
    "load_environment_overrides",
]
