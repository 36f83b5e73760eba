"""High-level configuration management for segment-studio."""
from __future__ import annotations

from .constants import (
    CONF_DIR,
    DEFAULT_API_HOST,
    DEFAULT_API_PORT,
    DEFAULT_ASPECT_RATIO,
    DEFAULT_CHUNKING_STRATEGY,
    DEFAULT_CONFIG_PATH,
    DEFAULT_IMAGE_MAX_CONCURRENCY,
    DEFAULT_IMAGE_PROVIDER,
    DEFAULT_IMAGE_SIZE,
    DEFAULT_IMAGE_TIMEOUT_SECONDS,
    DEFAULT_LOCAL_CONFIG_PATH,
    DEFAULT_MODEL,
    DEFAULT_VERTEX_LOCATION,
    DEFAULT_WORDS_PER_SEGMENT,
    SENSITIVE_CONFIG_KEYS,
    VALID_ASPECT_RATIOS,
    VALID_CHUNKING_STRATEGIES,
)
from .dotenv_files import apply_dotenv_files, dotenv_candidates
from .loader import get_settings, load_configuration, load_settings, reset_settings
from .settings import EnvironmentOverrides, SegmentStudioSettings

__all__ = [
    "CONF_DIR",
    "DEFAULT_API_HOST",
    "DEFAULT_API_PORT",
    "DEFAULT_ASPECT_RATIO",
    "DEFAULT_CHUNKING_STRATEGY",
    "DEFAULT_CONFIG_PATH",
    "DEFAULT_IMAGE_MAX_CONCURRENCY",
    "DEFAULT_IMAGE_PROVIDER",
    "DEFAULT_IMAGE_SIZE",
    "DEFAULT_IMAGE_TIMEOUT_SECONDS",
    "DEFAULT_LOCAL_CONFIG_PATH",
    "DEFAULT_MODEL",
    "DEFAULT_VERTEX_LOCATION",
    "DEFAULT_WORDS_PER_SEGMENT",
    "EnvironmentOverrides",
    "SENSITIVE_CONFIG_KEYS",
    "SegmentStudioSettings",
    "VALID_ASPECT_RATIOS",
    "VALID_CHUNKING_STRATEGIES",
    "apply_dotenv_files",
    "dotenv_candidates",
    "get_settings",
    "load_configuration",
    "load_settings",
    "reset_settings",
]
