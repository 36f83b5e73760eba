"""Shared constants for the configuration manager package."""
from __future__ import annotations

import os
from pathlib import Path

MODULE_DIR = Path(__file__).resolve().parent
SCRIPT_DIR = MODULE_DIR.parent.parent.resolve()
CONF_DIR = SCRIPT_DIR / "conf"
DEFAULT_CONFIG_PATH = CONF_DIR / "config.json"
DEFAULT_LOCAL_CONFIG_PATH = CONF_DIR / "config.local.json"

SENSITIVE_CONFIG_KEYS = {"llm_api_key", "vertex_access_token"}

DEFAULT_WORDS_PER_SEGMENT = 25
DEFAULT_CHUNKING_STRATEGY = "greedy"
VALID_CHUNKING_STRATEGIES = {"greedy", "sliding_window"}

# Kept slightly below the hosting platform's execution limit so a slow
# provider call fails its own segment instead of the whole request.
DEFAULT_IMAGE_TIMEOUT_SECONDS = 55.0
# Provider calls in flight per run; the timeout clock starts once a call holds a slot.
DEFAULT_IMAGE_MAX_CONCURRENCY = 4

DEFAULT_IMAGE_PROVIDER = "vertex"
DEFAULT_ASPECT_RATIO = "9:16"
VALID_ASPECT_RATIOS = ("1:1", "9:16", "16:9")
DEFAULT_IMAGE_SIZE = "1024x1024"
DEFAULT_VERTEX_LOCATION = "us-central1"
DEFAULT_DRAWTHINGS_URL = os.environ.get("DRAWTHINGS_URL", "http://127.0.0.1:7860")

DEFAULT_LLM_URL = os.environ.get("OLLAMA_URL", "http://127.0.0.1:11434/api/chat")
DEFAULT_MODEL = "gpt-oss:120b-cloud"

DEFAULT_API_HOST = "127.0.0.1"
DEFAULT_API_PORT = 8000

ENV_FILE_VARIABLE = "SEGMENT_STUDIO_ENV_FILE"
DOTENV_FILENAMES = (".env", ".env.local")

__all__ = [
    "CONF_DIR",
    "DEFAULT_API_HOST",
    "DEFAULT_API_PORT",
    "DEFAULT_ASPECT_RATIO",
    "DEFAULT_CHUNKING_STRATEGY",
    "DEFAULT_CONFIG_PATH",
    "DEFAULT_DRAWTHINGS_URL",
    "DEFAULT_IMAGE_MAX_CONCURRENCY",
    "DEFAULT_IMAGE_PROVIDER",
    "DEFAULT_IMAGE_SIZE",
    "DEFAULT_IMAGE_TIMEOUT_SECONDS",
    "DEFAULT_LLM_URL",
    "DEFAULT_LOCAL_CONFIG_PATH",
    "DEFAULT_MODEL",
    "DEFAULT_VERTEX_LOCATION",
    "DEFAULT_WORDS_PER_SEGMENT",
    "DOTENV_FILENAMES",
    "ENV_FILE_VARIABLE",
    "MODULE_DIR",
    "SCRIPT_DIR",
    "SENSITIVE_CONFIG_KEYS",
    "VALID_ASPECT_RATIOS",
    "VALID_CHUNKING_STRATEGIES",
]
