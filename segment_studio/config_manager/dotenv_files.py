"""Dotenv discovery applied before environment overrides are read."""
from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional, Tuple

from dotenv import load_dotenv

from segment_studio import logging_manager

from .constants import DOTENV_FILENAMES, ENV_FILE_VARIABLE, SCRIPT_DIR

logger = logging_manager.get_logger()

_APPLIED_FILES: Optional[Tuple[Path, ...]] = None


def dotenv_candidates(root: Path = SCRIPT_DIR) -> List[Path]:
    """Return dotenv paths in precedence order.

    Files named in ``SEGMENT_STUDIO_ENV_FILE`` (``os.pathsep`` separated) come
    first, then ``.env`` and ``.env.local`` in the project root. Because
    variables that are already set are never overwritten, earlier files win.
    """

    explicit = [
        Path(value.strip()).expanduser()
        for value in os.environ.get(ENV_FILE_VARIABLE, "").split(os.pathsep)
        if value.strip()
    ]
    candidates = explicit + [root / name for name in DOTENV_FILENAMES]
    return list(dict.fromkeys(path.resolve() for path in candidates))


def apply_dotenv_files(*, reload: bool = False) -> Tuple[Path, ...]:
    """Copy dotenv values into ``os.environ`` once per process."""

    global _APPLIED_FILES
    if _APPLIED_FILES is not None and not reload:
        return _APPLIED_FILES

    applied = tuple(
        path
        for path in dotenv_candidates()
        if path.is_file() and load_dotenv(path, override=False)
    )
    if applied:
        logger.debug(
            "Applied dotenv files: %s",
            ", ".join(str(path) for path in applied),
            extra={"event": "config.dotenv.applied", "console_suppress": True},
        )
    _APPLIED_FILES = applied
    return applied


__all__ = ["apply_dotenv_files", "dotenv_candidates"]
