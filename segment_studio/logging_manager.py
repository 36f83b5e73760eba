"""Structured JSON logging for segment-studio.

Every record carries the active pipeline context (run, stage, segment,
provider) pulled from a context variable, so asyncio tasks spawned for
individual segments log with their own ``segment_index`` without threading
it through every call.
"""

from __future__ import annotations

import contextlib
import contextvars
import json
import logging
import os
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Dict, Iterator, Mapping, Optional

LOGGER_NAME = "segment_studio"
DEFAULT_LOG_LEVEL = logging.INFO
LOG_DIR = Path(
    os.environ.get("SEGMENT_STUDIO_LOG_DIR") or Path(__file__).resolve().parent.parent / "log"
)
LOG_FILE = LOG_DIR / "app.log"

CONTEXT_FIELDS: tuple[str, ...] = (
    "correlation_id",
    "run_id",
    "stage",
    "segment_index",
    "provider",
    "model",
    "event",
    "duration_ms",
    "status",
)

# Attributes every LogRecord has; anything else arrived through ``extra``.
_RECORD_ATTRIBUTES = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", (), None).__dict__
) | {"message", "asctime", "console_suppress"}

_context: contextvars.ContextVar[Mapping[str, object]] = contextvars.ContextVar(
    "segment_studio_log_context", default={}
)
_root: Optional[logging.Logger] = None


class JSONLogFormatter(logging.Formatter):
    """One JSON object per line: core fields, pipeline context, then extras."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        payload: Dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                payload[name] = value

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRIBUTES and key not in CONTEXT_FIELDS
        }
        if extra:
            payload["extra"] = extra
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class LogContextFilter(logging.Filter):
    """Copy the active pipeline context onto records that do not set it."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401
        for key, value in _context.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


class ConsoleSuppressFilter(logging.Filter):
    """Keep ``console_suppress`` records in the log file only."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401
        return not getattr(record, "console_suppress", False)


def _build_handlers(log_file: Optional[Path]) -> list[logging.Handler]:
    console = logging.StreamHandler()
    console.addFilter(ConsoleSuppressFilter())
    handlers: list[logging.Handler] = [console]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(RotatingFileHandler(log_file, maxBytes=5 * 1024 * 1024, backupCount=3))

    formatter = JSONLogFormatter()
    context_filter = LogContextFilter()
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(context_filter)
    return handlers


def setup_logging(level: int = DEFAULT_LOG_LEVEL, *, log_file: Optional[Path] = LOG_FILE) -> logging.Logger:
    """Attach the JSON handlers to the ``segment_studio`` logger once."""

    global _root
    if _root is None:
        root = logging.getLogger(LOGGER_NAME)
        root.propagate = False
        for handler in _build_handlers(log_file):
            root.addHandler(handler)
        _root = root
    set_level(level=level)
    return _root


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return the package logger, or its ``name`` child."""

    root = _root or setup_logging()
    return root.getChild(name) if name else root


def set_level(*, debug: bool = False, level: Optional[int] = None) -> int:
    """Apply ``level`` (or DEBUG/INFO from ``debug``) to the logger and its handlers."""

    resolved = level if level is not None else (logging.DEBUG if debug else DEFAULT_LOG_LEVEL)
    root = logging.getLogger(LOGGER_NAME)
    root.setLevel(resolved)
    for handler in root.handlers:
        handler.setLevel(resolved)
    return resolved


def get_log_context() -> Dict[str, object]:
    return dict(_context.get())


@contextlib.contextmanager
def log_context(**values: object) -> Iterator[None]:
    """Add ``values`` to the pipeline context for the duration of the block."""

    merged = dict(_context.get())
    merged.update({key: value for key, value in values.items() if value is not None})
    token = _context.set(merged)
    try:
        yield
    finally:
        _context.reset(token)


def bind_run(*, correlation_id: Optional[str] = None, run_id: Optional[str] = None) -> None:
    """Set run identifiers for the current task unless they are already bound."""

    current = _context.get()
    updates = {
        key: value
        for key, value in (("correlation_id", correlation_id), ("run_id", run_id))
        if value is not None and key not in current
    }
    if updates:
        _context.set({**current, **updates})


def console_error(message: str, *args: object, logger_obj: Optional[logging.Logger] = None) -> None:
    """Log an operator-facing error (shown on the console and in the file)."""

    (logger_obj or get_logger()).error(message, *args)


__all__ = [
    "JSONLogFormatter",
    "LogContextFilter",
    "bind_run",
    "console_error",
    "get_log_context",
    "get_logger",
    "log_context",
    "set_level",
    "setup_logging",
]
