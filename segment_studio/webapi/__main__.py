"""Run the segment-studio API under uvicorn.

Host, port and reload default to the ``api_*`` settings so the same values
can come from ``conf/config.json`` or ``SEGMENT_STUDIO_API_*`` variables;
flags given on the command line win.
"""

from __future__ import annotations

import argparse
from typing import Any, Dict, Optional, Sequence

import uvicorn

from .. import config_manager as cfg
from .. import logging_manager as log_mgr

APP_FACTORY = "segment_studio.webapi.application:create_app"
UVICORN_LOG_LEVELS = ("critical", "error", "warning", "info", "debug", "trace")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the segment-studio API with uvicorn")
    parser.add_argument("--config", default=None, help="Path to a JSON configuration file.")
    parser.add_argument("--host", default=None, help="Bind address (default: api_host setting).")
    parser.add_argument("--port", type=int, default=None, help="TCP port (default: api_port setting).")
    parser.add_argument(
        "--reload",
        action="store_true",
        default=None,
        help="Restart on code changes (default: api_reload setting).",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=UVICORN_LOG_LEVELS,
        help="uvicorn log level (default: debug when the debug setting is on, else info).",
    )
    return parser


def resolve_server_options(
    args: argparse.Namespace, settings: cfg.SegmentStudioSettings
) -> Dict[str, Any]:
    """Merge command line flags over the API settings."""

    return {
        "host": args.host or settings.api_host,
        "port": args.port if args.port is not None else settings.api_port,
        "reload": settings.api_reload if args.reload is None else args.reload,
        "log_level": args.log_level or ("debug" if settings.debug else "info"),
    }


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    settings = cfg.load_settings(args.config)
    options = resolve_server_options(args, settings)
    log_mgr.get_logger("webapi").info(
        "Starting API on %s:%s",
        options["host"],
        options["port"],
        extra={"event": "webapi.server.start", "reload": options["reload"]},
    )
    uvicorn.run(APP_FACTORY, factory=True, **options)


if __name__ == "__main__":  # pragma: no cover - CLI integration
    try:
        main()
    except KeyboardInterrupt:  # pragma: no cover - user initiated shutdown
        log_mgr.get_logger("webapi").info("Server interrupted by user")
