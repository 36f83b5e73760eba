"""Application factory for the FastAPI backend."""

from __future__ import annotations

import logging
import os
import re

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from .. import config_manager as cfg
from .. import logging_manager as log_mgr
from .routes import router

LOGGER = logging.getLogger(__name__)

DEFAULT_DEVSERVER_ORIGINS = (
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
)


def _parse_cors_origins(raw_value: str | None) -> tuple[list[str], bool]:
    """Return the allowed origins and whether credentials are supported."""

    if raw_value is None:
        return list(DEFAULT_DEVSERVER_ORIGINS), True

    tokens = [token.strip() for token in re.split(r"[\s,]+", raw_value) if token.strip()]
    if not tokens:
        return [], False
    if "*" in tokens:
        return ["*"], False
    return tokens, True


def _configure_cors(app: FastAPI) -> None:
    allowed_origins, allow_credentials = _parse_cors_origins(
        os.environ.get("SEGMENT_STUDIO_CORS_ORIGINS")
    )
    if not allowed_origins:
        LOGGER.info("CORS middleware disabled; no allowed origins configured.")
        return

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )


def create_app() -> FastAPI:
    """Instantiate and configure the FastAPI application."""

    settings = cfg.get_settings()
    log_mgr.setup_logging()
    log_mgr.set_level(debug=settings.debug)
    app = FastAPI(title="segment-studio API", version=__version__)

    _configure_cors(app)

    @app.get("/_health", tags=["health"])
    def healthcheck() -> dict[str, str]:
        """Simple healthcheck endpoint for smoke-testing the server."""

        return {"status": "ok"}

    app.include_router(router, prefix="/api", tags=["segments"])
    return app


__all__ = ["create_app"]
