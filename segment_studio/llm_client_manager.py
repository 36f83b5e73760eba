"""Client acquisition helpers for prompt enrichment."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional, Tuple

from segment_studio import config_manager as cfg
from segment_studio.llm_client import ClientSettings, LLMClient, create_client


def _default_settings() -> ClientSettings:
    return ClientSettings.from_settings(cfg.get_settings())


def acquire_client(client: Optional[LLMClient]) -> Tuple[LLMClient, bool]:
    """Return an ``LLMClient`` and a flag indicating whether the caller owns it."""

    if client is not None:
        return client, False
    settings = _default_settings()
    created = create_client(
        model=settings.model,
        api_url=settings.api_url,
        api_key=settings.api_key,
        debug=settings.debug,
    )
    return created, True


def release_client(client: LLMClient, owns_client: bool) -> None:
    """Release ``client`` if it was created by :func:`acquire_client`."""

    if owns_client:
        client.close()


@contextmanager
def client_scope(client: Optional[LLMClient]) -> Iterator[LLMClient]:
    """Context manager that yields a managed ``LLMClient`` instance."""

    resolved, owns_client = acquire_client(client)
    try:
        yield resolved
    finally:
        release_client(resolved, owns_client)


__all__ = ["acquire_client", "client_scope", "release_client"]
