"""Shared fixtures for segment-studio API route tests."""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from segment_studio.webapi.application import create_app
from segment_studio.webapi.dependencies import get_provider_registry, get_settings


@pytest.fixture
def api_client(fake_registry, settings) -> Iterator[TestClient]:
    """Yield a client whose provider table only holds the recording provider."""

    app = create_app()
    app.dependency_overrides[get_provider_registry] = lambda: fake_registry
    app.dependency_overrides[get_settings] = lambda: settings

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()
