"""Server-specific test fixtures."""

from __future__ import annotations

import pytest
from starlette.testclient import TestClient

from sparkledger.server.app import create_app
from sparkledger.server.config import clear_settings_cache
from sparkledger.server.metrics import reset_metrics_collector


@pytest.fixture
def clean_server_settings(clean_env):
    """Reset server settings between tests."""
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def clean_metrics():
    reset_metrics_collector()
    yield
    reset_metrics_collector()


@pytest.fixture
def client(engine, clean_server_settings, clean_metrics) -> TestClient:
    """Client for an app serving the in-memory engine."""
    return TestClient(create_app(engine), raise_server_exceptions=False)
