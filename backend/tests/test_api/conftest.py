"""
Shared pytest fixtures for API tests.

The application lifespan runs inside TestClient; the registry it creates is
then swapped for one bound to a per-test database so tests stay isolated.
"""
import pytest
from fastapi.testclient import TestClient

from main import app
from apns_gateway.core.config import settings

AUTH = (settings.API_AUTH_USER, settings.API_AUTH_PASS)


@pytest.fixture
def api_client(registry):
    """TestClient with an isolated registry and APNS unconfigured."""
    with TestClient(app) as client:
        app.state.registry = registry
        app.state.orchestrator = None
        yield client
