"""Pytest fixtures and configuration for test suite

This module provides:
1. Environment defaults applied before the application settings load
2. Per-test SQLite databases for the token registry
3. EC P-256 key material and a gateway identity
4. Factory functions for notifications

Factory Functions:
    - make_notification(**overrides) -> Notification
    - make_template(**overrides) -> NotificationTemplate
"""
import os
import tempfile

# Settings are read at import time; API_AUTH_PASS has no default.
_TEST_ROOT = tempfile.mkdtemp(prefix="apns-gateway-tests-")
os.environ.setdefault("API_AUTH_PASS", "test-password")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{os.path.join(_TEST_ROOT, 'tokens.db')}")
os.environ.setdefault("LOG_DIR", os.path.join(_TEST_ROOT, "logs"))

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from sqlalchemy.orm import sessionmaker

from apns_gateway.core.database import Base, build_engine
from apns_gateway.models import KeyValueEntry  # noqa: F401
from apns_gateway.services.push.models import (
    GatewayIdentity,
    Notification,
    NotificationTemplate,
)
from apns_gateway.services.registry.kv_store import KeyValueStore
from apns_gateway.services.registry.token_registry import TokenRegistry

TEST_TEAM_ID = "TEAMID1234"
TEST_KEY_ID = "KEYID12345"
TEST_TOPIC = "com.example.gateway"
TEST_DEVICE_TOKEN = "a1b2c3d4e5f6a7b8c9d0e1f2a3b4c5d6e7f8a9b0c1d2e3f4a5b6c7d8e9f0a1b2"


# =============================================================================
# Factory Functions for Test Objects
# =============================================================================

def make_template(
    title: str = "Test title",
    body: str = "Test body",
    **overrides
) -> NotificationTemplate:
    """Create a NotificationTemplate with sensible defaults."""
    return NotificationTemplate(title=title, body=body, **overrides)


def make_notification(
    device_token: str = TEST_DEVICE_TOKEN,
    title: str = "Test title",
    body: str = "Test body",
    **overrides
) -> Notification:
    """
    Create a Notification with sensible defaults.

    Example:
        notification = make_notification(badge=3, environment="production")
    """
    return Notification(device_token=device_token, title=title, body=body, **overrides)


# =============================================================================
# Key Material
# =============================================================================

@pytest.fixture
def ec_private_key():
    """Fresh EC P-256 private key."""
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture
def private_key_pem(ec_private_key) -> str:
    """PKCS#8 PEM of ec_private_key, as found in a .p8 file."""
    return ec_private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")


@pytest.fixture
def key_file(tmp_path, private_key_pem) -> str:
    """Temporary .p8 key file."""
    path = tmp_path / "AuthKey_KEYID12345.p8"
    path.write_text(private_key_pem)
    return str(path)


@pytest.fixture
def identity(private_key_pem) -> GatewayIdentity:
    """Sandbox-default gateway identity."""
    return GatewayIdentity(
        team_id=TEST_TEAM_ID,
        key_id=TEST_KEY_ID,
        topic=TEST_TOPIC,
        private_key_pem=private_key_pem,
        use_sandbox=True,
    )


# =============================================================================
# Registry Storage
# =============================================================================

@pytest.fixture(scope="function")
def session_factory(tmp_path):
    """
    Session factory bound to a fresh file-backed SQLite database

    Cleanup:
        Disposes the engine after the test completes
    """
    engine = build_engine(f"sqlite:///{tmp_path / 'registry.db'}")
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    try:
        yield factory
    finally:
        engine.dispose()


@pytest.fixture
def kv_store(session_factory) -> KeyValueStore:
    return KeyValueStore(session_factory)


@pytest.fixture
def registry(kv_store) -> TokenRegistry:
    return TokenRegistry(kv_store)
