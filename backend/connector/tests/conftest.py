"""
Shared fixtures for the shop connector test suite.
"""

from typing import List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from connector.app import create_app
from connector.config import ConnectorConfig
from connector.credentials.store import CredentialStore
from connector.integrations.tiktok.auth_client import (
    AuthorizationServerClient,
    TokenExchangeError,
    TokenGrant,
)
from connector.utils.encryption import generate_key

STATE_SECRET = "test-state-secret-not-real"
FRONTEND_URL = "https://frontend.example.test/connected"


class FakeAuthClient(AuthorizationServerClient):
    """In-memory authorization server: records codes, returns a fixed grant."""

    def __init__(self, grant: Optional[TokenGrant] = None, error: Optional[Exception] = None):
        self.grant = grant or TokenGrant(
            access_token="test_access_token_not_real_aaaa",
            refresh_token="test_refresh_token_not_real_bbbb",
            expires_in_seconds=3600,
            external_account_id="open-id-123",
            display_name="Test Seller",
        )
        self.error = error
        self.exchanged_codes: List[str] = []

    def build_authorization_url(self, state: str) -> str:
        return f"https://auth.example.test/authorize?app_key=test-app&state={state}"

    async def exchange_code(self, code: str) -> TokenGrant:
        self.exchanged_codes.append(code)
        if self.error is not None:
            raise self.error
        return self.grant

    async def refresh_access_token(self, refresh_token: str) -> TokenGrant:
        if self.error is not None:
            raise self.error
        return self.grant


def _make_config(**overrides) -> ConnectorConfig:
    values = dict(
        app_key="test-app-key",
        app_secret="test-app-secret-not-real",
        encryption_key=generate_key(),
        state_secret=STATE_SECRET,
        callback_url="https://connector.example.test/connect/tiktok/callback",
        frontend_url=FRONTEND_URL,
        database_url="sqlite:///:memory:",
        rate_limit_enabled=False,
    )
    values.update(overrides)
    return ConnectorConfig(**values)


@pytest.fixture
def state_secret() -> str:
    return STATE_SECRET


@pytest.fixture
def frontend_url() -> str:
    return FRONTEND_URL


@pytest.fixture
def config_factory():
    """Build a ConnectorConfig with test defaults; keyword overrides win."""
    return _make_config


@pytest.fixture
def auth_client_factory():
    """Build a fake authorization server with an optional grant or error."""
    return FakeAuthClient


@pytest.fixture
def encryption_key() -> bytes:
    return generate_key()


@pytest.fixture
def engine():
    """In-memory SQLite engine shared by every session in a test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine, encryption_key) -> CredentialStore:
    return CredentialStore(engine, encryption_key)


@pytest.fixture
def auth_client() -> FakeAuthClient:
    return FakeAuthClient()


@pytest.fixture
def config(encryption_key) -> ConnectorConfig:
    return _make_config(encryption_key=encryption_key)


@pytest.fixture
def app(config, store, auth_client):
    return create_app(config, store, auth_client=auth_client)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def exchange_failure_client() -> FakeAuthClient:
    return FakeAuthClient(error=TokenExchangeError("TikTok token exchange failed: HTTP 500"))
