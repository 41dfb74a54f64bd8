"""
Shared test configuration and fixtures.
"""

import os
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

TEST_AUTHORIZE_URL = "https://auth.example.test/oauth/authorize"
TEST_TOKEN_URL = "https://oauth2.example.test/token"

# SESSION_SECRET_KEY must exist before importing the app
with patch.dict(
    os.environ,
    {
        "SESSION_SECRET_KEY": "test-secret",
        "BASE_URL": "http://testserver",
        "BLACKBAUD_CLIENT_ID": "test-client-id",
    },
):
    from app.main import app
    from app.oauth.config import OAuthConfig, get_oauth_config
    from app.oauth.dependencies import reset_pending_store
    from app.sessions.repository import reset_session_repository


@pytest.fixture
def oauth_config():
    """OAuth config pointing at test endpoints, with no retry backoff."""
    return OAuthConfig(
        client_id="test-client-id",
        client_secret="test-client-secret",
        base_url="http://testserver",
        authorize_url=TEST_AUTHORIZE_URL,
        token_url=TEST_TOKEN_URL,
        token_retry_backoff_seconds=0,
    )


@pytest.fixture(autouse=True)
def app_state(oauth_config):
    """
    Give every test a clean pending store, session repository and config.

    This fixture runs automatically for every test (autouse=True).
    Modules can override ``oauth_config`` to change the configuration.
    """
    reset_pending_store()
    reset_session_repository()
    app.dependency_overrides[get_oauth_config] = lambda: oauth_config
    yield
    app.dependency_overrides.pop(get_oauth_config, None)
    reset_pending_store()
    reset_session_repository()


@pytest.fixture
def client():
    """Fresh TestClient (and cookie jar) per test."""
    return TestClient(app)
