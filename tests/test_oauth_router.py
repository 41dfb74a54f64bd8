"""
Tests for the sign-up router endpoints.

These drive the full flow through the app: /sign-up sets the session
cookie and redirects, /redirect-auth validates and exchanges via a
respx-mocked token endpoint.
"""

from dataclasses import replace
from urllib.parse import parse_qs, urlparse

import httpx
import pytest
from respx import MockRouter

from app.main import app
from app.oauth.config import get_oauth_config
from app.oauth.dependencies import get_pending_store
from app.sessions.repository import get_session_repository
from tests.conftest import TEST_AUTHORIZE_URL, TEST_TOKEN_URL


TOKEN_JSON = {"access_token": "tok1", "token_type": "bearer", "expires_in": 3600}


def _start_sign_up(client) -> dict[str, list[str]]:
    response = client.get("/sign-up", follow_redirects=False)
    assert response.status_code == 302
    return parse_qs(urlparse(response.headers["location"]).query)


# ============================================================================
# GET /sign-up Tests
# ============================================================================


class TestSignUpEndpoint:
    """Tests for the GET /sign-up endpoint."""

    def test_sign_up_redirects_to_provider(self, client):
        """Test sign-up redirects to the authorize endpoint with all parameters."""
        response = client.get("/sign-up", follow_redirects=False)

        assert response.status_code == 302
        location = urlparse(response.headers["location"])
        assert f"{location.scheme}://{location.netloc}{location.path}" == (
            TEST_AUTHORIZE_URL
        )

        params = parse_qs(location.query)
        assert params["client_id"] == ["test-client-id"]
        assert params["response_type"] == ["code"]
        assert params["redirect_uri"] == ["http://testserver/redirect-auth"]
        assert params["code_challenge_method"] == ["S256"]
        assert len(params["state"][0]) >= 32

    def test_sign_up_sets_session_cookie_and_pending_attempt(self, client):
        params = _start_sign_up(client)

        assert "session" in client.cookies
        assert params["state"][0] in get_pending_store()

    def test_sign_up_without_pkce(self, client, oauth_config):
        app.dependency_overrides[get_oauth_config] = lambda: replace(
            oauth_config, use_pkce=False
        )

        params = _start_sign_up(client)

        assert "code_challenge" not in params

    def test_sign_up_unconfigured_returns_503(self, client, oauth_config):
        """Test sign-up without a client ID returns 503."""
        app.dependency_overrides[get_oauth_config] = lambda: replace(
            oauth_config, client_id=None
        )

        response = client.get("/sign-up", follow_redirects=False)

        assert response.status_code == 503
        assert response.json()["detail"] == "Sign-up is not configured"


# ============================================================================
# GET /redirect-auth Tests
# ============================================================================


@pytest.mark.respx(assert_all_called=False)
class TestRedirectAuthEndpoint:
    """Tests for the GET /redirect-auth endpoint."""

    def test_full_flow_succeeds(self, client, respx_mock: MockRouter):
        """Test a valid callback exchanges the code exactly once."""
        route = respx_mock.post(TEST_TOKEN_URL).mock(
            return_value=httpx.Response(200, json=TOKEN_JSON)
        )
        params = _start_sign_up(client)
        state = params["state"][0]

        response = client.get("/redirect-auth", params={"code": "XYZ", "state": state})

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "success"
        assert data["expires_in"] == 3600
        assert "tok1" not in response.text

        assert route.call_count == 1
        form = parse_qs(route.calls.last.request.content.decode())
        assert form["code"] == ["XYZ"]
        assert form["grant_type"] == ["authorization_code"]
        assert form["redirect_uri"] == ["http://testserver/redirect-auth"]
        assert "code_verifier" in form

    def test_full_flow_establishes_session(self, client, respx_mock: MockRouter):
        respx_mock.post(TEST_TOKEN_URL).mock(
            return_value=httpx.Response(200, json=TOKEN_JSON)
        )
        state = _start_sign_up(client)["state"][0]

        client.get("/redirect-auth", params={"code": "XYZ", "state": state})

        repository = get_session_repository()
        assert len(repository) == 1

    def test_replayed_callback_fails(self, client, respx_mock: MockRouter):
        """Test the same callback cannot be used twice."""
        route = respx_mock.post(TEST_TOKEN_URL).mock(
            return_value=httpx.Response(200, json=TOKEN_JSON)
        )
        state = _start_sign_up(client)["state"][0]
        callback = {"code": "XYZ", "state": state}

        first = client.get("/redirect-auth", params=callback)
        second = client.get("/redirect-auth", params=callback)

        assert first.status_code == 200
        assert second.status_code == 400
        assert second.json()["error"] == "state_mismatch"
        assert route.call_count == 1

    def test_wrong_state_rejected_without_exchange(self, client, respx_mock: MockRouter):
        route = respx_mock.post(TEST_TOKEN_URL).mock(
            return_value=httpx.Response(200, json=TOKEN_JSON)
        )
        _start_sign_up(client)

        response = client.get(
            "/redirect-auth", params={"code": "XYZ", "state": "wrong"}
        )

        assert response.status_code == 400
        data = response.json()
        assert data["status"] == "error"
        assert data["error"] == "state_mismatch"
        assert data["message"]
        assert route.call_count == 0
        assert len(get_pending_store()) == 0

    def test_callback_without_session_cookie_rejected(self, client):
        """Test a callback from a browser that never started sign-up fails."""
        response = client.get(
            "/redirect-auth", params={"code": "XYZ", "state": "abc123"}
        )

        assert response.status_code == 400
        assert response.json()["error"] == "state_mismatch"

    def test_provider_error_never_exchanges(self, client, respx_mock: MockRouter):
        route = respx_mock.post(TEST_TOKEN_URL).mock(
            return_value=httpx.Response(200, json=TOKEN_JSON)
        )
        state = _start_sign_up(client)["state"][0]

        response = client.get(
            "/redirect-auth",
            params={
                "error": "access_denied",
                "error_description": "The user denied access",
                "state": state,
            },
        )

        assert response.status_code == 400
        data = response.json()
        assert data["error"] == "authorization_denied"
        assert "denied access" not in data["message"]
        assert route.call_count == 0

    def test_invalid_grant_surfaces_plain_message(self, client, respx_mock: MockRouter):
        respx_mock.post(TEST_TOKEN_URL).mock(
            return_value=httpx.Response(
                400,
                json={"error": "invalid_grant", "error_description": "secret detail"},
            )
        )
        state = _start_sign_up(client)["state"][0]

        response = client.get("/redirect-auth", params={"code": "XYZ", "state": state})

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_grant"
        assert "secret detail" not in response.text

    def test_network_error_returns_502(self, client, respx_mock: MockRouter):
        route = respx_mock.post(TEST_TOKEN_URL).mock(
            side_effect=httpx.ConnectError("Connection failed")
        )
        state = _start_sign_up(client)["state"][0]

        response = client.get("/redirect-auth", params={"code": "XYZ", "state": state})

        assert response.status_code == 502
        assert response.json()["error"] == "network_error"
        assert route.call_count == 3

    def test_redirect_loop_returns_error_body(self, client, respx_mock: MockRouter):
        route = respx_mock.post(TEST_TOKEN_URL).mock(
            side_effect=httpx.TooManyRedirects("loop")
        )
        state = _start_sign_up(client)["state"][0]

        response = client.get("/redirect-auth", params={"code": "XYZ", "state": state})

        assert response.status_code == 502
        data = response.json()
        assert data["status"] == "error"
        assert data["error"] == "network_error"
        assert route.call_count == 1

    def test_new_sign_up_after_failure_gets_new_state(
        self, client, respx_mock: MockRouter
    ):
        """Test a failed attempt is restarted with a fresh state."""
        respx_mock.post(TEST_TOKEN_URL).mock(
            return_value=httpx.Response(200, json=TOKEN_JSON)
        )
        first_state = _start_sign_up(client)["state"][0]
        client.get("/redirect-auth", params={"error": "access_denied", "state": first_state})

        second_state = _start_sign_up(client)["state"][0]
        response = client.get(
            "/redirect-auth", params={"code": "XYZ", "state": second_state}
        )

        assert second_state != first_state
        assert response.status_code == 200
