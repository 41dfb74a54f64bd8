"""
Core domain models for the Blackbaud sign-up flow.

These models represent one OAuth 2.0 authorization-code round trip and are
independent of any infrastructure or delivery mechanism.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal, Mapping

from authlib.oauth2.rfc6749.parameters import prepare_grant_uri
from pydantic import BaseModel, ConfigDict, Field


class FlowState(str, Enum):
    """States of a single callback as it moves through the handler."""

    AWAITING_CALLBACK = "awaiting_callback"
    VALIDATING = "validating"
    EXCHANGING = "exchanging"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (FlowState.SUCCEEDED, FlowState.FAILED)


class ErrorKind(str, Enum):
    """Why a sign-up attempt failed."""

    AUTHORIZATION_DENIED = "authorization_denied"
    STATE_MISMATCH = "state_mismatch"
    NETWORK_ERROR = "network_error"
    INVALID_GRANT = "invalid_grant"


class AuthorizationRequest(BaseModel):
    """
    Outbound authorization request for one sign-up attempt.

    Created fresh for every attempt. The PKCE code verifier is never
    part of this model: only the challenge leaves the server.
    """

    client_id: str = Field(description="OAuth client ID")
    redirect_uri: str = Field(description="Where the provider sends the user back")
    response_type: Literal["code"] = Field(default="code")
    state: str = Field(description="Opaque CSRF token round-tripped by the provider")
    code_challenge: str | None = Field(default=None, description="PKCE challenge")
    code_challenge_method: Literal["S256"] | None = Field(default=None)

    model_config = ConfigDict(frozen=True)

    def to_url(self, authorize_endpoint: str) -> str:
        """
        Render the provider authorization URL.

        Args:
            authorize_endpoint: Provider authorization endpoint

        Returns:
            Fully encoded authorization URL
        """
        extra: dict[str, str] = {}
        if self.code_challenge:
            extra["code_challenge"] = self.code_challenge
            extra["code_challenge_method"] = self.code_challenge_method or "S256"

        return prepare_grant_uri(
            authorize_endpoint,
            client_id=self.client_id,
            response_type=self.response_type,
            redirect_uri=self.redirect_uri,
            state=self.state,
            **extra,
        )


@dataclass
class PendingAuthorization:
    """
    Server-side record of a sign-up attempt awaiting its callback.

    Keyed by ``state``. Single use: consumed by the first callback that
    presents the matching state.
    """

    state: str
    redirect_uri: str
    code_verifier: str | None = None
    created_at: float = field(default_factory=time.monotonic)

    def is_expired(self, ttl_seconds: float, now: float | None = None) -> bool:
        """Check whether the attempt is older than the TTL."""
        moment = time.monotonic() if now is None else now
        return moment - self.created_at >= ttl_seconds


class AuthorizationResult(BaseModel):
    """
    Parsed redirect callback.

    Carries ``code`` and ``state`` on success, or ``error`` (and optionally
    ``error_description``) when the provider reports a failure.
    """

    code: str | None = None
    state: str | None = None
    error: str | None = None
    error_description: str | None = None

    model_config = ConfigDict(extra="ignore", frozen=True)

    @classmethod
    def from_query(cls, params: Mapping[str, Any]) -> "AuthorizationResult":
        """
        Build a result from callback query parameters.

        Empty values are treated as absent.
        """
        def _get(name: str) -> str | None:
            value = params.get(name)
            return str(value) if value else None

        return cls(
            code=_get("code"),
            state=_get("state"),
            error=_get("error"),
            error_description=_get("error_description"),
        )

    @property
    def is_error(self) -> bool:
        return self.error is not None


class TokenResponse(BaseModel):
    """
    Token endpoint response.

    Provider-specific extras (Blackbaud returns ``environment_id``,
    ``user_id`` and similar) are kept as extra fields.
    """

    access_token: str = Field(description="OAuth2 access token")
    token_type: str = Field(default="Bearer", description="Token type")
    expires_in: int | None = Field(default=None, description="Lifetime in seconds")
    refresh_token: str | None = Field(
        default=None, description="OAuth2 refresh token for token renewal"
    )

    model_config = ConfigDict(extra="allow")
