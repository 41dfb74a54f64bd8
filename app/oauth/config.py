"""
OAuth2 configuration for the Blackbaud sign-up flow.

All provider settings come from the environment. Endpoints default to
Blackbaud's public SKY API endpoints; client credentials have no default.
"""

import os
import logging
from dataclasses import dataclass
from functools import lru_cache


logger = logging.getLogger(__name__)


BLACKBAUD_AUTHORIZE_URL = "https://app.blackbaud.com/oauth/authorize"
BLACKBAUD_TOKEN_URL = "https://oauth2.sky.blackbaud.com/token"

# Path of the callback route (see app/oauth/router.py)
CALLBACK_PATH = "/redirect-auth"


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class OAuthConfig:
    """
    OAuth configuration settings.

    Loaded from environment variables. Call validate() before starting a flow.
    """

    client_id: str | None
    client_secret: str | None = None
    base_url: str = "http://localhost:8080"
    redirect_uri_override: str | None = None
    authorize_url: str = BLACKBAUD_AUTHORIZE_URL
    token_url: str = BLACKBAUD_TOKEN_URL
    use_pkce: bool = True

    # Pending attempt lifetime and store bound
    state_ttl_seconds: float = 60.0
    max_pending: int = 1000

    # Token exchange
    token_timeout_seconds: float = 10.0
    token_max_retries: int = 2
    token_retry_backoff_seconds: float = 0.5

    @classmethod
    def from_env(cls) -> "OAuthConfig":
        """Load configuration from environment variables."""
        return cls(
            client_id=os.getenv("BLACKBAUD_CLIENT_ID"),
            client_secret=os.getenv("BLACKBAUD_CLIENT_SECRET"),
            base_url=os.getenv("BASE_URL", "http://localhost:8080").rstrip("/"),
            redirect_uri_override=os.getenv("OAUTH_REDIRECT_URI"),
            authorize_url=os.getenv("OAUTH_AUTHORIZE_URL", BLACKBAUD_AUTHORIZE_URL),
            token_url=os.getenv("OAUTH_TOKEN_URL", BLACKBAUD_TOKEN_URL),
            use_pkce=_env_bool("OAUTH_USE_PKCE", True),
            state_ttl_seconds=float(os.getenv("OAUTH_STATE_TTL_SECONDS", "60")),
            max_pending=int(os.getenv("OAUTH_MAX_PENDING", "1000")),
            token_timeout_seconds=float(
                os.getenv("OAUTH_TOKEN_TIMEOUT_SECONDS", "10")
            ),
            token_max_retries=int(os.getenv("OAUTH_TOKEN_MAX_RETRIES", "2")),
            token_retry_backoff_seconds=float(
                os.getenv("OAUTH_TOKEN_RETRY_BACKOFF_SECONDS", "0.5")
            ),
        )

    @property
    def redirect_uri(self) -> str:
        """Redirect URI registered with the provider."""
        if self.redirect_uri_override:
            return self.redirect_uri_override
        return f"{self.base_url}{CALLBACK_PATH}"

    @property
    def is_confidential_client(self) -> bool:
        """Whether a client secret is sent with the token request."""
        return bool(self.client_secret)

    def is_configured(self) -> bool:
        """Check if the provider has a client ID configured."""
        return bool(self.client_id)

    def validate(self) -> None:
        """Validate required configuration. Call before starting a flow to fail fast."""
        if not self.client_id:
            raise ValueError("BLACKBAUD_CLIENT_ID environment variable is required")
        if not self.authorize_url or not self.token_url:
            raise ValueError("OAuth authorize and token endpoints must be set")
        if self.state_ttl_seconds <= 0:
            raise ValueError("OAUTH_STATE_TTL_SECONDS must be positive")
        if self.max_pending < 1:
            raise ValueError("OAUTH_MAX_PENDING must be at least 1")
        if self.token_max_retries < 0:
            raise ValueError("OAUTH_TOKEN_MAX_RETRIES must not be negative")
        if not self.use_pkce and not self.client_secret:
            logger.warning(
                "PKCE disabled for a public client; authorization codes are "
                "not bound to this server"
            )


@lru_cache()
def get_oauth_config() -> OAuthConfig:
    """Get OAuth configuration singleton."""
    return OAuthConfig.from_env()
