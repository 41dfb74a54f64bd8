"""
Port definitions (interfaces) for the core domain.

Ports define the contracts between the core domain and external systems.
Infrastructure adapters implement these ports.
"""

from typing import Protocol

from app.core.domain import PendingAuthorization, TokenResponse


class PendingAuthorizationStore(Protocol):
    """
    Port (interface) for holding sign-up attempts across the redirect.

    Implemented by infrastructure adapters (e.g., InMemoryPendingAuthorizationStore).
    Records are single use and expire.
    """

    def add(self, pending: PendingAuthorization) -> None:
        """Record a new attempt."""
        ...

    def consume(self, state: str) -> PendingAuthorization | None:
        """
        Remove and return the attempt for ``state``.

        Args:
            state: State value presented by the callback

        Returns:
            The pending attempt, or None if unknown, expired or already used
        """
        ...

    def discard(self, state: str) -> None:
        """Drop the attempt for ``state`` if present."""
        ...

    def purge_expired(self) -> int:
        """Drop all expired attempts and return how many were removed."""
        ...


class TokenEndpointClient(Protocol):
    """
    Port (interface) for the provider token endpoint.

    Implementations raise TokenExchangeNetworkError or InvalidGrantError.
    """

    async def exchange_code(
        self, code: str, redirect_uri: str, code_verifier: str | None = None
    ) -> TokenResponse:
        """
        Exchange an authorization code for tokens.

        Args:
            code: Authorization code from the callback
            redirect_uri: Redirect URI used in the authorization request
            code_verifier: PKCE verifier, if PKCE was used

        Returns:
            Parsed token response
        """
        ...


class SessionEstablisher(Protocol):
    """Port (interface) for turning a token into a local session."""

    async def establish(self, token: TokenResponse) -> str:
        """
        Create a session for the token.

        Returns:
            Session identifier
        """
        ...
