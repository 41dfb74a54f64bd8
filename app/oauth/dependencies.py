"""
FastAPI dependencies for the sign-up endpoints.

Provides dependency injection for the OAuth config, the pending store,
the token client and the core services.
"""

import logging
from typing import Annotated

from fastapi import Depends, HTTPException, status

from app.core.oauth_service import AuthorizationRedirector, CallbackHandler
from app.core.ports import PendingAuthorizationStore, TokenEndpointClient
from app.infrastructure.state_store import InMemoryPendingAuthorizationStore
from app.infrastructure.token_client import HttpxTokenEndpointClient
from app.oauth.config import OAuthConfig, get_oauth_config
from app.sessions.repository import SessionRepository, get_session_repository


logger = logging.getLogger(__name__)


# Global pending store singleton, shared with the maintenance task in main.py
_pending_store: InMemoryPendingAuthorizationStore | None = None


def get_pending_store() -> InMemoryPendingAuthorizationStore:
    """
    Get the pending authorization store singleton.

    Creates the store on first access from the environment config.
    """
    global _pending_store
    if _pending_store is None:
        config = get_oauth_config()
        _pending_store = InMemoryPendingAuthorizationStore(
            ttl_seconds=config.state_ttl_seconds,
            max_pending=config.max_pending,
        )
    return _pending_store


def reset_pending_store() -> None:
    """
    Reset the pending store.

    Useful for testing with different configurations.
    """
    global _pending_store
    _pending_store = None


def get_configured_oauth(
    config: Annotated[OAuthConfig, Depends(get_oauth_config)],
) -> OAuthConfig:
    """
    Provide a validated OAuth config.

    Raises:
        HTTPException: 503 if the provider is not configured
    """
    try:
        config.validate()
    except ValueError as e:
        logger.error(f"OAuth configuration error: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Sign-up is not configured",
        )
    return config


def get_token_client(
    config: Annotated[OAuthConfig, Depends(get_configured_oauth)],
) -> TokenEndpointClient:
    """Provide the token endpoint client."""
    return HttpxTokenEndpointClient(config)


def get_redirector(
    config: Annotated[OAuthConfig, Depends(get_configured_oauth)],
    store: Annotated[PendingAuthorizationStore, Depends(get_pending_store)],
) -> AuthorizationRedirector:
    """Provide an AuthorizationRedirector for a new attempt."""
    return AuthorizationRedirector(
        client_id=config.client_id or "",
        redirect_uri=config.redirect_uri,
        store=store,
        use_pkce=config.use_pkce,
    )


def get_callback_handler(
    store: Annotated[PendingAuthorizationStore, Depends(get_pending_store)],
    token_client: Annotated[TokenEndpointClient, Depends(get_token_client)],
    sessions: Annotated[SessionRepository, Depends(get_session_repository)],
) -> CallbackHandler:
    """Provide a fresh CallbackHandler for one callback."""
    return CallbackHandler(
        store=store,
        token_client=token_client,
        session_establisher=sessions,
    )


# Type aliases for cleaner dependency injection
Redirector = Annotated[AuthorizationRedirector, Depends(get_redirector)]
Callback = Annotated[CallbackHandler, Depends(get_callback_handler)]
Config = Annotated[OAuthConfig, Depends(get_configured_oauth)]
