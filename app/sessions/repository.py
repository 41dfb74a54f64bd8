"""
Session repository interface and in-memory implementation.

A session is created when a sign-up completes and holds the token the
provider issued. Sessions live in memory only; persisting them is out of
scope for this service.
"""

import logging
import secrets
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol

from app.core.domain import TokenResponse


logger = logging.getLogger(__name__)

SESSION_ID_BYTES = 32
DEFAULT_MAX_SESSIONS = 1000


@dataclass
class SignUpSession:
    """A completed sign-up and the token that came with it."""

    session_id: str
    token: TokenResponse
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class SessionRepository(Protocol):
    """
    Protocol defining the session repository interface.

    Also satisfies the SessionEstablisher port in app/core/ports.py.
    """

    async def establish(self, token: TokenResponse) -> str:
        """
        Create a session for a freshly issued token.

        Args:
            token: Token from the provider

        Returns:
            New session ID
        """
        ...

    async def get(self, session_id: str) -> SignUpSession | None:
        """
        Get a session by ID.

        Returns:
            SignUpSession if found, None otherwise
        """
        ...

    async def revoke(self, session_id: str) -> bool:
        """
        Delete a session.

        Returns:
            True if deleted, False if not found
        """
        ...


class InMemorySessionRepository(SessionRepository):
    """
    In-memory implementation of SessionRepository.

    Data is lost when the application restarts. Bounded: when full, the
    oldest session is evicted.
    """

    def __init__(self, max_sessions: int = DEFAULT_MAX_SESSIONS):
        self.max_sessions = max_sessions
        self._sessions: OrderedDict[str, SignUpSession] = OrderedDict()

    async def establish(self, token: TokenResponse) -> str:
        session_id = secrets.token_urlsafe(SESSION_ID_BYTES)
        while len(self._sessions) >= self.max_sessions:
            self._sessions.popitem(last=False)
            logger.warning(
                "Session repository full, evicting oldest session",
                extra={"extra_fields": {"max_sessions": self.max_sessions}},
            )
        self._sessions[session_id] = SignUpSession(session_id=session_id, token=token)
        logger.info("Established sign-up session")
        return session_id

    async def get(self, session_id: str) -> SignUpSession | None:
        return self._sessions.get(session_id)

    async def revoke(self, session_id: str) -> bool:
        if session_id not in self._sessions:
            return False
        del self._sessions[session_id]
        logger.info("Revoked sign-up session")
        return True

    def __len__(self) -> int:
        return len(self._sessions)


# Singleton instance for dependency injection
_repository: SessionRepository | None = None


def get_session_repository() -> SessionRepository:
    """
    Get the session repository singleton.

    Can be overridden via set_session_repository for testing.
    """
    global _repository
    if _repository is None:
        logger.info("Using in-memory session repository")
        _repository = InMemorySessionRepository()
    return _repository


def set_session_repository(repository: SessionRepository) -> None:
    """Set the session repository implementation."""
    global _repository
    _repository = repository


def reset_session_repository() -> None:
    """
    Reset the session repository singleton.

    Useful for testing to ensure clean state between tests.
    """
    global _repository
    _repository = None
