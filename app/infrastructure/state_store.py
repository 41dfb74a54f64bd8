"""
In-memory store for pending sign-up attempts.

Holds the state / code verifier of each attempt between /sign-up and
/redirect-auth. Records are single use, expire after a TTL, and the store
is bounded: when full, the oldest attempt is evicted.
"""

import asyncio
import logging
import threading
import time
from collections import OrderedDict

from app.core.domain import PendingAuthorization


logger = logging.getLogger(__name__)

DEFAULT_STATE_TTL_SECONDS = 60.0
DEFAULT_MAX_PENDING = 1000


class InMemoryPendingAuthorizationStore:
    """
    In-memory implementation of PendingAuthorizationStore.

    Safe to share between requests. Data is lost when the application restarts,
    which only cancels sign-ups that are in flight.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_STATE_TTL_SECONDS,
        max_pending: int = DEFAULT_MAX_PENDING,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_pending = max_pending
        self._pending: OrderedDict[str, PendingAuthorization] = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)

    def __contains__(self, state: object) -> bool:
        with self._lock:
            return state in self._pending

    def add(self, pending: PendingAuthorization) -> None:
        with self._lock:
            self._pending.pop(pending.state, None)
            while len(self._pending) >= self.max_pending:
                self._pending.popitem(last=False)
                logger.warning(
                    "Pending authorization store full, evicting oldest attempt",
                    extra={"extra_fields": {"max_pending": self.max_pending}},
                )
            self._pending[pending.state] = pending

    def consume(self, state: str) -> PendingAuthorization | None:
        with self._lock:
            pending = self._pending.pop(state, None)

        if pending is None:
            return None
        if pending.is_expired(self.ttl_seconds):
            logger.info("Pending authorization expired before callback")
            return None
        return pending

    def discard(self, state: str) -> None:
        with self._lock:
            self._pending.pop(state, None)

    def purge_expired(self) -> int:
        now = time.monotonic()
        with self._lock:
            expired = [
                state
                for state, pending in self._pending.items()
                if pending.is_expired(self.ttl_seconds, now)
            ]
            for state in expired:
                del self._pending[state]

        if expired:
            logger.debug(f"Purged {len(expired)} expired pending authorizations")
        return len(expired)


async def run_maintenance(
    store: InMemoryPendingAuthorizationStore,
    interval_seconds: float,
    stop: asyncio.Event,
) -> None:
    """
    Purge expired attempts every ``interval_seconds`` until ``stop`` is set.

    Started and stopped by the application lifespan in main.py. A
    non-positive interval falls back to the default TTL.
    """
    if interval_seconds <= 0:
        logger.error(
            f"Invalid maintenance interval {interval_seconds}s, "
            f"using {DEFAULT_STATE_TTL_SECONDS}s"
        )
        interval_seconds = DEFAULT_STATE_TTL_SECONDS

    logger.info("Pending authorization maintenance started")
    while not stop.is_set():
        try:
            await asyncio.wait_for(stop.wait(), timeout=interval_seconds)
        except asyncio.TimeoutError:
            store.purge_expired()
    logger.info("Pending authorization maintenance stopped")
