"""
Unit tests for the in-memory pending authorization store.
"""

import asyncio
import time

import pytest

from app.core.domain import PendingAuthorization
from app.infrastructure.state_store import (
    InMemoryPendingAuthorizationStore,
    run_maintenance,
)


def _pending(state: str, created_at: float | None = None) -> PendingAuthorization:
    return PendingAuthorization(
        state=state,
        redirect_uri="http://testserver/redirect-auth",
        code_verifier=f"verifier-{state}",
        created_at=time.monotonic() if created_at is None else created_at,
    )


class TestInMemoryPendingAuthorizationStore:
    """Tests for InMemoryPendingAuthorizationStore."""

    @pytest.fixture
    def store(self):
        """Create fresh store for each test."""
        return InMemoryPendingAuthorizationStore(ttl_seconds=60, max_pending=3)

    def test_consume_returns_record(self, store):
        store.add(_pending("abc123"))

        pending = store.consume("abc123")

        assert pending is not None
        assert pending.code_verifier == "verifier-abc123"

    def test_consume_is_single_use(self, store):
        """Test a record can only be consumed once."""
        store.add(_pending("abc123"))

        assert store.consume("abc123") is not None
        assert store.consume("abc123") is None
        assert len(store) == 0

    def test_consume_unknown_state(self, store):
        assert store.consume("missing") is None

    def test_consume_expired_returns_none_and_removes(self, store):
        store.add(_pending("old", created_at=time.monotonic() - 61))

        assert store.consume("old") is None
        assert "old" not in store

    def test_discard(self, store):
        store.add(_pending("abc123"))

        store.discard("abc123")
        store.discard("never-added")

        assert "abc123" not in store

    def test_full_store_evicts_oldest(self, store):
        """Test adding past capacity drops the oldest attempt."""
        for state in ("a", "b", "c"):
            store.add(_pending(state))

        store.add(_pending("d"))

        assert len(store) == 3
        assert "a" not in store
        assert all(state in store for state in ("b", "c", "d"))

    def test_re_adding_state_does_not_evict(self, store):
        for state in ("a", "b", "c"):
            store.add(_pending(state))

        store.add(_pending("b"))

        assert len(store) == 3
        assert "a" in store

    def test_purge_expired(self, store):
        now = time.monotonic()
        store.add(_pending("old-1", created_at=now - 120))
        store.add(_pending("old-2", created_at=now - 61))
        store.add(_pending("fresh", created_at=now))

        removed = store.purge_expired()

        assert removed == 2
        assert len(store) == 1
        assert "fresh" in store


class TestMaintenance:
    """Tests for the purge loop."""

    @pytest.mark.asyncio
    async def test_maintenance_purges_and_stops(self):
        store = InMemoryPendingAuthorizationStore(ttl_seconds=60)
        store.add(_pending("old", created_at=time.monotonic() - 120))
        stop = asyncio.Event()

        task = asyncio.create_task(run_maintenance(store, 0.01, stop))
        await asyncio.sleep(0.05)
        stop.set()
        await asyncio.wait_for(task, timeout=1)

        assert len(store) == 0
        assert task.done()

    @pytest.mark.asyncio
    async def test_maintenance_zero_interval_falls_back_to_default(self):
        store = InMemoryPendingAuthorizationStore(ttl_seconds=0)
        stop = asyncio.Event()
        purges = []
        store.purge_expired = lambda: purges.append(1) or 0

        task = asyncio.create_task(run_maintenance(store, 0, stop))
        await asyncio.sleep(0.05)
        stop.set()
        await asyncio.wait_for(task, timeout=1)

        assert purges == []

    @pytest.mark.asyncio
    async def test_maintenance_stops_immediately_when_signalled(self):
        store = InMemoryPendingAuthorizationStore()
        stop = asyncio.Event()
        stop.set()

        await asyncio.wait_for(run_maintenance(store, 60, stop), timeout=1)
