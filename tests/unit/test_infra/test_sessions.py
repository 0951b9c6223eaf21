"""Tests for session models and the in-memory store."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from modular_api.infra.sessions import ConnectionInfo, InMemorySessionStore, SessionStore, WebSession


class TestWebSession:
    def test_is_expired(self) -> None:
        now = datetime(2025, 1, 1, tzinfo=UTC)
        session = WebSession(id="s-1", expires_at=now)

        assert session.is_expired(now)
        assert not session.is_expired(now - timedelta(seconds=1))
        assert not WebSession(id="s-2").is_expired(now)

    def test_anonymous(self) -> None:
        assert WebSession(id="s-1").is_anonymous
        assert WebSession(id="s-1", user_id="").is_anonymous
        assert not WebSession(id="s-1", user_id="alice").is_anonymous

    def test_naive_datetimes_are_utc(self) -> None:
        session = WebSession(id="s-1", expires_at=datetime(2025, 1, 1, 12, 0))

        assert session.expires_at == datetime(2025, 1, 1, 12, 0, tzinfo=UTC)
        assert session.is_expired(datetime(2025, 1, 1, 12, 0, tzinfo=UTC))
        assert not session.is_expired(datetime(2025, 1, 1, 11, 59))
        assert session.created_at.tzinfo is UTC

    def test_connection_keys_must_match_ids(self) -> None:
        with pytest.raises(ValueError, match="does not match connection id 'pg-2'"):
            WebSession(id="s-1", connections={"pg-1": ConnectionInfo(id="pg-2", session_id="s-1")})

    def test_connections_are_read_only(self) -> None:
        session = WebSession(
            id="s-1", connections={"pg": ConnectionInfo(id="pg", session_id="s-1")}
        )

        with pytest.raises(TypeError):
            session.connections["other"] = ConnectionInfo(id="other", session_id="s-1")

    def test_with_connection_rejects_foreign_connection(self) -> None:
        session = WebSession(id="s-1")

        with pytest.raises(ValueError, match="belongs to session 's-2'"):
            session.with_connection(ConnectionInfo(id="pg", session_id="s-2"))


@pytest.mark.asyncio
class TestInMemorySessionStore:
    async def test_get_session_by_credential(self) -> None:
        store = InMemorySessionStore()
        session = store.add(WebSession(id="s-1"), credential="token-1")

        assert isinstance(store, SessionStore)
        assert await store.get_session("token-1") is session
        assert await store.get_session("s-1") is None

    async def test_add_connection_replaces_snapshot(self) -> None:
        store = InMemorySessionStore()
        original = store.add(WebSession(id="s-1"))

        updated = store.add_connection(ConnectionInfo(id="pg", session_id="s-1"))

        assert "pg" not in original.connections
        assert (await store.get_session("s-1")).connections["pg"].id == "pg"
        assert updated is not original

    async def test_remove_drops_credentials(self) -> None:
        store = InMemorySessionStore()
        store.add(WebSession(id="s-1"), credential="token-1")

        store.remove("s-1")

        assert await store.get_session("token-1") is None
        assert len(store) == 0
