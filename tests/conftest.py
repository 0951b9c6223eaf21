"""Pytest configuration and shared fixtures.

Organization:
    - Settings Fixtures: GraphQL settings tuned for fast tests
    - Session Fixtures: in-memory store and session factories
    - Resolution Fixtures: fake requests and GraphQLResolveInfo stand-ins

Fixtures that build objects take keyword arguments through a factory
function so each test states only what it cares about.
"""

from __future__ import annotations

import os
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from types import SimpleNamespace
from typing import Any

import pytest

# Keep tests independent from the developer's environment
os.environ.setdefault("APP_ENVIRONMENT", "test")
os.environ.setdefault("LOG_JSON_LOGS", "false")
os.environ.setdefault("LOG_CAPTURE_WARNINGS", "false")

from modular_api.core.settings import GraphQLSettings, clear_settings_cache
from modular_api.features.graphql.context import ContextResolver, GraphQLContext
from modular_api.infra.logging import clear_log_context
from modular_api.infra.sessions import ConnectionInfo, InMemorySessionStore, WebSession

FIXED_NOW = datetime(2025, 1, 15, 12, 0, tzinfo=UTC)


@pytest.fixture(autouse=True)
def _reset_state():
    """Clear cached settings and log context around every test."""
    clear_settings_cache()
    clear_log_context()
    yield
    clear_settings_cache()
    clear_log_context()


# ============================================================================
# Settings Fixtures
# ============================================================================


@pytest.fixture
def graphql_settings() -> GraphQLSettings:
    return GraphQLSettings(session_lookup_timeout=0.5)


# ============================================================================
# Session Fixtures
# ============================================================================


@pytest.fixture
def session_store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def make_session(session_store: InMemorySessionStore) -> Callable[..., WebSession]:
    """Factory storing a WebSession, optionally with connections.

    Example:
        session = make_session("s-1", connections=["pg-1"], expired=True)
    """

    def _make(
        session_id: str = "s-1",
        *,
        user_id: str | None = "alice",
        permissions: tuple[str, ...] = (),
        connections: tuple[str, ...] | list[str] = (),
        expired: bool = False,
    ) -> WebSession:
        session = WebSession(
            id=session_id,
            user_id=user_id,
            permissions=frozenset(permissions),
            created_at=FIXED_NOW - timedelta(hours=1),
            expires_at=FIXED_NOW - timedelta(minutes=1) if expired else None,
            connections={
                cid: ConnectionInfo(id=cid, session_id=session_id, name=cid, driver="postgres")
                for cid in connections
            },
        )
        return session_store.add(session)

    return _make


# ============================================================================
# Resolution Fixtures
# ============================================================================


@pytest.fixture
def context_resolver(
    session_store: InMemorySessionStore, graphql_settings: GraphQLSettings
) -> ContextResolver:
    return ContextResolver(session_store, graphql_settings, clock=lambda: FIXED_NOW)


@pytest.fixture
def make_request() -> Callable[..., SimpleNamespace]:
    """Factory for a minimal stand-in of a Starlette request."""

    def _make(
        cookies: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
    ) -> SimpleNamespace:
        return SimpleNamespace(cookies=cookies or {}, headers=headers or {})

    return _make


@pytest.fixture
def make_info(make_request) -> Callable[..., SimpleNamespace]:
    """Factory for a GraphQLResolveInfo stand-in carrying a GraphQLContext.

    ``session_id`` sets the session cookie; pass ``context`` to override the
    execution context entirely.
    """

    def _make(
        session_id: str | None = None,
        *,
        context: Any = ...,
        field_name: str = "field",
    ) -> SimpleNamespace:
        if context is ...:
            cookies = {"modular-session-id": session_id} if session_id else {}
            context = GraphQLContext(request=make_request(cookies=cookies))
        return SimpleNamespace(
            context=context,
            field_name=field_name,
            field_nodes=[],
            variable_values={},
        )

    return _make
