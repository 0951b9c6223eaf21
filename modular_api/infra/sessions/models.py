"""Session and connection models.

Both are immutable snapshots: a store hands out a fresh WebSession whenever
its state changes, so resolvers never observe a half-updated session.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from types import MappingProxyType
from typing import Any


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


@dataclass(frozen=True, slots=True)
class ConnectionInfo:
    """A logical connection owned by exactly one session."""

    id: str
    session_id: str
    name: str = ""
    driver: str | None = None
    connected: bool = False
    properties: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "properties", MappingProxyType(dict(self.properties)))


@dataclass(frozen=True, slots=True)
class WebSession:
    """Server-side user session resolved from a request credential.

    Example:
        session = WebSession(id="s-1", user_id="alice", permissions={"connections.#"})
        session.is_expired()  # False without expires_at
    """

    id: str
    user_id: str | None = None
    permissions: frozenset[str] = frozenset()
    created_at: datetime = field(default_factory=_utcnow)
    expires_at: datetime | None = None
    connections: Mapping[str, ConnectionInfo] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for key, connection in self.connections.items():
            if key != connection.id:
                msg = f"Connection key '{key}' does not match connection id '{connection.id}'"
                raise ValueError(msg)
        object.__setattr__(self, "permissions", frozenset(self.permissions))
        object.__setattr__(self, "connections", MappingProxyType(dict(self.connections)))
        object.__setattr__(self, "created_at", _as_utc(self.created_at))
        if self.expires_at is not None:
            object.__setattr__(self, "expires_at", _as_utc(self.expires_at))

    @property
    def is_anonymous(self) -> bool:
        return not self.user_id

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        return _as_utc(now or _utcnow()) >= self.expires_at

    def with_connection(self, connection: ConnectionInfo) -> WebSession:
        """Return a copy of the session that also owns ``connection``."""
        if connection.session_id != self.id:
            msg = f"Connection '{connection.id}' belongs to session '{connection.session_id}'"
            raise ValueError(msg)
        connections = {**self.connections, connection.id: connection}
        return WebSession(
            id=self.id,
            user_id=self.user_id,
            permissions=self.permissions,
            created_at=self.created_at,
            expires_at=self.expires_at,
            connections=connections,
        )


__all__ = ["ConnectionInfo", "WebSession"]
