"""Session service: read-only views of the caller's session."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from modular_api.infra.sessions import ConnectionInfo, WebSession


@runtime_checkable
class SessionServiceApi(Protocol):
    """Operations of the core session module."""

    def server_version(self) -> str: ...

    async def session_state(self, session: WebSession) -> dict[str, Any]: ...

    async def connection_state(self, connection: ConnectionInfo) -> dict[str, Any]: ...


class SessionService:
    def __init__(self, version: str = "1.0.0") -> None:
        self.version = version

    def server_version(self) -> str:
        return self.version

    async def session_state(self, session: WebSession) -> dict[str, Any]:
        return {
            "id": session.id,
            "userId": session.user_id,
            "anonymous": session.is_anonymous,
            "permissions": sorted(session.permissions),
            "createdAt": session.created_at.isoformat(),
            "expiresAt": session.expires_at.isoformat() if session.expires_at else None,
            "connections": [
                _connection_view(connection) for connection in session.connections.values()
            ],
        }

    async def connection_state(self, connection: ConnectionInfo) -> dict[str, Any]:
        return _connection_view(connection)


def _connection_view(connection: ConnectionInfo) -> dict[str, Any]:
    return {
        "id": connection.id,
        "name": connection.name or connection.id,
        "driver": connection.driver,
        "connected": connection.connected,
    }
