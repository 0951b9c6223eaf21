"""Session stores.

The binding layer only needs ``get_session``; persistence and session
lifecycle live with whoever implements the store.
"""

from __future__ import annotations

import logging
import threading
from typing import Protocol, runtime_checkable

from modular_api.infra.sessions.models import ConnectionInfo, WebSession

logger = logging.getLogger(__name__)


@runtime_checkable
class SessionStore(Protocol):
    """Lookup of sessions by request credential."""

    async def get_session(self, credential: str) -> WebSession | None:
        """Return the session for ``credential`` or None when unknown."""
        ...


class InMemorySessionStore:
    """Process-local session store for development and tests.

    Credentials map to session ids; by default the credential is the session id.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sessions: dict[str, WebSession] = {}
        self._credentials: dict[str, str] = {}

    async def get_session(self, credential: str) -> WebSession | None:
        with self._lock:
            session_id = self._credentials.get(credential)
            if session_id is None:
                return None
            return self._sessions.get(session_id)

    def add(self, session: WebSession, credential: str | None = None) -> WebSession:
        with self._lock:
            self._sessions[session.id] = session
            self._credentials[credential or session.id] = session.id
        logger.debug("Stored session", extra={"session_id": session.id})
        return session

    def add_connection(self, connection: ConnectionInfo) -> WebSession:
        """Attach a connection to its owning session, replacing the snapshot."""
        with self._lock:
            session = self._sessions.get(connection.session_id)
            if session is None:
                msg = f"Unknown session '{connection.session_id}'"
                raise KeyError(msg)
            updated = session.with_connection(connection)
            self._sessions[session.id] = updated
            return updated

    def remove(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)
            stale = [c for c, sid in self._credentials.items() if sid == session_id]
            for credential in stale:
                del self._credentials[credential]

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


__all__ = ["InMemorySessionStore", "SessionStore"]
