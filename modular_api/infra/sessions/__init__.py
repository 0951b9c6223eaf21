"""Session model and session stores."""

from modular_api.infra.sessions.models import ConnectionInfo, WebSession
from modular_api.infra.sessions.store import InMemorySessionStore, SessionStore

__all__ = ["ConnectionInfo", "InMemorySessionStore", "SessionStore", "WebSession"]
