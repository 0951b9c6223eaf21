"""Core session module."""

from modular_api.features.session.binding import SESSION_SCHEMA, SessionServiceBinding
from modular_api.features.session.service import SessionService, SessionServiceApi

__all__ = ["SESSION_SCHEMA", "SessionService", "SessionServiceApi", "SessionServiceBinding"]
