"""Request context for GraphQL resolution.

GraphQLContext is created fresh for each GraphQL request and carries the
originating HTTP request. ContextResolver turns it into the objects service
modules care about:

- the HTTP request (``resolve_request``)
- the caller's WebSession (``resolve_session``), looked up by credential
- a ConnectionInfo owned by that session (``resolve_connection``)
- a CallContext handed to interception checks (``resolve_call_context``)

Session lookup is the only suspension point and is bounded by
``GRAPHQL_SESSION_LOOKUP_TIMEOUT``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping, MutableMapping
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from strawberry.fastapi import BaseContext

from modular_api.core.exceptions import (
    ConnectionNotFoundError,
    RequestUnavailableError,
    SessionExpiredError,
    SessionLookupTimeoutError,
    SessionNotFoundError,
)
from modular_api.infra.logging import set_log_context

if TYPE_CHECKING:
    from graphql import GraphQLResolveInfo
    from starlette.background import BackgroundTasks
    from starlette.requests import Request
    from starlette.responses import Response
    from starlette.websockets import WebSocket

    from modular_api.core.settings import GraphQLSettings
    from modular_api.infra.sessions import ConnectionInfo, SessionStore, WebSession

logger = logging.getLogger(__name__)

__all__ = ["CallContext", "ContextResolver", "GraphQLContext"]

CORRELATION_HEADER = "X-Correlation-ID"


@dataclass
class GraphQLContext(BaseContext):
    """Request context for GraphQL operations.

    Standard fields (per Strawberry's FastAPI integration):
    - request: The HTTP request (or None for WebSocket)
    - response: The HTTP response (for setting headers/cookies)
    - background_tasks: FastAPI BackgroundTasks

    Custom fields:
    - correlation_id: For distributed tracing
    - web_session: Session resolved by the first field that needed it
    """

    request: Request | WebSocket | None = None
    response: Response | None = None
    background_tasks: BackgroundTasks | None = None
    correlation_id: str | None = None
    web_session: WebSession | None = None


@dataclass(frozen=True, slots=True)
class CallContext:
    """Ambient context of a service call, consulted by checks."""

    request: Any
    session: WebSession | None = None
    correlation_id: str | None = None


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ContextResolver:
    """Resolve request, session and connection for a field resolution."""

    def __init__(
        self,
        session_store: SessionStore,
        settings: GraphQLSettings | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if settings is None:
            from modular_api.core.settings import get_graphql_settings

            settings = get_graphql_settings()
        self.session_store = session_store
        self.settings = settings
        self._clock = clock or _utcnow

    def resolve_request(self, info: GraphQLResolveInfo) -> Any:
        """Return the HTTP request that originated the resolution.

        Raises:
            RequestUnavailableError: The execution context carries no request.
        """
        context = info.context
        if isinstance(context, Mapping):
            request = context.get("request")
        else:
            request = getattr(context, "request", None)
        if request is None:
            raise RequestUnavailableError(field_name=getattr(info, "field_name", None))
        return request

    def credential_for(self, request: Any) -> str | None:
        """Extract the session credential: cookie first, then header."""
        credential = request.cookies.get(self.settings.session_cookie_name)
        if not credential:
            credential = request.headers.get(self.settings.session_header_name)
        return credential or None

    async def resolve_session(self, request: Any, *, timeout: float | None = None) -> WebSession:
        """Look up the live session for ``request``.

        Raises:
            SessionNotFoundError: No credential, or the store knows none.
            SessionExpiredError: The session exists but has expired.
            SessionLookupTimeoutError: The store did not answer in time.
        """
        credential = self.credential_for(request)
        if credential is None:
            raise SessionNotFoundError("No session credential in request")

        limit = timeout if timeout is not None else self.settings.session_lookup_timeout
        try:
            async with asyncio.timeout(limit):
                session = await self.session_store.get_session(credential)
        except TimeoutError as e:
            logger.warning("Session lookup timed out", extra={"timeout_seconds": limit})
            raise SessionLookupTimeoutError(limit) from e

        if session is None:
            raise SessionNotFoundError()
        if session.is_expired(self._clock()):
            raise SessionExpiredError(session.id)
        return session

    def resolve_connection(self, session: WebSession, connection_id: str | None) -> ConnectionInfo:
        """Return a connection owned by ``session``.

        Unknown ids and ids of other sessions fail identically.
        """
        if not connection_id:
            raise ConnectionNotFoundError(connection_id)
        connection = session.connections.get(connection_id)
        if connection is None or connection.session_id != session.id:
            raise ConnectionNotFoundError(connection_id)
        return connection

    async def resolve_call_context(
        self, info: GraphQLResolveInfo, *, require_session: bool = True
    ) -> CallContext:
        """Build the CallContext for a field, reusing the request's session.

        With ``require_session=False`` a missing session yields an anonymous
        context; expiry and timeouts still raise.
        """
        request = self.resolve_request(info)
        context = info.context
        session = _get(context, "web_session")
        if session is None:
            try:
                session = await self.resolve_session(request)
            except SessionNotFoundError:
                if require_session:
                    raise
            else:
                _set(context, "web_session", session)

        correlation_id = _get(context, "correlation_id") or request.headers.get(
            CORRELATION_HEADER
        )
        if session is not None:
            set_log_context(session_id=session.id)
        return CallContext(request=request, session=session, correlation_id=correlation_id)


def _get(context: Any, key: str) -> Any:
    if isinstance(context, Mapping):
        return context.get(key)
    return getattr(context, key, None)


def _set(context: Any, key: str, value: Any) -> None:
    if isinstance(context, MutableMapping):
        context[key] = value
    elif hasattr(context, key):
        setattr(context, key, value)
