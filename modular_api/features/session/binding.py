"""Binding of the core session module."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from modular_api.features.graphql.binding import ServiceBinding
from modular_api.features.graphql.checks import LoggingCheck
from modular_api.features.graphql.schema_loader import SchemaResource
from modular_api.features.session.service import SessionService, SessionServiceApi

if TYPE_CHECKING:
    from graphql import GraphQLResolveInfo

    from modular_api.features.graphql.interception import Check
    from modular_api.features.graphql.wiring import RuntimeWiring

SESSION_SCHEMA = SchemaResource(__package__, "schema/session.graphqls")


class SessionServiceBinding(ServiceBinding[SessionServiceApi]):
    """Wires ``serverVersion``, ``sessionState`` and ``connectionState``."""

    def __init__(
        self,
        implementation: SessionServiceApi | None = None,
        *,
        checks: Sequence[Check] | None = None,
    ) -> None:
        super().__init__(
            SessionServiceApi,
            implementation or SessionService(),
            SESSION_SCHEMA,
            name="session",
            checks=(LoggingCheck(),) if checks is None else checks,
        )

    def bind_wiring(self, wiring: RuntimeWiring) -> None:
        wiring.field("Query", "serverVersion", self.server_version, module=self.name)
        wiring.field("Query", "sessionState", self.session_state, module=self.name)
        wiring.field("Query", "connectionState", self.connection_state, module=self.name)

    def server_version(self, _root: Any, _info: GraphQLResolveInfo) -> str:
        return self.dispatch_target().server_version()

    async def session_state(self, _root: Any, info: GraphQLResolveInfo) -> dict[str, Any]:
        session = await self.resolve_session(info)
        service = await self.service_for(info)
        return await service.session_state(session)

    async def connection_state(
        self, _root: Any, info: GraphQLResolveInfo, connectionId: str
    ) -> dict[str, Any]:
        connection = await self.resolve_connection(info, connectionId)
        service = await self.service_for(info)
        return await service.connection_state(connection)
