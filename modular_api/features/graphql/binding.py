"""Service module binding.

A ServiceBinding ties together one module's capability, its implementation,
its schema resource and its default interception checks. Resolver code uses
the binding to reach the intercepted implementation and the request context
without wiring a ContextResolver into every module.

Example:
    class NavigatorBinding(ServiceBinding[NavigatorApi]):
        def bind_wiring(self, wiring: RuntimeWiring) -> None:
            wiring.field("Query", "navNodes", self.nav_nodes, module=self.name)

        async def nav_nodes(self, _root, info, connectionId: str, path: str):
            connection = await self.resolve_connection(info)
            service = await self.service_for(info)
            return await service.list_nodes(connection, path)
"""

from __future__ import annotations

import logging
import sys
import threading
from collections.abc import Callable, Mapping, Sequence
from enum import StrEnum
from pathlib import PurePosixPath
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from graphql import value_from_ast_untyped

from modular_api.features.graphql.interception import Check, wrap
from modular_api.features.graphql.schema_loader import (
    SchemaResource,
    TypeFragment,
    load_schema_definition,
)

if TYPE_CHECKING:
    from graphql import GraphQLResolveInfo

    from modular_api.features.graphql.context import CallContext, ContextResolver
    from modular_api.features.graphql.wiring import RuntimeWiring
    from modular_api.infra.sessions import ConnectionInfo, WebSession

logger = logging.getLogger(__name__)

__all__ = ["CONNECTION_ID_ARGUMENT", "BindingState", "ServiceBinding", "connection_id_argument"]

T = TypeVar("T")

CONNECTION_ID_ARGUMENT = "connectionId"

FieldKey = tuple[str, str]


class BindingState(StrEnum):
    UNREGISTERED = "unregistered"
    REGISTERED = "registered"


def _package_of(implementation: Any) -> str:
    module = sys.modules.get(type(implementation).__module__)
    package = getattr(module, "__package__", None)
    if not package:
        package = type(implementation).__module__.rpartition(".")[0]
    return package


class ServiceBinding(Generic[T]):
    """Binding of one service module into the composed API.

    Args:
        capability: Protocol or ABC listing the module's operations.
        implementation: Object implementing the capability.
        schema: SchemaResource, or a path relative to the implementation's
            package.
        name: Module name; defaults to the schema file stem.
        checks: Default interception checks for ``dispatch_target``.
        resolvers: ``(type_name, field_name) -> resolver`` contributed by
            ``bind_wiring``.
    """

    def __init__(
        self,
        capability: type[T],
        implementation: T,
        schema: SchemaResource | str,
        *,
        name: str | None = None,
        checks: Sequence[Check] = (),
        resolvers: Mapping[FieldKey, Callable[..., Any]] | None = None,
    ) -> None:
        if isinstance(schema, str):
            schema = SchemaResource(_package_of(implementation), schema)
        self._capability = capability
        self._implementation = implementation
        self._schema = schema
        self._name = name or PurePosixPath(schema.path).stem
        self._checks = tuple(checks)
        self._resolvers = MappingProxyType(dict(resolvers or {}))

        self._state = BindingState.UNREGISTERED
        self._fragment: TypeFragment | None = None
        self._default_target: T | None = None
        self._default_target_lock = threading.Lock()
        self._context_resolver: ContextResolver | None = None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self._name!r} state={self._state.value}>"

    @property
    def name(self) -> str:
        return self._name

    @property
    def capability(self) -> type[T]:
        return self._capability

    @property
    def implementation(self) -> T:
        return self._implementation

    @property
    def schema(self) -> SchemaResource:
        return self._schema

    @property
    def checks(self) -> tuple[Check, ...]:
        return self._checks

    @property
    def resolvers(self) -> Mapping[FieldKey, Callable[..., Any]]:
        return self._resolvers

    @property
    def state(self) -> BindingState:
        return self._state

    @property
    def is_registered(self) -> bool:
        return self._state is BindingState.REGISTERED

    @property
    def context_resolver(self) -> ContextResolver:
        if self._context_resolver is None:
            raise RuntimeError(f"Module '{self._name}' is not attached to a ContextResolver")
        return self._context_resolver

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def attach(self, resolver: ContextResolver) -> None:
        self._context_resolver = resolver

    def mark_registered(self) -> None:
        """Record that the fragment is part of a composed registry. Idempotent."""
        if self._state is BindingState.REGISTERED:
            return
        self._state = BindingState.REGISTERED
        logger.info("Module registered", extra={"service_module": self._name})

    def get_schema_fragment(self) -> TypeFragment:
        """Load the module's schema fragment; successful loads are memoized."""
        if self._fragment is None:
            self._fragment = load_schema_definition(self._schema)
        return self._fragment

    def bind_wiring(self, wiring: RuntimeWiring) -> None:
        """Contribute field resolvers. Subclasses may override."""
        for (type_name, field_name), resolver in self._resolvers.items():
            wiring.field(type_name, field_name, resolver, module=self._name)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def dispatch_target(
        self,
        checks: Sequence[Check] | None = None,
        *,
        context: CallContext | None = None,
    ) -> T:
        """Return the implementation behind the interception layer.

        The proxy for the default checks without a context is memoized; any
        other chain or a call context gets a fresh proxy.
        """
        if checks is not None or context is not None:
            chain = self._checks if checks is None else tuple(checks)
            return wrap(
                self._capability, self._implementation, chain, module=self._name, context=context
            )
        with self._default_target_lock:
            if self._default_target is None:
                self._default_target = wrap(
                    self._capability, self._implementation, self._checks, module=self._name
                )
            return self._default_target

    async def service_for(
        self,
        info: GraphQLResolveInfo,
        checks: Sequence[Check] | None = None,
        *,
        require_session: bool = True,
    ) -> T:
        """Return the intercepted implementation for the current field."""
        context = await self.context_resolver.resolve_call_context(
            info, require_session=require_session
        )
        return self.dispatch_target(checks, context=context)

    # ------------------------------------------------------------------
    # Context helpers
    # ------------------------------------------------------------------

    def resolve_request(self, info: GraphQLResolveInfo) -> Any:
        return self.context_resolver.resolve_request(info)

    async def resolve_session(self, info: GraphQLResolveInfo) -> WebSession:
        context = await self.context_resolver.resolve_call_context(info)
        return context.session

    async def resolve_connection(
        self, info: GraphQLResolveInfo, connection_id: str | None = None
    ) -> ConnectionInfo:
        """Resolve a connection of the caller's session.

        ``connection_id`` defaults to the field's ``connectionId`` argument.
        """
        if connection_id is None:
            connection_id = connection_id_argument(info)
        session = await self.resolve_session(info)
        return self.context_resolver.resolve_connection(session, connection_id)


def connection_id_argument(info: GraphQLResolveInfo) -> str | None:
    """Read the ``connectionId`` argument of the field being resolved."""
    for field_node in info.field_nodes:
        for argument in field_node.arguments or ():
            if argument.name.value == CONNECTION_ID_ARGUMENT:
                value = value_from_ast_untyped(argument.value, _coerced_variables(info))
                return None if value is None else str(value)
    return None


def _coerced_variables(info: GraphQLResolveInfo) -> dict[str, Any]:
    # graphql-core 3.3 wraps the coerced dict in a VariableValues tuple.
    variables = getattr(info.variable_values, "coerced", info.variable_values)
    return dict(variables) if isinstance(variables, Mapping) else {}
