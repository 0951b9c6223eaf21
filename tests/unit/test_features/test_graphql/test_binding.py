"""Tests for ServiceBinding."""

from __future__ import annotations

from types import SimpleNamespace
from typing import Protocol, runtime_checkable

import pytest
from graphql import graphql, parse

from modular_api.core.exceptions import PermissionDeniedError, SchemaNotFoundError
from modular_api.features.graphql.binding import (
    BindingState,
    ServiceBinding,
    connection_id_argument,
)
from modular_api.features.graphql.checks import RequirePermission
from modular_api.features.graphql.context import GraphQLContext
from modular_api.features.graphql.interception import CheckResult
from modular_api.features.graphql.registry import ModuleRegistry
from modular_api.features.graphql.schema_loader import SchemaResource
from modular_api.features.session import SessionService, SessionServiceApi

NOTES_SDL = """
type Query {
  note(connectionId: ID!): String
}
"""


@runtime_checkable
class NotesApi(Protocol):
    async def read(self, connection_id: str) -> str: ...


class Notes:
    def __init__(self) -> None:
        self.calls = 0

    async def read(self, connection_id: str) -> str:
        self.calls += 1
        return f"note:{connection_id}"


class NotesBinding(ServiceBinding[NotesApi]):
    def bind_wiring(self, wiring) -> None:
        wiring.field("Query", "note", self.note, module=self.name)

    async def note(self, _root, info, connectionId: str) -> str:
        connection = await self.resolve_connection(info)
        service = await self.service_for(info)
        return await service.read(connection.id)


@pytest.fixture
def notes_resource(tmp_path) -> SchemaResource:
    (tmp_path / "notes.graphqls").write_text(NOTES_SDL, encoding="utf-8")
    return SchemaResource(tmp_path, "notes.graphqls")


@pytest.fixture
def notes(notes_resource) -> NotesBinding:
    return NotesBinding(NotesApi, Notes(), notes_resource)


class TestLifecycle:
    def test_defaults(self, notes) -> None:
        assert notes.name == "notes"
        assert notes.state is BindingState.UNREGISTERED
        assert not notes.is_registered

    def test_mark_registered_once(self, notes) -> None:
        notes.mark_registered()
        notes.mark_registered()

        assert notes.state is BindingState.REGISTERED

    def test_relative_schema_path_uses_implementation_package(self) -> None:
        binding = ServiceBinding(SessionServiceApi, SessionService(), "schema/session.graphqls")

        assert binding.schema.package == "modular_api.features.session"
        assert binding.name == "session"
        assert "SessionInfo" in binding.get_schema_fragment().types

    def test_fragment_is_memoized(self, notes) -> None:
        assert notes.get_schema_fragment() is notes.get_schema_fragment()

    def test_failed_load_is_retried(self, tmp_path) -> None:
        binding = ServiceBinding(NotesApi, Notes(), SchemaResource(tmp_path, "late.graphqls"))

        with pytest.raises(SchemaNotFoundError):
            binding.get_schema_fragment()

        (tmp_path / "late.graphqls").write_text(NOTES_SDL, encoding="utf-8")
        assert "Query" in binding.get_schema_fragment().types

    def test_context_resolver_must_be_attached(self, notes) -> None:
        with pytest.raises(RuntimeError, match="not attached"):
            _ = notes.context_resolver


class TestDispatchTarget:
    def test_default_chain_is_memoized(self, notes) -> None:
        assert notes.dispatch_target() is notes.dispatch_target()

    def test_explicit_chains_are_not_retained(self, notes) -> None:
        def extra(_):
            return CheckResult.allow()

        first = notes.dispatch_target([extra])
        second = notes.dispatch_target([extra])

        assert first is not second
        assert first is not notes.dispatch_target()
        assert notes._default_target is notes.dispatch_target()

    def test_valid_in_either_state(self, notes) -> None:
        before = notes.dispatch_target()
        notes.mark_registered()

        assert isinstance(before, NotesApi)
        assert notes.dispatch_target() is before

    @pytest.mark.asyncio
    async def test_default_checks_apply(self, notes_resource) -> None:
        impl = Notes()
        binding = ServiceBinding(
            NotesApi, impl, notes_resource, checks=[lambda _: CheckResult.deny("closed")]
        )

        with pytest.raises(PermissionDeniedError, match="closed"):
            await binding.dispatch_target().read("pg-1")

        assert impl.calls == 0
        assert await binding.dispatch_target(checks=()).read("pg-1") == "note:pg-1"


@pytest.mark.asyncio
class TestResolverHelpers:
    @pytest.fixture
    def composed(self, notes, context_resolver, graphql_settings):
        registry = ModuleRegistry(context_resolver, graphql_settings)
        registry.register(notes)
        return registry.compose()

    async def execute(self, composed, make_request, session_id, query, variables=None):
        context = GraphQLContext(request=make_request(cookies={"modular-session-id": session_id}))
        return await graphql(
            composed.schema, query, variable_values=variables, context_value=context
        )

    async def test_connection_id_from_literal_argument(
        self, composed, make_session, make_request
    ) -> None:
        make_session("s-1", connections=["pg-1"])

        result = await self.execute(composed, make_request, "s-1", '{ note(connectionId: "pg-1") }')

        assert result.errors is None
        assert result.data == {"note": "note:pg-1"}

    async def test_connection_id_from_variable(self, composed, make_session, make_request) -> None:
        make_session("s-1", connections=["pg-1"])

        result = await self.execute(
            composed,
            make_request,
            "s-1",
            "query Note($id: ID!) { note(connectionId: $id) }",
            {"id": "pg-1"},
        )

        assert result.data == {"note": "note:pg-1"}

    async def test_foreign_connection_is_a_field_error(
        self, composed, notes, make_session, make_request
    ) -> None:
        make_session("s-1", connections=["pg-1"])
        make_session("s-2", connections=["pg-2"])

        result = await self.execute(composed, make_request, "s-1", '{ note(connectionId: "pg-2") }')

        assert result.data == {"note": None}
        assert result.errors[0].original_error.code == "CONNECTION_NOT_FOUND"
        assert notes.implementation.calls == 0

    async def test_service_for_binds_session(self, notes, context_resolver, make_session, make_info) -> None:
        make_session("s-1", permissions=("notes.read",))
        notes.attach(context_resolver)
        info = make_info("s-1")

        allowed = await notes.service_for(info, [RequirePermission("notes.read")])
        denied = await notes.service_for(info, [RequirePermission("notes.write")])

        assert await allowed.read("pg-1") == "note:pg-1"
        with pytest.raises(PermissionDeniedError):
            await denied.read("pg-1")

    async def test_resolve_session_and_request(self, notes, context_resolver, make_session, make_info) -> None:
        session = make_session("s-1")
        notes.attach(context_resolver)
        info = make_info("s-1")

        assert notes.resolve_request(info) is info.context.request
        assert await notes.resolve_session(info) is session


class TestConnectionIdArgument:
    def info_for(self, query: str, variable_values) -> SimpleNamespace:
        operation = parse(query).definitions[0]
        return SimpleNamespace(
            field_nodes=[operation.selection_set.selections[0]],
            variable_values=variable_values,
        )

    def test_literal(self) -> None:
        info = self.info_for('{ note(connectionId: "pg-1") }', {})

        assert connection_id_argument(info) == "pg-1"

    def test_variable_from_plain_dict(self) -> None:
        info = self.info_for("query ($id: ID!) { note(connectionId: $id) }", {"id": "pg-1"})

        assert connection_id_argument(info) == "pg-1"

    def test_variable_from_coerced_values(self) -> None:
        variables = SimpleNamespace(sources={}, coerced={"id": "pg-2"})
        info = self.info_for("query ($id: ID!) { note(connectionId: $id) }", variables)

        assert connection_id_argument(info) == "pg-2"

    def test_missing_argument(self) -> None:
        info = self.info_for("{ note }", {})

        assert connection_id_argument(info) is None
