"""Tests for runtime wiring and executable schema construction."""

from __future__ import annotations

import logging

import pytest
from graphql import graphql

from modular_api.core.exceptions import SchemaCompositionError, UnresolvedTypeReferenceError
from modular_api.features.graphql.schema_composer import compose
from modular_api.features.graphql.schema_loader import parse_schema_definition
from modular_api.features.graphql.wiring import RuntimeWiring, build_executable_schema

SDL = """
interface Node { id: ID! }
type User implements Node { id: ID! name: String }
type Query {
  hello: String
  node: Node
}
"""


@pytest.fixture
def registry():
    return compose([parse_schema_definition(SDL, "test.graphqls")])


class TestRuntimeWiring:
    def test_first_resolver_wins(self, caplog) -> None:
        wiring = RuntimeWiring()

        assert wiring.field("Query", "hello", lambda *_: "a", module="first")
        with caplog.at_level(logging.WARNING):
            assert not wiring.field("Query", "hello", lambda *_: "b", module="second")

        assert wiring.get("Query", "hello").module == "first"
        assert len(wiring) == 1
        assert "Duplicate resolver for Query.hello" in caplog.text

    def test_modules_for(self) -> None:
        wiring = RuntimeWiring()
        wiring.field("Query", "hello", lambda *_: "a", module="greeter")
        wiring.field("User", "name", lambda *_: "n", module="users")

        assert wiring.modules_for("Query") == {"hello": "greeter"}
        assert ("User", "name") in wiring

    def test_duplicate_type_resolver(self) -> None:
        wiring = RuntimeWiring()

        assert wiring.type_resolver("Node", lambda *_: "User", module="a")
        assert not wiring.type_resolver("Node", lambda *_: "Other", module="b")


@pytest.mark.asyncio
class TestBuildExecutableSchema:
    async def test_resolvers_are_attached(self, registry) -> None:
        wiring = RuntimeWiring()
        wiring.field("Query", "hello", lambda _root, _info: "world", module="greeter")
        wiring.field("Query", "node", lambda _root, _info: {"id": "1", "name": "Ann"}, module="users")
        wiring.type_resolver("Node", lambda _value, _info, _type: "User", module="users")

        schema = build_executable_schema(registry, wiring)
        result = await graphql(schema, "{ hello node { id ... on User { name } } }")

        assert result.errors is None
        assert result.data == {"hello": "world", "node": {"id": "1", "name": "Ann"}}

    async def test_unknown_field(self, registry) -> None:
        wiring = RuntimeWiring()
        wiring.field("Query", "goodbye", lambda *_: None, module="greeter")

        with pytest.raises(UnresolvedTypeReferenceError, match="Query.goodbye"):
            build_executable_schema(registry, wiring)

    async def test_unknown_type(self, registry) -> None:
        wiring = RuntimeWiring()
        wiring.field("Mutation", "hello", lambda *_: None, module="greeter")

        with pytest.raises(UnresolvedTypeReferenceError, match="Mutation"):
            build_executable_schema(registry, wiring)

    async def test_type_resolver_needs_abstract_type(self, registry) -> None:
        wiring = RuntimeWiring()
        wiring.type_resolver("User", lambda *_: "User", module="users")

        with pytest.raises(UnresolvedTypeReferenceError):
            build_executable_schema(registry, wiring)

    async def test_missing_query_type_is_rejected(self) -> None:
        registry = compose([parse_schema_definition("type User { id: ID! }")])

        with pytest.raises(SchemaCompositionError, match="Query root type"):
            build_executable_schema(registry, RuntimeWiring())
