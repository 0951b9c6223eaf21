"""Tests for schema resource loading."""

from __future__ import annotations

import pytest
from graphql import GraphQLSyntaxError, parse

from modular_api.core.exceptions import (
    DuplicateTypeDefinitionError,
    SchemaNotFoundError,
    SchemaParseError,
)
from modular_api.features.graphql.schema_loader import (
    SchemaResource,
    load_schema_definition,
    parse_schema_definition,
)

USERS_SDL = '''
"""A user."""
type User {
  id: ID!
  name: String
}

extend type Query {
  user(id: ID!): User
}

directive @auth(acl: String!) on FIELD_DEFINITION
'''


@pytest.fixture
def schema_dir(tmp_path):
    (tmp_path / "schema").mkdir()
    (tmp_path / "schema" / "users.graphqls").write_text(USERS_SDL, encoding="utf-8")
    return tmp_path


class TestLoadSchemaDefinition:
    def test_loads_fragment_from_directory_anchor(self, schema_dir) -> None:
        fragment = load_schema_definition(SchemaResource(schema_dir, "schema/users.graphqls"))

        assert fragment.source == "schema/users.graphqls"
        assert fragment.type_names == frozenset({"User"})
        assert [ext.name.value for ext in fragment.extensions] == ["Query"]
        assert set(fragment.directives) == {"auth"}
        assert fragment.schema_definition is None

    def test_loads_packaged_resource(self) -> None:
        resource = SchemaResource("modular_api.features.session", "schema/session.graphqls")

        fragment = load_schema_definition(resource)

        assert {"Query", "SessionInfo", "ConnectionState"} <= fragment.type_names

    def test_missing_resource_names_path(self, tmp_path) -> None:
        resource = SchemaResource(tmp_path, "schema/users.graphqls")

        with pytest.raises(SchemaNotFoundError) as exc_info:
            load_schema_definition(resource)

        assert "schema/users.graphqls" in exc_info.value.detail
        assert exc_info.value.extra["resource"] == "schema/users.graphqls"

    def test_missing_package(self) -> None:
        resource = SchemaResource("modular_api.no_such_module", "schema/users.graphqls")

        with pytest.raises(SchemaNotFoundError, match="schema/users.graphqls"):
            load_schema_definition(resource)

    def test_invalid_utf8_is_a_parse_error(self, tmp_path) -> None:
        (tmp_path / "broken.graphqls").write_bytes(b"type User { name: String }\n\xff\xfe")

        with pytest.raises(SchemaParseError, match="not valid UTF-8") as exc_info:
            load_schema_definition(SchemaResource(tmp_path, "broken.graphqls"))

        assert exc_info.value.resource == "broken.graphqls"

    def test_repeated_loads_are_equal(self, schema_dir) -> None:
        resource = SchemaResource(schema_dir, "schema/users.graphqls")

        first = load_schema_definition(resource)
        second = load_schema_definition(resource)

        assert first.type_names == second.type_names


class TestParseSchemaDefinition:
    def test_syntax_error_reports_location(self) -> None:
        text = "type User {\n  id: \n}"
        with pytest.raises(GraphQLSyntaxError) as syntax:
            parse(text)
        expected = syntax.value.locations[0]

        with pytest.raises(SchemaParseError) as exc_info:
            parse_schema_definition(text, "users.graphqls")

        assert exc_info.value.extra["line"] == expected.line
        assert exc_info.value.extra["column"] == expected.column
        assert exc_info.value.resource == "users.graphqls"

    def test_rejects_executable_definitions(self) -> None:
        with pytest.raises(SchemaParseError, match="executable definitions"):
            parse_schema_definition("type Query { a: Int }\nquery { a }")

    def test_identical_duplicate_in_one_resource_collapses(self) -> None:
        fragment = parse_schema_definition("type A { x: Int }\ntype A { x: Int }")

        assert fragment.type_names == frozenset({"A"})

    def test_conflicting_duplicate_in_one_resource(self) -> None:
        with pytest.raises(DuplicateTypeDefinitionError):
            parse_schema_definition("type A { x: Int }\ntype A { y: Int }")

    def test_schema_definition_is_kept(self) -> None:
        fragment = parse_schema_definition("schema { query: Root }\ntype Root { a: Int }")

        assert fragment.schema_definition is not None
        assert len(fragment) == 1
