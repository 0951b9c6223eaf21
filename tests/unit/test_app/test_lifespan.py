"""Tests for application startup."""

from __future__ import annotations

from typing import Protocol

import pytest
from fastapi.testclient import TestClient

from modular_api.app.main import create_app
from modular_api.core.exceptions import SchemaNotFoundError, UnresolvedTypeReferenceError
from modular_api.features.graphql.binding import ServiceBinding
from modular_api.features.graphql.schema_loader import SchemaResource


class EmptyApi(Protocol):
    def ping(self) -> str: ...


class Empty:
    def ping(self) -> str:
        return "pong"


def test_startup_composes_schema(graphql_settings) -> None:
    app = create_app(graphql_settings=graphql_settings)

    with TestClient(app):
        composed = app.state.composed_schema
        assert composed.module_names == ["session"]
        assert app.state.module_registry.is_composed


def test_missing_schema_prevents_startup(graphql_settings, tmp_path) -> None:
    broken = ServiceBinding(EmptyApi, Empty(), SchemaResource(tmp_path, "schema/users.graphqls"))
    app = create_app(bindings=[broken], graphql_settings=graphql_settings)

    with pytest.raises(SchemaNotFoundError, match="schema/users.graphqls"):
        with TestClient(app):
            pass

    assert not hasattr(app.state, "composed_schema")


def test_unresolved_reference_prevents_startup(graphql_settings, tmp_path) -> None:
    (tmp_path / "orders.graphqls").write_text("extend type Query { order: Order }", encoding="utf-8")
    broken = ServiceBinding(EmptyApi, Empty(), SchemaResource(tmp_path, "orders.graphqls"))
    app = create_app(bindings=[broken], graphql_settings=graphql_settings)

    with pytest.raises(UnresolvedTypeReferenceError, match="Order"):
        with TestClient(app):
            pass
