"""Runtime wiring of field resolvers onto the composed schema.

Bindings contribute resolvers by ``(type, field)``. When two modules wire the
same field the first one wins and the conflict is logged, mirroring how the
schema composer keeps the first definition of an identical type.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from graphql import (
    GraphQLError,
    GraphQLInterfaceType,
    GraphQLObjectType,
    GraphQLSchema,
    GraphQLUnionType,
    validate_schema,
)

from modular_api.core.exceptions import SchemaCompositionError, UnresolvedTypeReferenceError

if TYPE_CHECKING:
    from modular_api.features.graphql.schema_composer import TypeRegistry

logger = logging.getLogger(__name__)

__all__ = ["FieldWiring", "RuntimeWiring", "build_executable_schema"]


@dataclass(frozen=True, slots=True)
class FieldWiring:
    type_name: str
    field_name: str
    resolver: Callable[..., Any]
    module: str


class RuntimeWiring:
    """Collects resolvers contributed by service modules."""

    def __init__(self) -> None:
        self._fields: dict[tuple[str, str], FieldWiring] = {}
        self._type_resolvers: dict[str, tuple[Callable[..., Any], str]] = {}

    def field(
        self,
        type_name: str,
        field_name: str,
        resolver: Callable[..., Any],
        *,
        module: str,
    ) -> bool:
        """Wire ``resolver`` to ``type_name.field_name``.

        Returns:
            False when the field was already wired (the earlier one is kept).
        """
        key = (type_name, field_name)
        existing = self._fields.get(key)
        if existing is not None:
            logger.warning(
                "Duplicate resolver for %s.%s from module '%s'. Using first definition from '%s'.",
                type_name,
                field_name,
                module,
                existing.module,
            )
            return False
        self._fields[key] = FieldWiring(type_name, field_name, resolver, module)
        return True

    def type_resolver(
        self, type_name: str, resolve_type: Callable[..., Any], *, module: str
    ) -> bool:
        """Wire an abstract-type resolver for an interface or union."""
        if type_name in self._type_resolvers:
            logger.warning(
                "Duplicate type resolver for %s from module '%s'. Using first definition.",
                type_name,
                module,
            )
            return False
        self._type_resolvers[type_name] = (resolve_type, module)
        return True

    def type_resolvers(self) -> Iterator[tuple[str, Callable[..., Any], str]]:
        for type_name, (resolve_type, module) in self._type_resolvers.items():
            yield type_name, resolve_type, module

    def get(self, type_name: str, field_name: str) -> FieldWiring | None:
        return self._fields.get((type_name, field_name))

    def __contains__(self, key: object) -> bool:
        return key in self._fields

    def __iter__(self) -> Iterator[FieldWiring]:
        return iter(self._fields.values())

    def __len__(self) -> int:
        return len(self._fields)

    def modules_for(self, type_name: str) -> dict[str, str]:
        """Map each wired field of ``type_name`` to its module."""
        return {w.field_name: w.module for w in self if w.type_name == type_name}


def build_executable_schema(registry: TypeRegistry, wiring: RuntimeWiring) -> GraphQLSchema:
    """Build the schema from ``registry`` and attach the wired resolvers.

    Raises:
        UnresolvedTypeReferenceError: A resolver targets an unknown type or field.
        SchemaCompositionError: graphql-core rejects the composed schema.
    """
    try:
        schema = registry.build_schema()
    except (GraphQLError, TypeError) as e:
        raise SchemaCompositionError(detail=f"Invalid composed schema: {e}") from e

    errors = validate_schema(schema)
    if errors:
        raise SchemaCompositionError(
            detail=f"Invalid composed schema: {'; '.join(e.message for e in errors)}",
            extra={"errors": [e.message for e in errors]},
        )

    for wired in wiring:
        graphql_type = schema.get_type(wired.type_name)
        if not isinstance(graphql_type, (GraphQLObjectType, GraphQLInterfaceType)):
            raise UnresolvedTypeReferenceError(wired.type_name, f"module '{wired.module}'")
        graphql_field = graphql_type.fields.get(wired.field_name)
        if graphql_field is None:
            raise UnresolvedTypeReferenceError(
                f"{wired.type_name}.{wired.field_name}", f"module '{wired.module}'"
            )
        graphql_field.resolve = wired.resolver

    for type_name, resolve_type, module in wiring.type_resolvers():
        graphql_type = schema.get_type(type_name)
        if not isinstance(graphql_type, (GraphQLInterfaceType, GraphQLUnionType)):
            raise UnresolvedTypeReferenceError(type_name, f"module '{module}'")
        graphql_type.resolve_type = resolve_type

    logger.info(
        "Built executable schema",
        extra={"types": len(registry), "wired_fields": len(wiring)},
    )
    return schema
