"""Composition of module schema fragments into one type registry.

Fragments are merged in the order the caller supplies them. A name defined
by more than one fragment must have the same printed body everywhere
(descriptions included, whitespace and comments not); identical definitions
collapse into one and the first fragment stays the recorded source. Type
extensions are kept in order and applied on top of the merged definitions.

After merging, every type reference is checked against the registry plus the
built-in scalars, so a composed registry is always self-contained.

Example:
    >>> registry = compose([load_schema_definition(r) for r in resources])
    >>> schema = registry.build_schema()
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass
from types import MappingProxyType

from graphql import (
    DirectiveDefinitionNode,
    DocumentNode,
    GraphQLSchema,
    ListTypeNode,
    NonNullTypeNode,
    SchemaDefinitionNode,
    TypeDefinitionNode,
    TypeExtensionNode,
    build_ast_schema,
    print_ast,
)

from modular_api.core.exceptions import (
    DuplicateTypeDefinitionError,
    SchemaCompositionError,
    UnresolvedTypeReferenceError,
)
from modular_api.features.graphql.schema_loader import TypeFragment

logger = logging.getLogger(__name__)

__all__ = ["BUILTIN_SCALARS", "TypeRegistry", "compose"]

BUILTIN_SCALARS = frozenset({"Int", "Float", "String", "Boolean", "ID"})


@dataclass(frozen=True)
class TypeRegistry:
    """Read-only union of all composed type definitions."""

    types: Mapping[str, TypeDefinitionNode]
    directives: Mapping[str, DirectiveDefinitionNode]
    extensions: tuple[TypeExtensionNode, ...]
    sources: Mapping[str, str]
    schema_definition: SchemaDefinitionNode | None = None

    def __contains__(self, name: object) -> bool:
        return name in self.types or name in BUILTIN_SCALARS

    def __len__(self) -> int:
        return len(self.types)

    def __iter__(self) -> Iterator[str]:
        return iter(self.types)

    @property
    def type_names(self) -> frozenset[str]:
        return frozenset(self.types)

    def get(self, name: str) -> TypeDefinitionNode | None:
        return self.types.get(name)

    def source_of(self, name: str) -> str | None:
        """Return the resource that first defined ``name``."""
        return self.sources.get(name)

    def to_document(self) -> DocumentNode:
        definitions: list = []
        if self.schema_definition is not None:
            definitions.append(self.schema_definition)
        definitions.extend(self.directives.values())
        definitions.extend(self.types.values())
        definitions.extend(self.extensions)
        return DocumentNode(definitions=tuple(definitions))

    def to_sdl(self) -> str:
        return print_ast(self.to_document())

    def build_schema(self) -> GraphQLSchema:
        """Build a graphql-core schema (without resolvers) from the registry."""
        return build_ast_schema(self.to_document())


def compose(fragments: Sequence[TypeFragment]) -> TypeRegistry:
    """Merge fragments into a TypeRegistry.

    Raises:
        DuplicateTypeDefinitionError: A name (or field of a type) is defined
            twice with different bodies.
        UnresolvedTypeReferenceError: A reference or extension names a type
            that exists neither in the fragments nor among the built-in scalars.
    """
    types: dict[str, TypeDefinitionNode] = {}
    directives: dict[str, DirectiveDefinitionNode] = {}
    sources: dict[str, str] = {}
    directive_sources: dict[str, str] = {}
    extensions: list[tuple[TypeExtensionNode, str]] = []
    seen_extensions: set[str] = set()
    schema_definition: SchemaDefinitionNode | None = None
    schema_source: str | None = None

    for fragment in fragments:
        for name, node in fragment.types.items():
            _merge(types, sources, name, node, fragment.source)
        for name, node in fragment.directives.items():
            _merge(directives, directive_sources, name, node, fragment.source)
        for ext in fragment.extensions:
            printed = print_ast(ext)
            if printed in seen_extensions:
                continue
            seen_extensions.add(printed)
            extensions.append((ext, fragment.source))
        if fragment.schema_definition is not None:
            if schema_definition is None:
                schema_definition = fragment.schema_definition
                schema_source = fragment.source
            elif print_ast(schema_definition) != print_ast(fragment.schema_definition):
                raise DuplicateTypeDefinitionError("schema", schema_source or "", fragment.source)

    _check_extensions(types, sources, extensions)
    _check_references(types, directives, extensions, schema_definition)

    registry = TypeRegistry(
        types=MappingProxyType(types),
        directives=MappingProxyType(directives),
        extensions=tuple(ext for ext, _ in extensions),
        sources=MappingProxyType(sources),
        schema_definition=schema_definition,
    )
    logger.info(
        "Composed type registry",
        extra={
            "fragments": [f.source for f in fragments],
            "types": len(types),
            "extensions": len(extensions),
        },
    )
    return registry


def _merge(target: dict, sources: dict[str, str], name: str, node, source: str) -> None:
    existing = target.get(name)
    if existing is None:
        target[name] = node
        sources[name] = source
        return
    if print_ast(existing) != print_ast(node):
        raise DuplicateTypeDefinitionError(name, sources[name], source)
    logger.debug("Identical definition merged", extra={"type_name": name, "source": source})


def _member_names(node) -> list[str]:
    members = getattr(node, "fields", None) or getattr(node, "values", None) or ()
    return [member.name.value for member in members]


def _check_extensions(
    types: dict[str, TypeDefinitionNode],
    sources: dict[str, str],
    extensions: list[tuple[TypeExtensionNode, str]],
) -> None:
    declared: dict[str, dict[str, str]] = {}
    for ext, source in extensions:
        name = ext.name.value
        base = types.get(name)
        if base is None:
            raise UnresolvedTypeReferenceError(name, f"extend {name}", source=source)
        if ext.kind.removesuffix("_extension") != base.kind.removesuffix("_definition"):
            raise SchemaCompositionError(
                detail=f"Extension of '{name}' in '{source}' does not match its kind",
                type="invalid-type-extension",
                extra={"type_name": name, "source": source},
            )
        members = declared.get(name)
        if members is None:
            members = dict.fromkeys(_member_names(base), sources[name])
            declared[name] = members
        for member in _member_names(ext):
            if member in members:
                raise DuplicateTypeDefinitionError(
                    name, members[member], source, field_name=member
                )
            members[member] = source


def _named(type_node) -> str:
    while isinstance(type_node, (ListTypeNode, NonNullTypeNode)):
        type_node = type_node.type
    return type_node.name.value


def _references(node) -> Iterator[tuple[str, str]]:
    """Yield (referenced type, referencing location) pairs of a definition."""
    owner = node.name.value
    for interface in getattr(node, "interfaces", None) or ():
        yield interface.name.value, owner
    if node.kind.startswith("union"):
        for member in node.types or ():
            yield member.name.value, owner
    for field in getattr(node, "fields", None) or ():
        where = f"{owner}.{field.name.value}"
        yield _named(field.type), where
        for argument in getattr(field, "arguments", None) or ():
            yield _named(argument.type), f"{where}({argument.name.value})"


def _check_references(
    types: dict[str, TypeDefinitionNode],
    directives: dict[str, DirectiveDefinitionNode],
    extensions: list[tuple[TypeExtensionNode, str]],
    schema_definition: SchemaDefinitionNode | None,
) -> None:
    def resolve(name: str, where: str) -> None:
        if name not in types and name not in BUILTIN_SCALARS:
            raise UnresolvedTypeReferenceError(name, where)

    for node in types.values():
        for name, where in _references(node):
            resolve(name, where)
    for ext, source in extensions:
        for name, where in _references(ext):
            if name not in types and name not in BUILTIN_SCALARS:
                raise UnresolvedTypeReferenceError(name, where, source=source)
    for directive in directives.values():
        for argument in directive.arguments or ():
            resolve(_named(argument.type), f"@{directive.name.value}({argument.name.value})")
    if schema_definition is not None:
        for operation in schema_definition.operation_types:
            resolve(operation.type.name.value, f"schema.{operation.operation.value}")
