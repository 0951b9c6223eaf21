"""Loading of per-module SDL schema resources.

Each service module ships its schema as a ``.graphqls`` file inside its Python
package. The loader reads that resource and turns it into a TypeFragment: the
named type definitions, type extensions, directive definitions and an
optional ``schema { ... }`` block it contributes.

Loading touches only the resource being read, so it may be called repeatedly
and from several threads at once.
"""

from __future__ import annotations

import importlib.resources
import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import ModuleType
from typing import TYPE_CHECKING

from graphql import (
    DirectiveDefinitionNode,
    ExecutableDefinitionNode,
    GraphQLSyntaxError,
    SchemaDefinitionNode,
    TypeDefinitionNode,
    TypeExtensionNode,
    parse,
    print_ast,
)

from modular_api.core.exceptions import (
    DuplicateTypeDefinitionError,
    SchemaNotFoundError,
    SchemaParseError,
)

if TYPE_CHECKING:
    from importlib.resources.abc import Traversable

logger = logging.getLogger(__name__)

__all__ = [
    "SchemaResource",
    "TypeFragment",
    "load_schema_definition",
    "parse_schema_definition",
]


@dataclass(frozen=True)
class SchemaResource:
    """Locator of a schema file relative to a package.

    ``package`` is a module, a dotted module name, or a directory anchor
    (Path or Traversable).

    Example:
        SchemaResource("modular_api.features.session", "schema/session.graphqls")
    """

    package: str | ModuleType | Path | Traversable
    path: str

    @property
    def package_name(self) -> str:
        if isinstance(self.package, ModuleType):
            return self.package.__name__
        return str(self.package)

    def __str__(self) -> str:
        return self.path

    def open_text(self) -> str:
        """Read the resource as UTF-8.

        Raises:
            SchemaNotFoundError: The resource does not exist.
            SchemaParseError: The resource is not valid UTF-8.
        """
        try:
            if isinstance(self.package, (str, ModuleType)):
                anchor = importlib.resources.files(self.package)
            else:
                anchor = self.package
            resource = anchor.joinpath(self.path)
            if not resource.is_file():
                raise SchemaNotFoundError(self.path, package=self.package_name)
            return resource.read_text(encoding="utf-8")
        except (ModuleNotFoundError, FileNotFoundError, NotADirectoryError) as e:
            raise SchemaNotFoundError(self.path, package=self.package_name) from e
        except UnicodeDecodeError as e:
            raise SchemaParseError(self.path, "not valid UTF-8") from e


@dataclass(frozen=True)
class TypeFragment:
    """Schema definitions contributed by one resource."""

    source: str
    types: dict[str, TypeDefinitionNode] = field(default_factory=dict)
    extensions: tuple[TypeExtensionNode, ...] = ()
    directives: dict[str, DirectiveDefinitionNode] = field(default_factory=dict)
    schema_definition: SchemaDefinitionNode | None = None

    @property
    def type_names(self) -> frozenset[str]:
        return frozenset(self.types)

    def __len__(self) -> int:
        return len(self.types) + len(self.extensions) + len(self.directives)


def load_schema_definition(resource: SchemaResource) -> TypeFragment:
    """Load and parse a module's schema resource.

    Raises:
        SchemaNotFoundError: The resource does not exist.
        SchemaParseError: The resource is not a valid SDL document.
        DuplicateTypeDefinitionError: The resource defines a name twice with
            different bodies.
    """
    text = resource.open_text()
    fragment = parse_schema_definition(text, resource.path)
    logger.debug(
        "Loaded schema resource",
        extra={
            "resource": resource.path,
            "package": resource.package_name,
            "types": sorted(fragment.types),
            "extensions": len(fragment.extensions),
        },
    )
    return fragment


def parse_schema_definition(text: str, source: str = "<string>") -> TypeFragment:
    """Parse SDL text into a TypeFragment."""
    try:
        document = parse(text, no_location=False)
    except GraphQLSyntaxError as e:
        line = column = None
        if e.locations:
            line, column = e.locations[0].line, e.locations[0].column
        raise SchemaParseError(source, e.message, line=line, column=column) from e

    types: dict[str, TypeDefinitionNode] = {}
    directives: dict[str, DirectiveDefinitionNode] = {}
    extensions: list[TypeExtensionNode] = []
    schema_definition: SchemaDefinitionNode | None = None

    for definition in document.definitions:
        if isinstance(definition, ExecutableDefinitionNode):
            line, column = _location(definition)
            raise SchemaParseError(
                source,
                "executable definitions are not allowed in a schema resource",
                line=line,
                column=column,
            )
        if isinstance(definition, TypeDefinitionNode):
            _add_unique(types, definition, source)
        elif isinstance(definition, DirectiveDefinitionNode):
            _add_unique(directives, definition, source)
        elif isinstance(definition, TypeExtensionNode):
            extensions.append(definition)
        elif isinstance(definition, SchemaDefinitionNode):
            if schema_definition is not None:
                line, column = _location(definition)
                raise SchemaParseError(
                    source, "multiple schema definitions", line=line, column=column
                )
            schema_definition = definition
        else:
            line, column = _location(definition)
            raise SchemaParseError(
                source,
                f"unsupported definition '{definition.kind}'",
                line=line,
                column=column,
            )

    return TypeFragment(
        source=source,
        types=types,
        extensions=tuple(extensions),
        directives=directives,
        schema_definition=schema_definition,
    )


def _add_unique(target: dict, definition, source: str) -> None:
    name = definition.name.value
    existing = target.get(name)
    if existing is None:
        target[name] = definition
    elif print_ast(existing) != print_ast(definition):
        raise DuplicateTypeDefinitionError(name, source, source)


def _location(node) -> tuple[int | None, int | None]:
    if node.loc is None:
        return None, None
    token = node.loc.start_token
    return token.line, token.column
