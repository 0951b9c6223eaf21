"""Registry of service modules and one-shot schema composition.

Modules are registered at startup, then ``compose()`` loads every enabled
module's fragment, merges them into a TypeRegistry, wires each module's
resolvers and builds the executable schema. Composition runs once; the
result is cached and read-only afterwards.

Modules can be switched off without code changes:
    GRAPHQL_DISABLED_MODULES=navigator,sql
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from modular_api.features.graphql.schema_composer import TypeRegistry, compose
from modular_api.features.graphql.wiring import RuntimeWiring, build_executable_schema

if TYPE_CHECKING:
    from graphql import GraphQLSchema

    from modular_api.core.settings import GraphQLSettings
    from modular_api.features.graphql.binding import ServiceBinding
    from modular_api.features.graphql.context import ContextResolver

logger = logging.getLogger(__name__)

__all__ = ["ComposedSchema", "ModuleRegistry"]


@dataclass(frozen=True)
class ComposedSchema:
    """Result of composition: the registry, executable schema and bindings."""

    registry: TypeRegistry
    schema: GraphQLSchema
    bindings: tuple[ServiceBinding[Any], ...]
    wiring: RuntimeWiring

    @property
    def module_names(self) -> list[str]:
        return [binding.name for binding in self.bindings]


class ModuleRegistry:
    """Registry of service bindings.

    Example:
        >>> registry = ModuleRegistry(ContextResolver(store))
        >>> registry.register(SessionServiceBinding())
        >>> composed = registry.compose()
    """

    def __init__(
        self,
        context_resolver: ContextResolver,
        settings: GraphQLSettings | None = None,
    ) -> None:
        self.context_resolver = context_resolver
        self.settings = settings if settings is not None else context_resolver.settings
        self._bindings: dict[str, ServiceBinding[Any]] = {}
        self._composed: ComposedSchema | None = None

    def register(self, binding: ServiceBinding[Any]) -> ServiceBinding[Any]:
        """Register a binding.

        Raises:
            ValueError: A module with the same name is already registered.
            RuntimeError: The registry has already been composed.
        """
        if self._composed is not None:
            raise RuntimeError(f"Cannot register module '{binding.name}' after composition")
        if binding.name in self._bindings:
            raise ValueError(f"Module '{binding.name}' is already registered")
        self._bindings[binding.name] = binding
        logger.debug("Registered module binding", extra={"service_module": binding.name})
        return binding

    def get(self, name: str) -> ServiceBinding[Any] | None:
        return self._bindings.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._bindings

    def __iter__(self) -> Iterator[ServiceBinding[Any]]:
        return iter(self._bindings.values())

    def __len__(self) -> int:
        return len(self._bindings)

    @property
    def is_composed(self) -> bool:
        return self._composed is not None

    @property
    def enabled_bindings(self) -> list[ServiceBinding[Any]]:
        enabled = []
        for binding in self._bindings.values():
            if self.settings.is_module_enabled(binding.name):
                enabled.append(binding)
            else:
                logger.debug("Skipping disabled module: %s", binding.name)
        return enabled

    def compose(self) -> ComposedSchema:
        """Compose all enabled modules once and cache the result.

        Raises:
            SchemaCompositionError: Any module's schema cannot be loaded,
                merged or wired. Nothing is cached in that case.
        """
        if self._composed is not None:
            return self._composed

        bindings = self.enabled_bindings
        registry = compose([binding.get_schema_fragment() for binding in bindings])
        for binding in bindings:
            binding.mark_registered()

        wiring = RuntimeWiring()
        for binding in bindings:
            binding.attach(self.context_resolver)
            binding.bind_wiring(wiring)
        schema = build_executable_schema(registry, wiring)

        self._composed = ComposedSchema(
            registry=registry,
            schema=schema,
            bindings=tuple(bindings),
            wiring=wiring,
        )
        logger.info(
            "Composed GraphQL schema from %d modules",
            len(bindings),
            extra={"modules": self._composed.module_names, "types": len(registry)},
        )
        return self._composed
