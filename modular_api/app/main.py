"""FastAPI application factory."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import FastAPI

from modular_api.app.lifespan import lifespan
from modular_api.core.settings import get_app_settings, get_graphql_settings
from modular_api.features.graphql.context import ContextResolver
from modular_api.features.graphql.registry import ModuleRegistry
from modular_api.features.graphql.router import create_graphql_router
from modular_api.features.session import SessionService, SessionServiceBinding
from modular_api.infra.sessions import InMemorySessionStore

if TYPE_CHECKING:
    from collections.abc import Iterable
    from typing import Any

    from modular_api.core.settings import AppSettings, GraphQLSettings
    from modular_api.features.graphql.binding import ServiceBinding
    from modular_api.infra.sessions import SessionStore


def create_app(
    session_store: SessionStore | None = None,
    bindings: Iterable[ServiceBinding[Any]] = (),
    *,
    app_settings: AppSettings | None = None,
    graphql_settings: GraphQLSettings | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    The core session module is always registered first; ``bindings`` add
    further service modules. Schema composition happens in the lifespan.

    Returns:
        Configured FastAPI application instance.
    """
    app_settings = app_settings or get_app_settings()
    graphql_settings = graphql_settings or get_graphql_settings()
    session_store = session_store if session_store is not None else InMemorySessionStore()

    app = FastAPI(
        title=app_settings.title,
        version=app_settings.version,
        debug=app_settings.debug,
        lifespan=lifespan,
    )

    registry = ModuleRegistry(ContextResolver(session_store, graphql_settings), graphql_settings)
    registry.register(SessionServiceBinding(SessionService(version=app_settings.version)))
    for binding in bindings:
        registry.register(binding)

    app.state.session_store = session_store
    app.state.module_registry = registry

    if graphql_settings.enabled:
        app.include_router(create_graphql_router(registry.compose, graphql_settings))

    return app


# Application instance for uvicorn
app = create_app()
