"""Application lifespan management.

Startup Order:
1. Logging - always runs first
2. Schema composition - every enabled module's schema is loaded, merged and
   wired; any failure aborts startup so the server never becomes ready

Shutdown: logs only; the composed schema is dropped with the app.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from modular_api.core.exceptions import SchemaCompositionError
from modular_api.infra.logging import setup_logging

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from fastapi import FastAPI

    from modular_api.features.graphql.registry import ModuleRegistry

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Compose the GraphQL schema before accepting traffic."""
    setup_logging()

    registry: ModuleRegistry = app.state.module_registry
    try:
        composed = registry.compose()
    except SchemaCompositionError as e:
        logger.exception(
            "Schema composition failed, failing startup",
            extra={"error_code": e.code, "error_detail": e.extra},
        )
        raise
    app.state.composed_schema = composed
    logger.info(
        "Application started",
        extra={"modules": composed.module_names, "types": len(composed.registry)},
    )

    yield

    logger.info("Application shutdown complete")
