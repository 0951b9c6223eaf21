"""GraphQL-over-HTTP router for FastAPI integration.

One POST endpoint (``GRAPHQL_PATH``) accepts ``{query, variables,
operationName}`` and answers with the standard ``{data, errors}`` shape.
Field-level failures land in ``errors`` while independent fields still
resolve, so the status code is 200 whenever execution ran.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, BackgroundTasks, Request, Response
from graphql import graphql
from pydantic import BaseModel, ConfigDict, Field

from modular_api.features.graphql.context import CORRELATION_HEADER, GraphQLContext
from modular_api.features.graphql.error_handler import process_graphql_errors
from modular_api.infra.logging import clear_log_context, set_log_context

if TYPE_CHECKING:
    from modular_api.core.settings import GraphQLSettings
    from modular_api.features.graphql.registry import ComposedSchema

logger = logging.getLogger(__name__)

__all__ = ["GraphQLRequest", "create_graphql_router"]


class GraphQLRequest(BaseModel):
    """GraphQL request body."""

    query: str = Field(min_length=1)
    variables: dict[str, Any] | None = None
    operation_name: str | None = Field(default=None, alias="operationName")

    model_config = ConfigDict(populate_by_name=True)


def create_graphql_router(
    composed: ComposedSchema | Callable[[], ComposedSchema],
    settings: GraphQLSettings | None = None,
) -> APIRouter:
    """Create the GraphQL router.

    Args:
        composed: The composed schema, or a callable returning it (e.g.
            ``ModuleRegistry.compose``) when composition happens at startup.
        settings: GraphQL settings; loaded from the environment if omitted.
    """
    if settings is None:
        from modular_api.core.settings import get_graphql_settings

        settings = get_graphql_settings()

    get_composed = composed if callable(composed) else (lambda: composed)
    router = APIRouter(tags=["graphql"])

    @router.post(settings.path)
    async def execute_graphql(
        payload: GraphQLRequest,
        request: Request,
        response: Response,
        background_tasks: BackgroundTasks,
    ) -> dict[str, Any]:
        correlation_id = request.headers.get(CORRELATION_HEADER) or uuid.uuid4().hex
        response.headers[CORRELATION_HEADER] = correlation_id
        set_log_context(correlation_id=correlation_id)
        try:
            context = GraphQLContext(
                request=request,
                response=response,
                background_tasks=background_tasks,
                correlation_id=correlation_id,
            )
            result = await graphql(
                get_composed().schema,
                payload.query,
                variable_values=payload.variables,
                operation_name=payload.operation_name,
                context_value=context,
            )
            body: dict[str, Any] = {"data": result.data}
            if result.errors:
                body["errors"] = process_graphql_errors(
                    result.errors, mask_internal=settings.mask_internal_errors
                )
            return body
        finally:
            clear_log_context()

    return router
