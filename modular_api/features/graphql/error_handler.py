"""GraphQL error formatting and production error masking.

Request-scoped failures are raised as AppException subclasses by the context
resolver and the interception layer. graphql-core wraps them into a
GraphQLError on the failing field; this module turns those into response
entries with structured extensions so clients can branch on
``extensions.code`` instead of parsing messages.

Example response entry:
    {
        "message": "Session 's-1' has expired",
        "path": ["connectionState"],
        "extensions": {"code": "SESSION_EXPIRED", "type": "session-expired", "status": 401}
    }
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from modular_api.core.exceptions import AppException

if TYPE_CHECKING:
    from collections.abc import Iterable

    from graphql import GraphQLError, GraphQLFormattedError

logger = logging.getLogger(__name__)

__all__ = ["INTERNAL_ERROR_MESSAGE", "format_error", "mask_internal_error", "process_graphql_errors"]

INTERNAL_ERROR_MESSAGE = "An internal error occurred. Please try again later."


def process_graphql_errors(
    errors: Iterable[GraphQLError],
    *,
    mask_internal: bool = False,
) -> list[GraphQLFormattedError]:
    """Format execution errors for the response.

    Args:
        errors: Errors collected by graphql-core.
        mask_internal: Replace errors that are not AppException (and not
            GraphQL validation errors) with a generic message.
    """
    return [format_error(error, mask_internal=mask_internal) for error in errors]


def format_error(error: GraphQLError, *, mask_internal: bool = False) -> GraphQLFormattedError:
    original = error.original_error
    formatted: dict[str, Any] = dict(error.formatted)

    if isinstance(original, AppException):
        log = logger.error if original.status_code >= 500 else logger.info
        log(
            "GraphQL field error: %s",
            original.detail,
            extra={"error_code": original.code, "path": error.path},
        )
        extensions = dict(formatted.get("extensions") or {})
        extensions.update(original.to_extensions())
        formatted["extensions"] = extensions
        return formatted

    if original is None:
        # Syntax and validation errors are caused by the query itself.
        extensions = dict(formatted.get("extensions") or {})
        extensions.setdefault("code", "GRAPHQL_VALIDATION_FAILED")
        formatted["extensions"] = extensions
        return formatted

    logger.error(
        "Unhandled error while resolving %s",
        error.path,
        exc_info=(type(original), original, original.__traceback__),
        extra={"error_type": type(original).__name__},
    )
    if mask_internal:
        return mask_internal_error(error)
    extensions = dict(formatted.get("extensions") or {})
    extensions.setdefault("code", "INTERNAL_ERROR")
    extensions["debug"] = {
        "exception_type": type(original).__name__,
        "exception_message": str(original),
    }
    formatted["extensions"] = extensions
    return formatted


def mask_internal_error(error: GraphQLError) -> GraphQLFormattedError:
    """Replace an internal error with a generic message, keeping location data."""
    masked: dict[str, Any] = {
        "message": INTERNAL_ERROR_MESSAGE,
        "extensions": {"code": "INTERNAL_ERROR"},
    }
    if error.locations:
        masked["locations"] = [{"line": loc.line, "column": loc.column} for loc in error.locations]
    if error.path:
        masked["path"] = error.path
    return masked
