"""Exception hierarchy for the module binding layer.

Every error carries RFC 7807 style fields (status, detail, type, title, extra)
so the same object can be rendered as a GraphQL field error or an HTTP problem
document. Two families exist:

- ``SchemaCompositionError`` subclasses are startup-fatal. They abort schema
  composition and the server must not become ready.
- Request-scoped errors (sessions, connections, permissions, rate limits) are
  surfaced as field-level GraphQL errors; independent fields keep resolving.
"""

from __future__ import annotations

from typing import Any


class AppException(Exception):
    """Base application exception.

    Attributes:
        status_code: HTTP status code for the error.
        detail: Human-readable error message.
        type: Error type identifier (kebab-case slug).
        title: Short, human-readable summary of the problem type.
        instance: URI reference that identifies the specific occurrence.
        extra: Additional context-specific information about the error.

    Example:
        raise AppException(
            status_code=404,
            detail="Connection 'pg-1' not found",
            type="connection-not-found",
            extra={"connection_id": "pg-1"},
        )
    """

    def __init__(
        self,
        status_code: int,
        detail: str,
        type: str = "about:blank",
        title: str | None = None,
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        self.status_code = status_code
        self.detail = detail
        self.type = type
        self.title = title or self._default_title(status_code)
        self.instance = instance
        self.extra = extra or {}
        super().__init__(detail)

    @staticmethod
    def _default_title(status_code: int) -> str:
        titles = {
            400: "Bad Request",
            401: "Unauthorized",
            403: "Forbidden",
            404: "Not Found",
            409: "Conflict",
            429: "Too Many Requests",
            500: "Internal Server Error",
            503: "Service Unavailable",
            504: "Gateway Timeout",
        }
        return titles.get(status_code, "Error")

    @property
    def code(self) -> str:
        """Machine-readable error code, e.g. ``SESSION_EXPIRED``."""
        if self.type == "about:blank":
            return "INTERNAL_ERROR"
        return self.type.upper().replace("-", "_")

    def to_extensions(self) -> dict[str, Any]:
        """Render the error as GraphQL error extensions."""
        extensions: dict[str, Any] = {
            "code": self.code,
            "type": self.type,
            "status": self.status_code,
        }
        if self.extra:
            extensions["detail"] = dict(self.extra)
        return extensions


class NotFoundException(AppException):
    """Exception raised when a resource is not found."""

    def __init__(
        self,
        detail: str,
        type: str = "not-found",
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            status_code=404,
            detail=detail,
            type=type,
            title="Not Found",
            instance=instance,
            extra=extra,
        )


class UnauthorizedException(AppException):
    """Exception raised when the caller has no usable session."""

    def __init__(
        self,
        detail: str = "Authentication required",
        type: str = "unauthorized",
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            status_code=401,
            detail=detail,
            type=type,
            title="Unauthorized",
            instance=instance,
            extra=extra,
        )


class ForbiddenException(AppException):
    """Exception raised when access is forbidden."""

    def __init__(
        self,
        detail: str = "Access denied",
        type: str = "forbidden",
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            status_code=403,
            detail=detail,
            type=type,
            title="Forbidden",
            instance=instance,
            extra=extra,
        )


class RateLimitException(AppException):
    """Exception raised when rate limit is exceeded.

    Example:
        raise RateLimitException(
            detail="Too many calls to navigator.list_nodes",
            extra={"retry_after": 12, "limit": 100, "window": 60},
        )
    """

    def __init__(
        self,
        detail: str,
        type: str = "rate-limit-exceeded",
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
        *,
        status_code: int = 429,
    ) -> None:
        super().__init__(
            status_code=status_code,
            detail=detail,
            type=type,
            title="Too Many Requests",
            instance=instance,
            extra=extra,
        )


# ============================================================================
# Schema composition (startup-fatal)
# ============================================================================


class SchemaCompositionError(AppException):
    """Base class for errors that must prevent server readiness."""

    def __init__(
        self,
        detail: str,
        type: str = "schema-composition-error",
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            status_code=500,
            detail=detail,
            type=type,
            title="Schema Composition Failed",
            extra=extra,
        )


class SchemaNotFoundError(SchemaCompositionError):
    """Raised when a module's schema resource does not exist.

    Example:
        raise SchemaNotFoundError("schema/users.graphqls", package="modules.users")
    """

    def __init__(self, resource: str, package: str | None = None) -> None:
        detail = f"Schema file '{resource}' not found"
        if package:
            detail = f"{detail} in package '{package}'"
        super().__init__(
            detail=detail,
            type="schema-not-found",
            extra={"resource": resource, "package": package},
        )
        self.resource = resource


class SchemaParseError(SchemaCompositionError):
    """Raised when a schema resource is not well-formed SDL."""

    def __init__(
        self,
        resource: str,
        reason: str,
        line: int | None = None,
        column: int | None = None,
    ) -> None:
        location = f" at {line}:{column}" if line is not None else ""
        super().__init__(
            detail=f"Error parsing schema '{resource}'{location}: {reason}",
            type="schema-parse-error",
            extra={"resource": resource, "line": line, "column": column},
        )
        self.resource = resource


class DuplicateTypeDefinitionError(SchemaCompositionError):
    """Raised when two definitions share a name but differ in body."""

    def __init__(
        self,
        type_name: str,
        first_source: str,
        second_source: str,
        field_name: str | None = None,
    ) -> None:
        subject = f"{type_name}.{field_name}" if field_name else type_name
        super().__init__(
            detail=(
                f"Conflicting definitions of '{subject}' "
                f"in '{first_source}' and '{second_source}'"
            ),
            type="duplicate-type-definition",
            extra={
                "type_name": type_name,
                "field_name": field_name,
                "sources": [first_source, second_source],
            },
        )
        self.type_name = type_name


class UnresolvedTypeReferenceError(SchemaCompositionError):
    """Raised when a definition references a type absent from the registry."""

    def __init__(self, type_name: str, referenced_by: str, source: str | None = None) -> None:
        super().__init__(
            detail=f"Type '{type_name}' referenced by '{referenced_by}' is not defined",
            type="unresolved-type-reference",
            extra={"type_name": type_name, "referenced_by": referenced_by, "source": source},
        )
        self.type_name = type_name


# ============================================================================
# Request context
# ============================================================================


class RequestUnavailableError(AppException):
    """Raised when the resolution context carries no originating request.

    This is an execution engine integration bug rather than a client error.
    """

    def __init__(self, field_name: str | None = None) -> None:
        detail = "Execution context carries no originating request"
        if field_name:
            detail = f"{detail} (field '{field_name}')"
        super().__init__(
            status_code=500,
            detail=detail,
            type="request-unavailable",
            extra={"field": field_name} if field_name else None,
        )


class SessionNotFoundError(UnauthorizedException):
    """Raised when no session matches the request credential."""

    def __init__(self, detail: str = "No session found for request") -> None:
        super().__init__(detail=detail, type="session-not-found")


class SessionExpiredError(UnauthorizedException):
    """Raised when the matched session has expired."""

    def __init__(self, session_id: str) -> None:
        super().__init__(
            detail=f"Session '{session_id}' has expired",
            type="session-expired",
            extra={"session_id": session_id},
        )


class SessionLookupTimeoutError(AppException):
    """Raised when the session store does not answer in time."""

    def __init__(self, timeout_seconds: float) -> None:
        super().__init__(
            status_code=504,
            detail=f"Session lookup timed out after {timeout_seconds}s",
            type="session-lookup-timeout",
            extra={"timeout_seconds": timeout_seconds},
        )


class ConnectionNotFoundError(NotFoundException):
    """Raised when a connection id is unknown to the caller's session.

    The message is identical whether the id does not exist at all or belongs
    to another session, so callers cannot probe foreign connection ids.
    """

    def __init__(self, connection_id: str | None) -> None:
        super().__init__(
            detail=f"Connection '{connection_id}' not found",
            type="connection-not-found",
            extra={"connection_id": connection_id},
        )


class PermissionDeniedError(ForbiddenException):
    """Raised by the interception layer when a check denies a call."""

    def __init__(
        self,
        reason: str = "Permission denied",
        module: str | None = None,
        operation: str | None = None,
    ) -> None:
        extra: dict[str, Any] = {}
        if module:
            extra["module"] = module
        if operation:
            extra["operation"] = operation
        super().__init__(detail=reason, type="permission-denied", extra=extra or None)


__all__ = [
    "AppException",
    "ConnectionNotFoundError",
    "DuplicateTypeDefinitionError",
    "ForbiddenException",
    "NotFoundException",
    "PermissionDeniedError",
    "RateLimitException",
    "RequestUnavailableError",
    "SchemaCompositionError",
    "SchemaNotFoundError",
    "SchemaParseError",
    "SessionExpiredError",
    "SessionLookupTimeoutError",
    "SessionNotFoundError",
    "UnauthorizedException",
    "UnresolvedTypeReferenceError",
]
