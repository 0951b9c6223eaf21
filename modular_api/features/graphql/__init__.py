"""GraphQL module binding layer.

Service modules contribute an SDL fragment and an implementation; this
package composes the fragments into one schema, puts every implementation
behind the interception layer and resolves per-request context.
"""

from modular_api.features.graphql.binding import BindingState, ServiceBinding
from modular_api.features.graphql.checks import (
    AuditCheck,
    AuditEntry,
    InMemoryAuditSink,
    LoggingAuditSink,
    LoggingCheck,
    RateLimitCheck,
    RequireAuthenticated,
    RequirePermission,
    RequireSession,
    SlidingWindowRateLimiter,
)
from modular_api.features.graphql.context import CallContext, ContextResolver, GraphQLContext
from modular_api.features.graphql.interception import CheckResult, InvocationRecord, wrap
from modular_api.features.graphql.registry import ComposedSchema, ModuleRegistry
from modular_api.features.graphql.schema_composer import TypeRegistry, compose
from modular_api.features.graphql.schema_loader import (
    SchemaResource,
    TypeFragment,
    load_schema_definition,
    parse_schema_definition,
)
from modular_api.features.graphql.wiring import RuntimeWiring, build_executable_schema

__all__ = [
    "AuditCheck",
    "AuditEntry",
    "BindingState",
    "CallContext",
    "CheckResult",
    "ComposedSchema",
    "ContextResolver",
    "GraphQLContext",
    "InMemoryAuditSink",
    "InvocationRecord",
    "LoggingAuditSink",
    "LoggingCheck",
    "ModuleRegistry",
    "RateLimitCheck",
    "RequireAuthenticated",
    "RequirePermission",
    "RequireSession",
    "RuntimeWiring",
    "SchemaResource",
    "ServiceBinding",
    "SlidingWindowRateLimiter",
    "TypeFragment",
    "TypeRegistry",
    "build_executable_schema",
    "compose",
    "load_schema_definition",
    "parse_schema_definition",
    "wrap",
]
