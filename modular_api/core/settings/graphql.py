"""GraphQL binding layer settings.

Controls the endpoint path, how the session credential is read from the
request, the session lookup timeout, and which service modules take part in
schema composition. Environment variables use GRAPHQL_ prefix.
"""

from __future__ import annotations

import json
from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class GraphQLSettings(BaseSettings):
    """GraphQL binding configuration.

    Environment variables use GRAPHQL_ prefix.
    Example: GRAPHQL_PATH=/api/gql, GRAPHQL_DISABLED_MODULES='["navigator"]'
    """

    enabled: bool = Field(
        default=True,
        description="Enable GraphQL endpoint",
    )
    path: str = Field(
        default="/graphql",
        min_length=1,
        max_length=255,
        pattern=r"^/.*$",
        description="GraphQL endpoint path",
    )

    # Session association
    session_cookie_name: str = Field(
        default="modular-session-id",
        min_length=1,
        description="Cookie carrying the session credential",
    )
    session_header_name: str = Field(
        default="X-Session-ID",
        min_length=1,
        description="Header carrying the session credential (checked after the cookie)",
    )
    session_lookup_timeout: float | None = Field(
        default=5.0,
        gt=0,
        le=120.0,
        description="Seconds to wait for the session store; None waits indefinitely",
    )

    # Module toggles
    disabled_modules: Annotated[frozenset[str], NoDecode] = Field(
        default_factory=frozenset,
        description="Service modules excluded from schema composition",
    )

    # Interception defaults
    default_rate_limit: int = Field(
        default=600,
        ge=1,
        description="Calls allowed per window by RateLimitCheck when not overridden",
    )
    default_rate_window: float = Field(
        default=60.0,
        gt=0,
        description="Rate limit window in seconds",
    )

    # Error presentation
    mask_internal_errors: bool = Field(
        default=False,
        description="Replace non-application errors with a generic message",
    )

    model_config = SettingsConfigDict(
        env_prefix="GRAPHQL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )

    @field_validator("disabled_modules", mode="before")
    @classmethod
    def split_module_names(cls, v: object) -> object:
        """Accept a comma separated string as well as a JSON list."""
        if isinstance(v, str) and v.lstrip().startswith("["):
            return frozenset(json.loads(v))
        if isinstance(v, str):
            return frozenset(name.strip() for name in v.split(",") if name.strip())
        return v

    def is_module_enabled(self, name: str) -> bool:
        """Check if a service module takes part in composition."""
        return name not in self.disabled_modules
