"""LRU-cached settings loaders.

Settings are loaded and validated once, then cached for the lifetime of the
process. In tests, call ``clear_settings_cache()`` (or ``cache_clear()`` on a
single loader) after changing environment variables.
"""

from __future__ import annotations

from functools import lru_cache

from .app import AppSettings
from .graphql import GraphQLSettings
from .logs import LoggingSettings


@lru_cache(maxsize=1)
def get_app_settings() -> AppSettings:
    """Get cached application settings."""
    return AppSettings()


@lru_cache(maxsize=1)
def get_graphql_settings() -> GraphQLSettings:
    """Get cached GraphQL settings."""
    return GraphQLSettings()


@lru_cache(maxsize=1)
def get_logging_settings() -> LoggingSettings:
    """Get cached logging settings."""
    return LoggingSettings()


def clear_settings_cache() -> None:
    """Clear every cached settings instance."""
    get_app_settings.cache_clear()
    get_graphql_settings.cache_clear()
    get_logging_settings.cache_clear()
