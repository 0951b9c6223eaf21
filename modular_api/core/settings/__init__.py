"""Pydantic Settings v2 configuration.

Import settings via the cached loaders:
    from modular_api.core.settings import get_graphql_settings

Configuration precedence (highest to lowest):
    1. init kwargs (testing/overrides)
    2. Environment variables
    3. .env file
"""

from __future__ import annotations

from .app import AppSettings
from .graphql import GraphQLSettings
from .loader import (
    clear_settings_cache,
    get_app_settings,
    get_graphql_settings,
    get_logging_settings,
)
from .logs import LoggingSettings

__all__ = [
    "AppSettings",
    "GraphQLSettings",
    "LoggingSettings",
    "clear_settings_cache",
    "get_app_settings",
    "get_graphql_settings",
    "get_logging_settings",
]
