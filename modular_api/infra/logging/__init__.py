"""Logging infrastructure.

Basic usage:
    from modular_api.infra.logging import set_log_context
    import logging

    logger = logging.getLogger(__name__)

    set_log_context(correlation_id="abc-123", session_id="s-1")
    logger.info("Resolving field")  # Includes correlation_id and session_id
"""

from modular_api.infra.logging.config import configure_logging, setup_logging
from modular_api.infra.logging.context import (
    ContextInjectingFilter,
    clear_log_context,
    get_log_context,
    remove_from_log_context,
    set_log_context,
)
from modular_api.infra.logging.formatters import JSONFormatter

__all__ = [
    "ContextInjectingFilter",
    "JSONFormatter",
    "clear_log_context",
    "configure_logging",
    "get_log_context",
    "remove_from_log_context",
    "set_log_context",
    "setup_logging",
]
