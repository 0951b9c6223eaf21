"""Logging configuration setup.

Uses ``logging.config.dictConfig`` with every handler on the root logger;
module loggers propagate up. JSON Lines output is the default so records can
be shipped to a log aggregator as-is.
"""

from __future__ import annotations

import logging
import logging.config
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from modular_api.core.settings.logs import LoggingSettings

logger = logging.getLogger(__name__)
_LOGGING_INITIALIZED = False


def setup_logging(
    log_settings: LoggingSettings | None = None,
    *,
    force: bool = False,
    **configure_kwargs: Any,
) -> None:
    """Ensure logging is configured once across entrypoints.

    Args:
        log_settings: Optional logging settings instance. If omitted, settings
            are loaded via get_logging_settings().
        force: Reconfigure logging even if it was already initialized.
        **configure_kwargs: Explicit overrides for configure_logging().
    """
    global _LOGGING_INITIALIZED

    if _LOGGING_INITIALIZED and not force:
        return

    if log_settings is None:
        from modular_api.core.settings import get_logging_settings

        log_settings = get_logging_settings()

    configure_logging(**{**log_settings.to_logging_kwargs(), **configure_kwargs})
    _LOGGING_INITIALIZED = True


def configure_logging(
    log_level: str = "INFO",
    json_logs: bool = True,
    console_enabled: bool = True,
    include_context: bool = True,
    capture_warnings: bool = True,
    service_name: str = "modular-api",
    **kwargs: Any,
) -> None:
    """Configure the root logger with dictConfig.

    Args:
        log_level: Root logger level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_logs: Emit JSON Lines instead of human-readable text.
        console_enabled: Attach a stderr handler.
        include_context: Attach ContextInjectingFilter to handlers.
        capture_warnings: Forward Python warnings to logging.
        service_name: Static ``service`` field in JSON output.
        **kwargs: Ignored extra settings (logged at debug level).

    Example:
        from modular_api.core.settings import get_logging_settings
        configure_logging(**get_logging_settings().to_logging_kwargs())
    """
    if kwargs:
        logger.debug("Unused logging kwargs supplied: %s", ", ".join(sorted(kwargs)))

    logging.captureWarnings(capture_warnings)

    if json_logs:
        formatter: dict[str, Any] = {
            "()": "modular_api.infra.logging.formatters.JSONFormatter",
            "static": {"service": service_name},
        }
    else:
        formatter = {"format": "%(asctime)s %(levelname)s %(name)s %(message)s"}

    filters: dict[str, Any] = {}
    handler_filters: list[str] = []
    if include_context:
        filters["context"] = {"()": "modular_api.infra.logging.context.ContextInjectingFilter"}
        handler_filters.append("context")

    handlers: dict[str, Any] = {}
    if console_enabled:
        handlers["console"] = {
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stderr",
            "formatter": "default",
            "filters": handler_filters,
        }

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"default": formatter},
            "filters": filters,
            "handlers": handlers,
            "root": {"level": log_level.upper(), "handlers": list(handlers)},
        }
    )


__all__ = ["configure_logging", "setup_logging"]
