"""
Enhanced structlog-based logging configuration for MintForge.

This module provides the logging system used by every service: contextvars
(saga and request ids), correlation ids, security sanitization of
credentials, and JSON or key=value rendering.

CRITICAL LOGGING REQUIREMENT:
All modules MUST use get_logger() from this module instead of
logging.getLogger(). Standard library loggers do not accept the keyword
context that the services pass on every call.

CORRECT USAGE:
    from ..structured_logging.enhanced_logging_config import get_logger
    logger = get_logger(__name__)
    logger.info("Character minted", token_id=7, tx_ref="0x...")
"""

import json
import logging
import os
import re
import sys
from typing import Any

import structlog
from structlog.contextvars import merge_contextvars
from structlog.stdlib import BoundLogger, LoggerFactory

from .logging_context import bind_request_context as _bind_request_context
from .logging_context import clear_request_context as _clear_request_context
from .logging_context import get_current_context as _get_current_context
from .logging_processors import add_correlation_id, sanitize_sensitive_data

bind_request_context = _bind_request_context
clear_request_context = _clear_request_context
get_current_context = _get_current_context

logger = structlog.get_logger(__name__)

_VALID_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
_ANSI_ESCAPE = re.compile(r"\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])")


class _LoggingState:  # pylint: disable=too-few-public-methods  # Reason: State container to avoid global statements
    """State container for logging initialization."""

    initialized: bool = False
    signature: str | None = None


_logging_state = _LoggingState()


def detect_environment() -> str:
    """
    Detect the runtime environment.

    Returns:
        One of "unit_test", "development", "staging" or "production"
    """
    if "pytest" in sys.modules or os.getenv("PYTEST_CURRENT_TEST"):
        return "unit_test"
    return os.getenv("MINTFORGE_ENVIRONMENT", "development").strip().lower() or "development"


def _key_value_renderer(bound_logger: Any, name: str, event_dict: dict[str, Any]) -> str:
    """Render key=value lines with ANSI escape sequences stripped."""
    try:
        formatted = structlog.processors.KeyValueRenderer(key_order=["timestamp", "level", "event"])(
            bound_logger, name, event_dict
        )
        return _ANSI_ESCAPE.sub("", formatted)
    except Exception as e:  # pylint: disable=broad-exception-caught  # Reason: renderer errors stay local
        return f"Logging renderer error: {type(e).__name__}: {str(e)}"


def configure_enhanced_structlog(
    environment: str | None = None,
    log_level: str = "INFO",
    log_format: str = "key_value",
) -> None:
    """
    Configure structlog with sanitization, correlation ids and contextvars.

    Args:
        environment: Environment name (auto-detected if None)
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: "json" or "key_value"
    """
    if environment is None:
        environment = detect_environment()

    level_name = str(log_level).upper()
    if level_name not in _VALID_LEVELS:
        level_name = "INFO"

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=getattr(logging, level_name), force=True)

    base_processors: list[Any] = [
        # Security first - sanitize sensitive data
        sanitize_sensitive_data,
        add_correlation_id,
        merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    renderer: Any
    if log_format == "json":
        renderer = structlog.processors.JSONRenderer(default=str)
    else:
        renderer = _key_value_renderer

    structlog.configure(
        processors=base_processors + [renderer],
        context_class=dict,
        logger_factory=LoggerFactory(),
        wrapper_class=BoundLogger,
        cache_logger_on_first_use=False,
    )

    structlog.get_logger(__name__).debug(
        "Structlog configured",
        environment=environment,
        log_level=level_name,
        log_format=log_format,
    )


def setup_enhanced_logging(config: Any, *, force_reconfigure: bool = False) -> None:
    """
    Set up logging from a LoggingConfig (or a plain mapping with the same keys).

    Args:
        config: LoggingConfig instance or dict with environment/level/format
        force_reconfigure: Reconfigure even if logging was already initialized
    """
    if hasattr(config, "model_dump"):
        settings = config.model_dump()
    else:
        settings = dict(config or {})

    config_signature = json.dumps(settings, sort_keys=True, default=str)
    if _logging_state.initialized and not force_reconfigure:
        get_logger("mintforge.structured_logging.setup").debug(
            "setup_enhanced_logging skipped; logging system already initialized",
            config_signature=_logging_state.signature,
        )
        return

    environment = settings.get("environment") or detect_environment()
    configure_enhanced_structlog(
        environment=environment,
        log_level=settings.get("level", "INFO"),
        log_format=settings.get("format", "key_value"),
    )

    get_logger("mintforge.structured_logging.enhanced").info(
        "Enhanced logging system initialized",
        environment=environment,
        log_level=settings.get("level", "INFO"),
        security_sanitization=True,
        correlation_ids=True,
    )

    _logging_state.initialized = True
    _logging_state.signature = config_signature


def reset_logging_state() -> None:
    """Forget that logging was initialized (used by tests)."""
    _logging_state.initialized = False
    _logging_state.signature = None


def get_logger(name: str) -> Any:  # Returns BoundLogger but typed as Any for flexibility
    """
    Get a structlog logger with the specified name.

    This is the public API for obtaining loggers. All application code
    should use this function rather than calling structlog.get_logger()
    directly.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger instance
    """
    return structlog.get_logger(name)
