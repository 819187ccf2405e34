"""
Error logging utilities for MintForge.

Standardized helpers that log an error with its context and then raise the
matching MintForge exception, so every raise site reads the same way.
"""

from typing import Any, NoReturn

from ..exceptions import ErrorContext, MintForgeError, create_error_context
from ..structured_logging.enhanced_logging_config import get_logger

logger = get_logger(__name__)

__all__ = ["create_error_context", "log_and_raise"]

_TAGGED = ("stage", "reason", "field")


def log_and_raise(
    exception_class: type[MintForgeError],
    message: str,
    context: ErrorContext | None = None,
    details: dict[str, Any] | None = None,
    user_friendly: str | None = None,
    logger_name: str | None = None,
    **error_kwargs: Any,
) -> NoReturn:
    """
    Log a rejected request with its saga context, then raise.

    Args:
        exception_class: MintForgeError subclass to raise
        message: Technical message for the log and the exception
        context: Owner, token and saga the failure belongs to (empty when None)
        details: Structured details copied onto the exception
        user_friendly: Message safe to show a player
        logger_name: Log under this name instead of this module's logger
        **error_kwargs: Passed through to the exception (stage, reason, field, value ...)

    Raises:
        exception_class, always
    """
    error_logger = get_logger(logger_name) if logger_name else logger
    context = context or create_error_context()
    tags = {key: str(getattr(value, "value", value)) for key, value in error_kwargs.items() if key in _TAGGED}

    error_logger.error(
        f"Rejecting request: {message}",
        error_type=exception_class.__name__,
        owner=context.owner,
        token_id=context.token_id,
        operation=context.operation,
        details=details or {},
        **tags,
    )
    raise exception_class(message, context=context, details=details, user_friendly=user_friendly, **error_kwargs)
