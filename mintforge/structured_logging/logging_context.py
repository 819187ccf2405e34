"""
Context management utilities for enhanced logging.

This module provides functions for binding per-saga and per-request context
so every log entry emitted while driving one character carries the same ids.
"""

import uuid
from typing import Any

import structlog
from structlog.contextvars import bind_contextvars, clear_contextvars, unbind_contextvars


def bind_request_context(
    correlation_id: str | None = None,
    saga_id: str | None = None,
    owner: str | None = None,
    token_id: int | None = None,
    **kwargs: Any,
) -> str:
    """
    Bind request context to the current logging context.

    Args:
        correlation_id: Unique correlation ID for the request (generated if None)
        saga_id: Identifier of the creation/evolution saga, if any
        owner: Owner address the request acts for
        token_id: Token the request acts on
        **kwargs: Additional context variables

    Returns:
        The correlation ID that was bound
    """
    if correlation_id is None:
        correlation_id = str(uuid.uuid4())

    context_vars = {
        "correlation_id": correlation_id,
        "saga_id": saga_id,
        "owner": owner,
        "token_id": token_id,
        **kwargs,
    }

    # Remove None values
    context_vars = {k: v for k, v in context_vars.items() if v is not None}

    bind_contextvars(**context_vars)
    return correlation_id


def unbind_request_context(*keys: str) -> None:
    """Remove the given keys from the current logging context."""
    unbind_contextvars(*keys)


def clear_request_context() -> None:
    """Clear the current request context from logging."""
    clear_contextvars()


def get_current_context() -> dict[str, Any]:
    """Get the current logging context."""
    try:
        return structlog.contextvars.get_contextvars()
    except (AttributeError, KeyError):
        return {}
