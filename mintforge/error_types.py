"""
Centralized error types and constants for MintForge.

Every failure surfaced by the orchestrator, the progression engine or the
registry carries one of these stable, machine-readable codes.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any


class ErrorType(Enum):
    """Standardized error codes for consistent categorization."""

    # Saga collaborators
    GENERATION_FAILED = "generation_failed"
    PUBLISH_FAILED = "publish_failed"
    LEDGER_FAILED = "ledger_failed"

    # Caller input
    VALIDATION_FAILED = "validation_failed"

    # Lookups
    NOT_FOUND = "not_found"

    # Saga control
    CREATION_CANCELLED = "creation_cancelled"

    # Configuration and System
    CONFIGURATION_ERROR = "configuration_error"
    INTERNAL_ERROR = "internal_error"


class ValidationReason(Enum):
    """Refinements of VALIDATION_FAILED carried in error details."""

    INVALID_ARCHETYPE = "invalid_archetype"
    INVALID_ADDRESS = "invalid_address"
    INVALID_AMOUNT = "invalid_amount"
    EXPERIENCE_OVERFLOW = "experience_overflow"
    EVOLUTION_NOT_ELIGIBLE = "evolution_not_eligible"
    ALREADY_EVOLVED = "already_evolved"
    RECORD_RETIRED = "record_retired"
    INVALID_ATTRIBUTES = "invalid_attributes"
    INVALID_PAGE = "invalid_page"
    INVALID_CID = "invalid_cid"
    INVALID_GENERATOR_OUTPUT = "invalid_generator_output"


class ErrorSeverity(Enum):
    """Error severity levels for logging and handling."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# Failures a caller may fix by re-running the whole saga
RETRYABLE_ERROR_TYPES = frozenset(
    {
        ErrorType.GENERATION_FAILED,
        ErrorType.PUBLISH_FAILED,
        ErrorType.LEDGER_FAILED,
    }
)


def is_retryable(error_type: ErrorType) -> bool:
    """Return True when a caller-level retry of the saga can succeed."""
    return error_type in RETRYABLE_ERROR_TYPES


def create_standard_error_response(
    error_type: ErrorType,
    message: str,
    user_friendly: str | None = None,
    details: dict[str, Any] | None = None,
    severity: ErrorSeverity = ErrorSeverity.MEDIUM,
) -> dict[str, Any]:
    """
    Create a standardized error response.

    Args:
        error_type: The type of error
        message: Technical error message
        user_friendly: User-friendly error message (optional)
        details: Additional error details (optional)
        severity: Error severity level (optional)

    Returns:
        Standardized error response dictionary
    """
    return {
        "error": {
            "type": error_type.value,
            "message": message,
            "user_friendly": user_friendly or message,
            "details": details or {},
            "severity": severity.value,
            "retryable": is_retryable(error_type),
            "timestamp": datetime.now(UTC).isoformat(),
        }
    }
