"""
Exception hierarchy for MintForge.

Every error raised by the creation saga, the progression engine and the
registry derives from MintForgeError and carries a stable code, a
human-readable message, structured details and, for saga failures, the stage
that failed.
"""

import traceback
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, ClassVar

import httpx

from .error_types import ErrorSeverity, ErrorType, create_standard_error_response
from .structured_logging.enhanced_logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class ErrorContext:
    """
    Contextual information for error handling.

    Provides structured context for error reporting and debugging.
    """

    owner: str | None = None
    token_id: int | None = None
    saga_id: str | None = None
    operation: str | None = None
    request_id: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert context to dictionary for logging."""
        return {
            "owner": self.owner,
            "token_id": self.token_id,
            "saga_id": self.saga_id,
            "operation": self.operation,
            "request_id": self.request_id,
            "timestamp": self.timestamp.isoformat(),
            "metadata": self.metadata,
        }


class MintForgeError(Exception):
    """
    Base exception for all MintForge errors.

    Provides structured error handling with context and metadata
    for proper error categorization and debugging.
    """

    error_type: ClassVar[ErrorType] = ErrorType.INTERNAL_ERROR
    severity: ClassVar[ErrorSeverity] = ErrorSeverity.MEDIUM
    default_user_friendly: ClassVar[str] = "An internal error occurred"

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        details: dict[str, Any] | None = None,
        user_friendly: str | None = None,
        *,
        stage: str | None = None,
        reason: str | None = None,
    ):
        """
        Initialize a MintForge error.

        Args:
            message: Technical error message
            context: Error context information
            details: Additional error details
            user_friendly: User-friendly error message
            stage: Saga stage that failed, when raised from a saga
            reason: Finer-grained machine-readable reason
        """
        super().__init__(message)
        self.message = message
        self.context = context or ErrorContext()
        self.details = dict(details or {})
        self.user_friendly = user_friendly or self.default_user_friendly
        self.timestamp = datetime.now(UTC)
        self.stage: str | None = None
        self.reason: str | None = None
        if stage is not None:
            self._set_stage(stage)
        if reason is not None:
            self.reason = _plain(reason)
            self.details["reason"] = self.reason

        self._log_error()

    @property
    def code(self) -> str:
        """Stable machine-readable error code."""
        return self.error_type.value

    def _set_stage(self, stage: str) -> None:
        self.stage = _plain(stage)
        self.details["stage"] = self.stage

    def with_stage(self, stage: str) -> "MintForgeError":
        """Tag the error with the saga stage that raised it and return it."""
        self._set_stage(stage)
        return self

    def _log_error(self) -> None:
        """Log the error with structured context."""
        logger.error(
            "MintForge error occurred",
            error_type=self.__class__.__name__,
            code=self.code,
            message=self.message,
            context=self.context.to_dict(),
            details=self.details,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for API responses."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "user_friendly": self.user_friendly,
            "stage": self.stage,
            "reason": self.reason,
            "context": self.context.to_dict(),
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }

    def to_response(self) -> dict[str, Any]:
        """Render the standard error envelope."""
        return create_standard_error_response(
            self.error_type,
            self.message,
            user_friendly=self.user_friendly,
            details=self.details,
            severity=self.severity,
        )


def _plain(value: Any) -> str:
    """Return the value of a str Enum, or the string itself."""
    return str(getattr(value, "value", value))


class GenerationFailure(MintForgeError):
    """Narrative or portrait generation failed. Recoverable by re-running the saga."""

    error_type = ErrorType.GENERATION_FAILED
    default_user_friendly = "Character generation failed, please try again"


class PublishFailure(MintForgeError):
    """Content storage failed. Earlier published artifacts are left orphaned."""

    error_type = ErrorType.PUBLISH_FAILED
    default_user_friendly = "Could not store character content, please try again"


class LedgerFailure(MintForgeError):
    """A ledger transaction or read was rejected or timed out."""

    error_type = ErrorType.LEDGER_FAILED
    severity = ErrorSeverity.HIGH
    default_user_friendly = "The ledger rejected the transaction"

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        method: str | None = None,
        status_code: int | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, context, **kwargs)
        self.method = method
        self.status_code = status_code
        if method:
            self.details["method"] = method
        if status_code is not None:
            self.details["status_code"] = status_code


class ValidationFailure(MintForgeError):
    """Malformed input. Retrying will not help, the caller must fix the input."""

    error_type = ErrorType.VALIDATION_FAILED
    severity = ErrorSeverity.LOW
    default_user_friendly = "Invalid request"

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        field: str | None = None,
        value: Any | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, context, **kwargs)
        self.field = field
        self.value = value
        if field:
            self.details["field"] = field
        if value is not None:
            self.details["value"] = str(value)


class NotFoundFailure(MintForgeError):
    """The queried token (or content) does not exist."""

    error_type = ErrorType.NOT_FOUND
    severity = ErrorSeverity.LOW
    default_user_friendly = "Character not found"

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        resource_type: str | None = None,
        resource_id: Any | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, context, **kwargs)
        self.resource_type = resource_type
        self.resource_id = resource_id
        if resource_type:
            self.details["resource_type"] = resource_type
        if resource_id is not None:
            self.details["resource_id"] = str(resource_id)


class CreationCancelled(MintForgeError):
    """The caller cancelled a saga between stages."""

    error_type = ErrorType.CREATION_CANCELLED
    severity = ErrorSeverity.LOW
    default_user_friendly = "Character creation was cancelled"


class ConfigurationFailure(MintForgeError):
    """Configuration and wiring errors."""

    error_type = ErrorType.CONFIGURATION_ERROR
    severity = ErrorSeverity.CRITICAL
    default_user_friendly = "The service is misconfigured"

    def __init__(self, message: str, context: ErrorContext | None = None, config_key: str | None = None, **kwargs: Any):
        super().__init__(message, context, **kwargs)
        self.config_key = config_key
        if config_key:
            self.details["config_key"] = config_key


def create_error_context(**kwargs: Any) -> ErrorContext:
    """
    Create an error context with the given parameters.

    Args:
        **kwargs: Context parameters

    Returns:
        ErrorContext object
    """
    return ErrorContext(**kwargs)


def handle_exception(
    exc: BaseException,
    context: ErrorContext | None = None,
    *,
    default: type[MintForgeError] = MintForgeError,
) -> MintForgeError:
    """
    Convert a foreign exception to a MintForge error.

    Args:
        exc: The original exception
        context: Error context
        default: Error class for exceptions with no specific mapping; collaborator
            wrappers pass the failure type of the stage they guard

    Returns:
        MintForgeError instance
    """
    if isinstance(exc, MintForgeError):
        return exc

    details: dict[str, Any] = {"original_type": type(exc).__name__}
    message = str(exc) or type(exc).__name__

    if isinstance(exc, httpx.HTTPStatusError) and exc.response.status_code == 404:
        return NotFoundFailure(message, context, details=details)
    if isinstance(exc, TimeoutError | httpx.TimeoutException):
        details["timeout"] = True
        error_class = default if default is not MintForgeError else LedgerFailure
        return error_class(message, context, details=details)
    if default is not MintForgeError:
        return default(message, context, details=details)
    if isinstance(exc, ValueError | TypeError):
        return ValidationFailure(message, context, details=details)
    if isinstance(exc, LookupError):
        return NotFoundFailure(message, context, details=details)
    if isinstance(exc, ConnectionError | httpx.HTTPError):
        return LedgerFailure(message, context, details=details)

    details["traceback"] = traceback.format_exc()
    return MintForgeError(message, context, details=details)
