"""
Logging processors for structlog event processing.

This module provides processors for sanitizing sensitive data and adding
correlation identifiers to every log entry.
"""

import re
import uuid
from typing import Any

# Field-name patterns that must never reach a log sink in clear text
SENSITIVE_PATTERNS = [
    r"password",
    r"secret",
    r"(^|_)token$",  # access_token, but not token_id
    r"_key$",  # api_key, private_key, pinata_api_key ...
    r"^key$",
    r"mnemonic",
    r"seed_phrase",
    r"credential",
    r"^auth",
    r"jwt",
    r"bearer",
]

# Field names that look sensitive but only carry identifiers
SAFE_FIELDS = {
    "token_id",
    "new_token_id",
    "retired_token_id",
    "token_ids",
    "metadata_key",
}


def _is_sensitive(key: str) -> bool:
    key_lower = key.lower()
    if key_lower in SAFE_FIELDS:
        return False
    return any(re.search(pattern, key_lower) for pattern in SENSITIVE_PATTERNS)


def sanitize_sensitive_data(_logger: Any, _name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Remove sensitive data from log entries.

    Redacts API keys, signer secrets and similar credentials, recursing into
    nested dictionaries.

    Args:
        _logger: Logger instance (unused)
        _name: Logger name (unused)
        event_dict: Event dictionary to sanitize

    Returns:
        Sanitized event dictionary
    """

    def sanitize_dict(d: dict[str, Any]) -> dict[str, Any]:
        sanitized: dict[str, Any] = {}
        for key, value in d.items():
            if isinstance(value, dict):
                sanitized[key] = sanitize_dict(value)
            elif isinstance(key, str) and _is_sensitive(key):
                sanitized[key] = "[REDACTED]"
            else:
                sanitized[key] = value
        return sanitized

    return sanitize_dict(event_dict)


def add_correlation_id(_logger: Any, _name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Add a correlation ID to log entries if not already present.

    Sagas bind their own ``saga_id`` through contextvars; this processor only
    guarantees that stray entries can still be told apart.
    """
    if "correlation_id" not in event_dict:
        event_dict["correlation_id"] = str(uuid.uuid4())

    return event_dict
