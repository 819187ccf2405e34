"""
Configuration module for MintForge.

Usage:
    from mintforge.config import get_config

    config = get_config()
    logger.info("Progression constants", xp_per_level=config.progression.xp_per_level)
"""

import sys
import threading
from functools import lru_cache
from os import getenv

from .models import (
    AppConfig,
    CreationConfig,
    GenerationConfig,
    LedgerConfig,
    LoggingConfig,
    ProgressionConfig,
    RegistryConfig,
    StorageConfig,
)

__all__ = [
    "get_config",
    "reset_config",
    "AppConfig",
    "CreationConfig",
    "GenerationConfig",
    "LedgerConfig",
    "LoggingConfig",
    "ProgressionConfig",
    "RegistryConfig",
    "StorageConfig",
]

_config_lock = threading.Lock()


def _is_test_mode() -> bool:
    """Detect pytest execution (module loaded or pytest environment variable set)."""
    if "pytest" in sys.modules:
        return True
    return bool(getenv("PYTEST_CURRENT_TEST"))


@lru_cache(maxsize=1)
def _get_config_cached() -> AppConfig:
    """Production config loader with caching."""
    with _config_lock:
        return AppConfig()


def get_config() -> AppConfig:
    """
    Get application configuration (singleton in production, fresh in tests).

    Configuration is loaded from environment variables and an optional .env file.

    Returns:
        AppConfig: The application configuration

    Raises:
        pydantic.ValidationError: If configuration is invalid
    """
    if _is_test_mode():
        return AppConfig()
    return _get_config_cached()


def reset_config() -> None:
    """Clear the cached configuration so the next get_config() reloads it."""
    with _config_lock:
        _get_config_cached.cache_clear()
