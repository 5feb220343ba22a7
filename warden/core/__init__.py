"""
Warden - Core Package
=====================

Logging, configuration, error types and persistence.

DESIGN:
    logger and get_config() are process-wide. Everything stateful beyond
    those (database, cache, gateway) is constructed by the bot and passed
    explicitly to the components that use it.
"""

from .config import (
    Config,
    ConfigValidationError,
    EmbedColors,
    get_config,
    is_admin,
)

from .errors import (
    WardenError,
    InvalidEventError,
    StorageError,
    CacheError,
    RemoteServiceError,
)

from .logger import logger, TreeLogger, NY_TZ


__all__ = [
    # Config
    "Config",
    "ConfigValidationError",
    "EmbedColors",
    "get_config",
    "is_admin",
    # Errors
    "WardenError",
    "InvalidEventError",
    "StorageError",
    "CacheError",
    "RemoteServiceError",
    # Logger
    "logger",
    "TreeLogger",
    "NY_TZ",
]
