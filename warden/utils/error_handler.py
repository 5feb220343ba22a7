"""
Warden - Error Handler
======================

Categorized error logging for workflow boundaries.

Features:
- Error categorization (storage, cache, discord, network, input)
- Recovery suggestions per category
- Tracebacks for critical errors
"""

import traceback
from typing import Dict, List, Tuple

import aiohttp
import discord

from warden.core.logger import logger
from warden.core.errors import (
    CacheError,
    InvalidEventError,
    RemoteServiceError,
    StorageError,
)


class ErrorHandler:
    """Maps exceptions to a category and logs them with context."""

    ERROR_CATEGORIES: Dict[str, Tuple[type, ...]] = {
        "input": (InvalidEventError,),
        "storage": (StorageError,),
        "cache": (CacheError,),
        "discord": (RemoteServiceError, discord.DiscordException),
        "network": (ConnectionError, TimeoutError, aiohttp.ClientError, OSError),
    }

    SUGGESTIONS: Dict[str, str] = {
        "input": "Event dropped - check the plugin payload",
        "storage": "Workflow step aborted - check the database file and disk",
        "cache": "Falling back to store-only lookups - check Redis",
        "discord": "Message state left for the reconciler - check bot permissions",
        "network": "Transient network issue - will retry on the next pass",
        "general": "Unexpected error - check logs for details",
    }

    @classmethod
    def categorize_error(cls, e: BaseException) -> str:
        for category, error_types in cls.ERROR_CATEGORIES.items():
            if isinstance(e, error_types):
                return category
        return "general"

    @classmethod
    def handle(
        cls,
        e: BaseException,
        location: str,
        critical: bool = False,
        details: List[Tuple[str, str]] = None,
    ) -> str:
        """
        Log an error with category, suggestion and optional context.

        Args:
            e: The exception.
            location: Where the error occurred.
            critical: Log at error level with the traceback.
            details: Extra (key, value) pairs for the log tree.

        Returns:
            The category, so callers can branch on it.
        """
        category = cls.categorize_error(e)
        items = [
            ("Location", location),
            ("Category", category),
            ("Error Type", type(e).__name__),
            ("Error", str(e)[:100]),
        ]
        items.extend(details or [])
        items.append(("Recovery", cls.SUGGESTIONS[category]))

        if critical:
            logger.error("Critical Error", items)
            logger.debug("Traceback", [
                ("Trace", "".join(traceback.format_exception(type(e), e, e.__traceback__))[-1500:]),
            ])
        else:
            logger.warning("Error Handled", items)

        return category


__all__ = ["ErrorHandler"]
