"""
Warden - Utilities Package
==========================

Retry, async fan-out, error categorization and time formatting.
"""

from .retry import retry_async, is_retryable
from .async_utils import gather_with_logging, create_safe_task
from .error_handler import ErrorHandler
from .time_format import format_duration, format_time_left, discord_timestamp

__all__ = [
    "retry_async",
    "is_retryable",
    "gather_with_logging",
    "create_safe_task",
    "ErrorHandler",
    "format_duration",
    "format_time_left",
    "discord_timestamp",
]
