"""
Warden - Retry Utilities
========================

Exponential backoff for Discord API calls and the initial login.
"""

import asyncio
from typing import Any, Callable, Optional, Tuple, Type

import aiohttp
import discord

from warden.core.logger import logger


# Exceptions that should trigger a retry
RETRYABLE_EXCEPTIONS: Tuple[Type[BaseException], ...] = (
    discord.HTTPException,
    asyncio.TimeoutError,
    ConnectionError,
    aiohttp.ClientError,
)


def is_retryable(e: BaseException) -> bool:
    """
    True for failures a later attempt could fix.

    Discord 4xx errors other than 429 are permanent (missing permissions,
    deleted channel); retrying them only burns rate limit.
    """
    if isinstance(e, discord.HTTPException):
        return e.status == 429 or e.status >= 500
    return isinstance(e, RETRYABLE_EXCEPTIONS)


async def retry_async(
    coro_func: Callable[..., Any],
    *args,
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 10.0,
    exceptions: Tuple[Type[BaseException], ...] = RETRYABLE_EXCEPTIONS,
    should_retry: Optional[Callable[[BaseException], bool]] = is_retryable,
    **kwargs,
) -> Any:
    """
    Retry an async function with exponential backoff.

    Args:
        coro_func: Async function to call.
        *args: Arguments to pass to the function.
        max_retries: Maximum number of retry attempts.
        base_delay: Initial delay between retries (seconds).
        max_delay: Maximum delay between retries (seconds).
        exceptions: Exception types eligible for a retry.
        should_retry: Extra filter; an eligible exception it rejects is
            raised immediately.
        **kwargs: Keyword arguments to pass to the function.

    Returns:
        Result of the coroutine function.

    Raises:
        The last exception if all retries fail.
    """
    last_exception: Optional[BaseException] = None

    for attempt in range(max_retries + 1):
        try:
            return await coro_func(*args, **kwargs)
        except exceptions as e:
            if should_retry is not None and not should_retry(e):
                raise
            last_exception = e

            if attempt < max_retries:
                # 1s, 2s, 4s... capped at max_delay
                delay = min(base_delay * (2 ** attempt), max_delay)
                logger.warning(f"Retry {attempt + 1}/{max_retries}: {type(e).__name__} - retrying in {delay:.1f}s")
                await asyncio.sleep(delay)
            else:
                logger.error(f"All {max_retries} retries failed: {type(e).__name__}: {e}")

    raise last_exception


__all__ = [
    "RETRYABLE_EXCEPTIONS",
    "is_retryable",
    "retry_async",
]
