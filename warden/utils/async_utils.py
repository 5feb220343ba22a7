"""
Warden - Async Utilities
========================

Concurrent fan-out and background tasks that never fail silently.

Usage:
    from warden.utils.async_utils import gather_with_logging

    results = await gather_with_logging(
        ("Player Thread", send_to_player()),
        ("Moderator Thread", send_to_moderator()),
        ("Log Channel", send_to_log()),
        context="Punishment Dispatch",
    )
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Coroutine, Dict, List, Optional, Tuple

from warden.core.logger import logger


async def gather_with_logging(
    *operations: Tuple[str, Coroutine[Any, Any, Any]],
    context: Optional[str] = None,
) -> List[Any]:
    """
    Run operations concurrently; log and return exceptions instead of raising.

    Args:
        *operations: Tuples of (operation_name, coroutine).
        context: Optional context string for error logs.

    Returns:
        Results in input order, with exceptions as values.
    """
    names = [name for name, _ in operations]
    coros = [coro for _, coro in operations]

    results = await asyncio.gather(*coros, return_exceptions=True)

    for i, result in enumerate(results):
        if isinstance(result, Exception):
            error_details = [
                ("Operation", names[i]),
                ("Error Type", type(result).__name__),
                ("Error", str(result)[:100]),
            ]
            if context:
                error_details.insert(0, ("Context", context))
            logger.warning("Async Operation Failed", error_details)

    return results


def create_safe_task(
    coro: Coroutine[Any, Any, Any],
    name: str = "Background Task",
) -> asyncio.Task:
    """
    Create a background task whose exceptions are logged.

    Example:
        create_safe_task(service.process_punishment(event), "Punishment ban:101")
    """
    async def wrapped():
        try:
            return await coro
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Background Task Failed", [
                ("Task", name),
                ("Error Type", type(e).__name__),
                ("Error", str(e)[:200]),
            ])

    return asyncio.create_task(wrapped(), name=name)


# =============================================================================
# Keyed Locks
# =============================================================================

def _release_if_acquired(lock: asyncio.Lock):
    def callback(attempt: asyncio.Future) -> None:
        if not attempt.cancelled() and attempt.exception() is None:
            lock.release()
    return callback


async def acquire_within(lock: asyncio.Lock, timeout: Optional[float]) -> bool:
    """
    Acquire ``lock`` within ``timeout`` seconds (None waits forever).

    A timed-out or cancelled attempt never leaves the lock held: if the
    acquire wins the race against the timeout, it is released again.
    """
    if timeout is None:
        await lock.acquire()
        return True

    attempt = asyncio.ensure_future(lock.acquire())
    try:
        done, _ = await asyncio.wait({attempt}, timeout=timeout)
    except asyncio.CancelledError:
        attempt.cancel()
        attempt.add_done_callback(_release_if_acquired(lock))
        raise
    if done:
        return attempt.result()

    attempt.cancel()
    attempt.add_done_callback(_release_if_acquired(lock))
    return False


class KeyedLocks:
    """
    One asyncio.Lock per key, dropped once nobody holds or awaits it.

    Usage:
        async with locks.hold("player:<uuid>", timeout=10) as acquired:
            if not acquired:
                return None
    """

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, key: str, timeout: Optional[float]) -> AsyncIterator[bool]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        acquired = False
        try:
            acquired = await acquire_within(lock, timeout)
            yield acquired
        finally:
            if acquired:
                lock.release()
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                self._locks.pop(key, None)


__all__ = [
    "gather_with_logging",
    "create_safe_task",
    "acquire_within",
    "KeyedLocks",
]
