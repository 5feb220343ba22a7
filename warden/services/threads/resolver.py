"""
Warden - Thread Resolver
========================

Finds or creates the forum thread for a player or moderator, exactly once.

DESIGN:
    Lookup, then create:
        1. Lookup: the store's discord_thread_id and the cached id are
           read together. The stored id wins if its thread is live, and
           the cache is overwritten with it. A live cached id is used only
           when the store has none live, and is written back to the store.
        2. Create: under an in-process keyed lock plus the distributed
           thread_create lock, repeat the lookup, then create, persist
           and cache.
    Double-checked locking means N concurrent first-time punishments for
    one player produce one thread. Discord wins over store and cache: an
    id whose thread is gone or archived is ignored and replaced.
"""

import asyncio
from dataclasses import dataclass
from typing import Callable, Optional, Set, TYPE_CHECKING

import discord

from warden.core.logger import logger
from warden.core.errors import CacheError, RemoteServiceError, StorageError
from warden.core.constants import (
    MODERATOR_THREAD_PREFIX,
    PLAYER_THREAD_PREFIX,
    THREAD_CREATE_LOCK,
)
from warden.core.database.models import ModeratorRecord, PlayerRecord
from warden.services.cache import CacheNamespace, LockState
from warden.services.rendering import moderator_summary_embed, player_summary_embed
from warden.utils.async_utils import KeyedLocks

if TYPE_CHECKING:
    from warden.core.config import Config
    from warden.core.database import DatabaseManager
    from warden.services.cache import CacheProvider
    from warden.services.gateway import RemoteMessenger


# =============================================================================
# Identity Kinds
# =============================================================================

@dataclass(frozen=True)
class _Kind:
    """Everything that differs between player and moderator resolution."""

    label: str
    prefix: str
    namespace: CacheNamespace
    forum_id: Callable[["Config"], Optional[int]]
    stored_thread: Callable[["DatabaseManager", str], Optional[int]]
    save_thread: Callable[["DatabaseManager", str, str, int], None]
    save_summary: Callable[["DatabaseManager", str, Optional[int]], None]
    initial_embed: Callable[[str, str], discord.Embed]


def _player_thread(store: "DatabaseManager", player_id: str) -> Optional[int]:
    record = store.get_player(player_id)
    return record.discord_thread_id if record else None


def _moderator_thread(store: "DatabaseManager", moderator_id: str) -> Optional[int]:
    record = store.get_moderator(moderator_id)
    return record.discord_thread_id if record else None


PLAYER = _Kind(
    label="player",
    prefix=PLAYER_THREAD_PREFIX,
    namespace=CacheNamespace.PLAYER_THREADS,
    forum_id=lambda config: config.players_forum_id,
    stored_thread=_player_thread,
    save_thread=lambda store, i, n, t: store.set_player_thread(i, n, t),
    save_summary=lambda store, i, m: store.set_player_summary(i, m),
    initial_embed=lambda i, n: player_summary_embed(PlayerRecord(player_id=i, player_name=n), {}, {}, []),
)

MODERATOR = _Kind(
    label="moderator",
    prefix=MODERATOR_THREAD_PREFIX,
    namespace=CacheNamespace.MODERATOR_THREADS,
    forum_id=lambda config: config.moderators_forum_id or config.players_forum_id,
    stored_thread=_moderator_thread,
    save_thread=lambda store, i, n, t: store.set_moderator_thread(i, n, t),
    save_summary=lambda store, i, m: store.set_moderator_summary(i, m),
    initial_embed=lambda i, n: moderator_summary_embed(ModeratorRecord(moderator_id=i, moderator_name=n), {}),
)


def thread_title(prefix: str, name: str) -> str:
    return f"{prefix} {name}"


# =============================================================================
# Thread Resolver
# =============================================================================

class ThreadResolver:
    """Resolve-or-create for player and moderator threads."""

    def __init__(
        self,
        store: "DatabaseManager",
        cache: "CacheProvider",
        gateway: "RemoteMessenger",
        config: "Config",
    ) -> None:
        self.store = store
        self.cache = cache
        self.gateway = gateway
        self.config = config
        self._locks = KeyedLocks()
        self.created = 0
        self.lock_timeouts = 0

    # =========================================================================
    # Public API
    # =========================================================================

    async def resolve_player_thread(self, player_id: str, player_name: str) -> Optional[int]:
        """Thread id for the player, creating the thread if none is live."""
        return await self._resolve(PLAYER, player_id, player_name)

    async def resolve_moderator_thread(self, moderator_id: str, moderator_name: str) -> Optional[int]:
        """Thread id for the moderator, creating the thread if none is live."""
        return await self._resolve(MODERATOR, moderator_id, moderator_name)

    # =========================================================================
    # Tiers
    # =========================================================================

    async def _resolve(self, kind: _Kind, identity: str, name: str) -> Optional[int]:
        dead: Set[int] = set()
        try:
            thread_id = await self._lookup(kind, identity, name, dead)
            if thread_id:
                return thread_id

            return await self._create(kind, identity, name, dead)

        except RemoteServiceError as e:
            logger.warning("Thread Resolution Failed", [
                ("Kind", kind.label),
                ("Identity", identity),
                ("Error", str(e)[:100]),
            ])
            return None
        except StorageError as e:
            logger.error("Thread Resolution Failed", [
                ("Kind", kind.label),
                ("Identity", identity),
                ("Error", str(e)[:100]),
            ])
            return None

    async def _is_live(self, thread_id: int, dead: Set[int]) -> bool:
        if thread_id in dead:
            return False
        handle = await self.gateway.get_thread(thread_id)
        if handle is None:
            dead.add(thread_id)
            return False
        return True

    async def _cached(self, kind: _Kind, identity: str) -> Optional[int]:
        try:
            return await self.cache.get_int(kind.namespace, identity)
        except CacheError:
            return None

    async def _lookup(self, kind: _Kind, identity: str, name: str, dead: Set[int]) -> Optional[int]:
        """
        Live thread id from the store or the cache, or None.

        The store's id is tried first. A live cached id only wins when the
        store has no live thread, and is then written back to the store.
        """
        cached = await self._cached(kind, identity)
        stored = await asyncio.to_thread(kind.stored_thread, self.store, identity)

        if stored is not None and await self._is_live(stored, dead):
            if cached != stored:
                if cached is not None:
                    logger.info("Thread Cache Overridden By Store", [
                        ("Kind", kind.label),
                        ("Identity", identity),
                        ("Cached", str(cached)),
                        ("Stored", str(stored)),
                    ])
                await self._cache_thread(kind, identity, stored)
            return stored

        if cached is None:
            return None
        if cached != stored and await self._is_live(cached, dead):
            await asyncio.to_thread(kind.save_thread, self.store, identity, name, cached)
            return cached

        logger.debug("Cached Thread Gone", [("Kind", kind.label), ("Thread", str(cached))])
        try:
            await self.cache.delete(kind.namespace, identity)
        except CacheError as e:
            logger.debug(f"Stale thread cache entry kept: {e}")
        return None

    async def _create(self, kind: _Kind, identity: str, name: str, dead: Set[int]) -> Optional[int]:
        timeout = self.config.thread_lock_timeout
        lock_key = f"{THREAD_CREATE_LOCK}{kind.label}:{identity}"

        async with self._locks.hold(lock_key, timeout) as acquired:
            if not acquired:
                return self._timed_out(kind, identity)

            async with self.cache.hold(lock_key, timeout) as state:
                if state is LockState.TIMED_OUT:
                    return self._timed_out(kind, identity)

                # Another worker may have finished while we waited
                thread_id = await self._lookup(kind, identity, name, dead)
                if thread_id:
                    return thread_id

                forum_id = kind.forum_id(self.config)
                if not forum_id:
                    logger.warning("No Forum Configured", [("Kind", kind.label)])
                    return None

                handle = await self.gateway.create_thread(
                    forum_id,
                    thread_title(kind.prefix, name),
                    kind.initial_embed(identity, name),
                )
                await asyncio.to_thread(kind.save_thread, self.store, identity, name, handle.id)
                if handle.starter_message_id:
                    await asyncio.to_thread(kind.save_summary, self.store, identity, handle.starter_message_id)
                await self._cache_thread(kind, identity, handle.id)
                self.created += 1

                logger.tree("Thread Resolved", [
                    ("Kind", kind.label),
                    ("Name", name),
                    ("Identity", identity),
                    ("Thread ID", str(handle.id)),
                    ("Replaced", ", ".join(str(t) for t in dead) or "None"),
                ], emoji="🧵")
                return handle.id

    def _timed_out(self, kind: _Kind, identity: str) -> None:
        self.lock_timeouts += 1
        logger.warning("Thread Lock Timeout", [
            ("Kind", kind.label),
            ("Identity", identity),
            ("Timeout", f"{self.config.thread_lock_timeout}s"),
        ])
        return None

    async def _cache_thread(self, kind: _Kind, identity: str, thread_id: int) -> None:
        try:
            await self.cache.set(kind.namespace, identity, thread_id)
        except CacheError as e:
            logger.debug(f"Thread cache write skipped: {e}")

    def get_stats(self) -> dict:
        return {
            "threads_created": self.created,
            "lock_timeouts": self.lock_timeouts,
            "local_locks": len(self._locks),
        }


__all__ = ["ThreadResolver", "thread_title", "PLAYER", "MODERATOR"]
