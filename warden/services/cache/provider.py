"""
Warden - Cache & Lock Provider
==============================

Redis-backed TTL cache, distributed locks and a deferred-action queue.

DESIGN:
    The cache is never authoritative. When Redis is not configured or
    cannot be reached at startup the provider runs disabled: reads miss,
    writes are dropped, locks report UNAVAILABLE and the stats throttle
    always says "go". Being disabled never raises. A Redis error while
    enabled surfaces as CacheError so callers can decide to fall back.
"""

import json
import time
from contextlib import asynccontextmanager
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Dict, Optional

import redis.asyncio as redis
from redis.exceptions import LockError

from warden.core.logger import logger
from warden.core.errors import CacheError
from warden.core.constants import (
    LOCK_PREFIX,
    LOCK_LEASE_SECONDS,
    LAST_STATS_UPDATE_PREFIX,
    PENDING_ACTIONS_QUEUE,
    SECONDS_PER_MINUTE,
)


# =============================================================================
# Namespaces & Lock States
# =============================================================================

KEY_PREFIX = "warden:"


class CacheNamespace(Enum):
    """Cached maps, each with its own TTL."""

    PLAYER_THREADS = "player_threads"
    MODERATOR_THREADS = "moderator_threads"
    DISCORD_IDS = "player_discord_ids"
    WRITE_PERMISSIONS = "write_permissions"


class LockState(Enum):
    """Outcome of entering CacheProvider.hold()."""

    ACQUIRED = "acquired"
    UNAVAILABLE = "unavailable"     # Cache disabled; no distributed lock exists
    TIMED_OUT = "timed_out"


# =============================================================================
# Cache Provider
# =============================================================================

class CacheProvider:
    """
    Thin async wrapper over redis.asyncio.

    Attributes:
        ttls: Seconds to live per namespace.
    """

    def __init__(
        self,
        redis_url: Optional[str],
        thread_ttl: int = 60,
        discord_id_ttl: int = 30,
        permissions_ttl: int = 15,
        client: Optional[Any] = None,
    ) -> None:
        """
        Args:
            redis_url: Connection URL; None runs the provider disabled.
            thread_ttl: Thread-id TTL in minutes.
            discord_id_ttl: Discord-id TTL in minutes.
            permissions_ttl: Write-permission TTL in minutes.
            client: Pre-built client, used instead of connecting by URL.
        """
        self.redis_url = redis_url
        self.ttls: Dict[CacheNamespace, int] = {
            CacheNamespace.PLAYER_THREADS: thread_ttl * SECONDS_PER_MINUTE,
            CacheNamespace.MODERATOR_THREADS: thread_ttl * SECONDS_PER_MINUTE,
            CacheNamespace.DISCORD_IDS: discord_id_ttl * SECONDS_PER_MINUTE,
            CacheNamespace.WRITE_PERMISSIONS: permissions_ttl * SECONDS_PER_MINUTE,
        }
        self._client: Optional[Any] = client
        self._enabled = False
        self._hits = 0
        self._misses = 0
        self._errors = 0

    @classmethod
    def from_config(cls, config) -> "CacheProvider":
        return cls(
            redis_url=config.redis_url,
            thread_ttl=config.thread_cache_ttl,
            discord_id_ttl=config.discord_id_cache_ttl,
            permissions_ttl=config.permissions_cache_ttl,
        )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @property
    def enabled(self) -> bool:
        return self._enabled

    async def connect(self) -> bool:
        """
        Connect and verify with a ping plus a test write/read.

        Returns:
            True if the provider is enabled afterwards.
        """
        if self._client is None and not self.redis_url:
            logger.tree("Cache Disabled", [
                ("Reason", "REDIS_URL not set"),
                ("Mode", "Store-only, in-process locks"),
            ], emoji="📭")
            return False

        try:
            if self._client is None:
                self._client = redis.from_url(self.redis_url, decode_responses=True)
            await self._client.ping()
            probe_key = f"{KEY_PREFIX}probe"
            await self._client.set(probe_key, "1", ex=1)
            if await self._client.get(probe_key) != "1":
                raise redis.RedisError("Probe value mismatch")
        except (redis.RedisError, OSError) as e:
            logger.warning("Redis Unavailable", [
                ("URL", self._safe_url()),
                ("Error", str(e)[:100]),
                ("Mode", "Cache disabled"),
            ])
            await self._drop_client()
            self._enabled = False
            return False

        self._enabled = True
        logger.tree("Redis Connected", [
            ("URL", self._safe_url()),
            ("Thread TTL", f"{self.ttls[CacheNamespace.PLAYER_THREADS] // SECONDS_PER_MINUTE}m"),
            ("Discord ID TTL", f"{self.ttls[CacheNamespace.DISCORD_IDS] // SECONDS_PER_MINUTE}m"),
            ("Permissions TTL", f"{self.ttls[CacheNamespace.WRITE_PERMISSIONS] // SECONDS_PER_MINUTE}m"),
        ], emoji="🧠")
        return True

    async def close(self) -> None:
        """Close Redis connection."""
        await self._drop_client()
        if self._enabled:
            logger.info("Redis Connection Closed", [
                ("Hits", str(self._hits)),
                ("Misses", str(self._misses)),
                ("Errors", str(self._errors)),
            ])
        self._enabled = False

    async def _drop_client(self) -> None:
        if self._client is None:
            return
        try:
            await self._client.aclose()
        except (redis.RedisError, OSError):
            pass
        self._client = None

    def _safe_url(self) -> str:
        """URL with any password masked."""
        if not self.redis_url:
            return "(injected client)"
        if "@" in self.redis_url:
            scheme, rest = self.redis_url.split("://", 1)
            return f"{scheme}://***@{rest.split('@', 1)[1]}"
        return self.redis_url

    async def _run(self, action: str, awaitable: Awaitable) -> Any:
        try:
            return await awaitable
        except redis.RedisError as e:
            self._errors += 1
            logger.warning("Redis Operation Failed", [
                ("Action", action),
                ("Error", str(e)[:100]),
            ])
            raise CacheError(f"{action} failed: {e}") from e

    @staticmethod
    def _key(namespace: CacheNamespace, key: str) -> str:
        return f"{KEY_PREFIX}{namespace.value}:{key}"

    # =========================================================================
    # Key/Value
    # =========================================================================

    async def get(self, namespace: CacheNamespace, key: str) -> Optional[str]:
        """Cached value, or None on miss or when disabled."""
        if not self._enabled:
            return None
        value = await self._run("get", self._client.get(self._key(namespace, key)))
        if value is None:
            self._misses += 1
        else:
            self._hits += 1
        return value

    async def get_int(self, namespace: CacheNamespace, key: str) -> Optional[int]:
        value = await self.get(namespace, key)
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            return None

    async def set(self, namespace: CacheNamespace, key: str, value: Any) -> None:
        """Store a value with the namespace TTL; no-op when disabled."""
        if not self._enabled:
            return
        await self._run(
            "set",
            self._client.set(self._key(namespace, key), str(value), ex=self.ttls[namespace]),
        )

    async def delete(self, namespace: CacheNamespace, key: str) -> None:
        if not self._enabled:
            return
        await self._run("delete", self._client.delete(self._key(namespace, key)))

    # =========================================================================
    # Locks
    # =========================================================================

    async def acquire_lock(self, key: str, timeout: float) -> Optional[Any]:
        """
        Take the distributed lock ``key``, waiting up to ``timeout`` seconds.

        Returns:
            The held lock, or None when disabled or when the wait timed out.
        """
        if not self._enabled:
            return None
        lock = self._client.lock(
            f"{LOCK_PREFIX}{key}",
            timeout=LOCK_LEASE_SECONDS,
            blocking_timeout=timeout,
        )
        acquired = await self._run("lock", lock.acquire())
        return lock if acquired else None

    async def release_lock(self, lock: Optional[Any]) -> None:
        """Release a lock from acquire_lock(); an expired lease is only logged."""
        if lock is None:
            return
        try:
            await lock.release()
        except LockError as e:
            logger.warning("Lock Release Failed", [
                ("Lock", str(getattr(lock, "name", "?"))),
                ("Error", str(e)[:100]),
            ])
        except redis.RedisError as e:
            self._errors += 1
            logger.warning("Lock Release Failed", [
                ("Lock", str(getattr(lock, "name", "?"))),
                ("Error", str(e)[:100]),
            ])

    @asynccontextmanager
    async def hold(self, key: str, timeout: float) -> AsyncIterator[LockState]:
        """
        Hold ``key`` for the body of a ``with`` block.

        Usage:
            async with cache.hold("stats_update:player:<uuid>", 5) as state:
                if state is LockState.TIMED_OUT:
                    return

        A Redis error while acquiring is reported as UNAVAILABLE so the
        caller degrades to its in-process guarantees.
        """
        if not self._enabled:
            yield LockState.UNAVAILABLE
            return

        try:
            lock = await self.acquire_lock(key, timeout)
        except CacheError:
            yield LockState.UNAVAILABLE
            return

        if lock is None:
            yield LockState.TIMED_OUT
            return

        try:
            yield LockState.ACQUIRED
        finally:
            await self.release_lock(lock)

    # =========================================================================
    # Stats Throttle
    # =========================================================================

    async def should_update_stats(self, key: str, interval: float) -> bool:
        """
        Atomic "at most once per interval" gate.

        SET NX PX succeeds only for the first caller in each window, so
        concurrent workers agree on a single winner. Always True when
        disabled or on a Redis error.
        """
        if not self._enabled:
            return True
        try:
            won = await self._run(
                "throttle",
                self._client.set(
                    f"{LAST_STATS_UPDATE_PREFIX}{key}",
                    str(time.time()),
                    nx=True,
                    px=max(1, int(interval * 1000)),
                ),
            )
        except CacheError:
            return True
        return bool(won)

    # =========================================================================
    # Deferred Action Queue
    # =========================================================================

    async def enqueue(self, payload: Dict[str, Any]) -> bool:
        """
        Append a JSON payload to the deferred-action queue.

        Returns:
            False when disabled (the action is dropped).
        """
        if not self._enabled:
            return False
        await self._run("enqueue", self._client.rpush(PENDING_ACTIONS_QUEUE, json.dumps(payload)))
        return True

    async def dequeue(self) -> Optional[Dict[str, Any]]:
        """Pop the oldest payload, or None if empty or disabled."""
        if not self._enabled:
            return None
        raw = await self._run("dequeue", self._client.lpop(PENDING_ACTIONS_QUEUE))
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Dropped Malformed Queue Entry", [("Raw", str(raw)[:100])])
            return None

    async def queue_size(self) -> int:
        if not self._enabled:
            return 0
        return int(await self._run("queue size", self._client.llen(PENDING_ACTIONS_QUEUE)))

    # =========================================================================
    # Maintenance
    # =========================================================================

    async def clear_caches(self) -> int:
        """Delete every namespaced key. Locks and the queue are left alone."""
        if not self._enabled:
            return 0
        removed = 0
        for namespace in CacheNamespace:
            try:
                keys = [k async for k in self._client.scan_iter(match=f"{KEY_PREFIX}{namespace.value}:*")]
            except redis.RedisError as e:
                self._errors += 1
                raise CacheError(f"scan failed: {e}") from e
            if keys:
                removed += int(await self._run("clear", self._client.delete(*keys)))

        logger.tree("Caches Cleared", [
            ("Keys Removed", str(removed)),
        ], emoji="🧹")
        return removed

    async def get_stats(self) -> Dict[str, Any]:
        """Counters for the admin stats command; never raises."""
        stats: Dict[str, Any] = {
            "enabled": self._enabled,
            "url": self._safe_url() if self.redis_url else None,
            "hits": self._hits,
            "misses": self._misses,
            "errors": self._errors,
            "queue_size": 0,
        }
        if not self._enabled:
            return stats
        try:
            stats["queue_size"] = await self.queue_size()
            for namespace in CacheNamespace:
                count = 0
                async for _ in self._client.scan_iter(match=f"{KEY_PREFIX}{namespace.value}:*"):
                    count += 1
                stats[namespace.value] = count
        except (CacheError, redis.RedisError) as e:
            stats["error"] = str(e)[:100]
        return stats


__all__ = ["CacheProvider", "CacheNamespace", "LockState", "KEY_PREFIX"]
