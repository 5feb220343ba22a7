"""
Warden - Test Fixtures
======================

Shared fixtures for all tests.
"""

import asyncio
import os
import sys
import tempfile
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Tuple

import pytest

# Project root on the path for `import warden`
sys.path.insert(0, str(Path(__file__).parent.parent))

# Set up test environment before importing modules
os.environ["TESTING"] = "1"
os.environ.setdefault("WARDEN_LOGS_DIR", tempfile.mkdtemp(prefix="warden-logs-"))

from warden.core.config import Config
from warden.core.database import DatabaseManager, PunishmentType
from warden.core.errors import RemoteServiceError
from warden.services.cache import CacheNamespace, LockState
from warden.services.gateway import MessageHandle, ThreadHandle
from warden.services.punishments import PunishmentEvent, PunishmentService, RevokeEvent
from warden.services.threads import ThreadResolver


PLAYER_UUID = "069a79f4-44e9-4726-a5be-fca90e38aaf5"
PLAYER_NAME = "Notch"
OTHER_PLAYER_UUID = "61699b2e-d327-4a01-9f1e-0ea8c3f06bc6"
MODERATOR_UUID = "853c80ef-3c37-49fd-aa49-938b674adae6"
MODERATOR_NAME = "jeb_"

PLAYERS_FORUM = 1000
MODERATORS_FORUM = 2000
LOG_CHANNEL = 3000


# =============================================================================
# Fakes
# =============================================================================

class FakeCache:
    """
    In-memory stand-in for CacheProvider.

    Mirrors its degraded mode: with enabled=False reads miss, writes are
    dropped, locks are UNAVAILABLE and the stats throttle always passes.
    """

    def __init__(self, enabled: bool = True) -> None:
        self.enabled = enabled
        self.values: Dict[Tuple[CacheNamespace, str], Any] = {}
        self.queue: List[Dict[str, Any]] = []
        self.throttle: Dict[str, float] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self.lock_keys: List[str] = []

    async def get(self, namespace, key):
        if not self.enabled:
            return None
        value = self.values.get((namespace, key))
        return None if value is None else str(value)

    async def get_int(self, namespace, key):
        value = await self.get(namespace, key)
        return int(value) if value is not None else None

    async def set(self, namespace, key, value):
        if self.enabled:
            self.values[(namespace, key)] = str(value)

    async def delete(self, namespace, key):
        self.values.pop((namespace, key), None)

    @asynccontextmanager
    async def hold(self, key, timeout):
        if not self.enabled:
            yield LockState.UNAVAILABLE
            return
        lock = self._locks.setdefault(key, asyncio.Lock())
        try:
            await asyncio.wait_for(lock.acquire(), timeout)
        except asyncio.TimeoutError:
            yield LockState.TIMED_OUT
            return
        self.lock_keys.append(key)
        try:
            yield LockState.ACQUIRED
        finally:
            lock.release()

    async def should_update_stats(self, key, interval):
        if not self.enabled:
            return True
        now = time.monotonic()
        if self.throttle.get(key, 0) > now:
            return False
        self.throttle[key] = now + interval
        return True

    async def enqueue(self, payload):
        if not self.enabled:
            return False
        self.queue.append(payload)
        return True

    async def dequeue(self):
        if not self.enabled or not self.queue:
            return None
        return self.queue.pop(0)

    async def queue_size(self):
        return len(self.queue) if self.enabled else 0

    async def get_stats(self):
        return {"enabled": self.enabled, "queue_size": len(self.queue)}


class FakeMessenger:
    """
    RemoteMessenger that records every call and hands out increasing ids.

    Attributes:
        fail_targets: Channel ids whose sends raise RemoteServiceError.
        create_delay: Seconds create_thread sleeps, to widen race windows.
    """

    def __init__(self) -> None:
        self._next_id = 10_000
        self.threads: Dict[int, ThreadHandle] = {}
        self.gone: Set[int] = set()
        self.created: List[ThreadHandle] = []
        self.sent: List[Tuple[int, Any]] = []
        self.edited: List[Tuple[int, int, Any]] = []
        self.deleted: List[Tuple[int, int]] = []
        self.fail_targets: Dict[int, bool] = {}
        self.create_delay = 0.0

    def _id(self) -> int:
        self._next_id += 1
        return self._next_id

    async def get_thread(self, thread_id):
        if thread_id in self.gone:
            return None
        return self.threads.get(thread_id)

    async def create_thread(self, parent_id, title, payload):
        if self.create_delay:
            await asyncio.sleep(self.create_delay)
        handle = ThreadHandle(id=self._id(), name=title, parent_id=parent_id, starter_message_id=self._id())
        self.threads[handle.id] = handle
        self.created.append(handle)
        return handle

    async def send_message(self, target_id, payload):
        if target_id in self.fail_targets:
            raise RemoteServiceError(f"send {target_id} failed", retryable=self.fail_targets[target_id])
        handle = MessageHandle(channel_id=target_id, message_id=self._id())
        self.sent.append((target_id, payload))
        return handle

    async def edit_message(self, channel_id, message_id, payload):
        self.edited.append((channel_id, message_id, payload))

    async def delete_message(self, channel_id, message_id):
        self.deleted.append((channel_id, message_id))
        return True

    def threads_in(self, parent_id: int) -> List[ThreadHandle]:
        return [t for t in self.created if t.parent_id == parent_id]

    def sent_to(self, target_id: int) -> List[Any]:
        return [payload for target, payload in self.sent if target == target_id]


# =============================================================================
# Event Builders
# =============================================================================

def ban_event(
    external_id: str = "101",
    duration: Optional[int] = 3600,
    player_id: str = PLAYER_UUID,
    player_name: str = PLAYER_NAME,
    moderator: bool = True,
    reason: str = "Hacking",
    type: PunishmentType = PunishmentType.BAN,
) -> PunishmentEvent:
    return PunishmentEvent(
        type=type,
        player_id=player_id,
        player_name=player_name,
        external_id=external_id,
        reason=reason,
        moderator_id=MODERATOR_UUID if moderator else None,
        moderator_name=MODERATOR_NAME if moderator else None,
        duration=duration,
        source="test",
    )


def revoke_event(external_id: str = "101", type: Optional[PunishmentType] = PunishmentType.BAN, **kwargs) -> RevokeEvent:
    kwargs.setdefault("moderator_id", MODERATOR_UUID)
    kwargs.setdefault("moderator_name", MODERATOR_NAME)
    return RevokeEvent(external_id=external_id, type=type, source="test", **kwargs)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def config(tmp_path):
    """Config with every optional Discord target set and short lock timeouts."""
    return Config(
        discord_token="test-token",
        players_forum_id=PLAYERS_FORUM,
        moderators_forum_id=MODERATORS_FORUM,
        log_channel_id=LOG_CHANNEL,
        admin_ids={42},
        database_path=str(tmp_path / "warden.db"),
        backup_dir=str(tmp_path / "backups"),
        worker_count=4,
        thread_lock_timeout=5.0,
        stats_lock_timeout=5.0,
    )


@pytest.fixture
def store(tmp_path):
    """Fresh SQLite store in a temp directory."""
    db = DatabaseManager(str(tmp_path / "warden.db"))
    yield db
    db.close()


@pytest.fixture
def cache():
    return FakeCache()


@pytest.fixture
def messenger():
    return FakeMessenger()


def build_service(store, cache, messenger, config) -> PunishmentService:
    resolver = ThreadResolver(store, cache, messenger, config)
    return PunishmentService(store, cache, resolver, messenger, config)


@pytest.fixture
def service(store, cache, messenger, config):
    return build_service(store, cache, messenger, config)
