"""
Warden - Punishment Service
===========================

State machine for the new-punishment and revoke workflows.

DESIGN:
    New punishment:
        Received -> Persisted -> ThreadsResolved -> Dispatched -> StatsUpdated
    Revoke:
        Received -> Located -> Marked -> MessagesUpdated -> StatsUpdated

    Each workflow owns its Punishment snapshots; every step returns a
    new one. Workflows for the same external id are serialized by an
    in-process keyed lock so a duplicate event or a fast revoke never
    interleaves with the original issue. Exceptions stop at the
    workflow boundary and are logged; they never reach the event
    source.
"""

import asyncio
from collections import Counter
from typing import Any, Coroutine, Dict, Optional, Set, TYPE_CHECKING

from warden.core.logger import logger
from warden.core.constants import SYSTEM_MODERATOR_NAME
from warden.core.errors import CacheError, InvalidEventError, StorageError
from warden.core.database.models import PlayerRecord, Punishment, RevokeKind
from warden.services.punishments.dispatch import DispatchMixin
from warden.services.punishments.events import PunishmentEvent, RevokeEvent, is_uuid
from warden.services.punishments.stats import StatsMixin
from warden.utils.async_utils import KeyedLocks, create_safe_task
from warden.utils.error_handler import ErrorHandler
from warden.utils.time_format import format_duration

if TYPE_CHECKING:
    from warden.core.config import Config
    from warden.core.database import DatabaseManager
    from warden.services.cache import CacheProvider
    from warden.services.gateway import RemoteMessenger
    from warden.services.threads import ThreadResolver


class PunishmentService(DispatchMixin, StatsMixin):
    """
    Orchestrates store, resolver, gateway and cache for each event.

    Attributes:
        counters: Workflow outcome counts for the stats command.
    """

    def __init__(
        self,
        store: "DatabaseManager",
        cache: "CacheProvider",
        resolver: "ThreadResolver",
        gateway: "RemoteMessenger",
        config: "Config",
    ) -> None:
        self.store = store
        self.cache = cache
        self.resolver = resolver
        self.gateway = gateway
        self.config = config

        self._semaphore = asyncio.Semaphore(max(1, config.worker_count))
        self._workflow_locks = KeyedLocks()
        self._stats_locks = KeyedLocks()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._tasks: Set[asyncio.Task] = set()
        self._closing = False
        self.counters: Counter = Counter()

    # =========================================================================
    # Submission (any thread)
    # =========================================================================

    def bind_loop(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        """Remember the loop workflows run on. Call from that loop."""
        self._loop = loop or asyncio.get_running_loop()

    def submit_punishment(self, event: PunishmentEvent) -> bool:
        """Schedule process_punishment and return immediately."""
        return self._submit(self.process_punishment(event), event.label)

    def submit_revoke(self, event: RevokeEvent) -> bool:
        """Schedule process_revoke and return immediately."""
        return self._submit(self.process_revoke(event), event.label)

    def _submit(self, coro: Coroutine[Any, Any, Any], label: str) -> bool:
        loop = self._loop
        if self._closing or loop is None or loop.is_closed():
            coro.close()
            logger.warning("Event Rejected", [
                ("Event", label),
                ("Reason", "Service is shutting down" if self._closing else "Service not started"),
            ])
            return False

        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is loop:
            self._spawn(coro, label)
        else:
            loop.call_soon_threadsafe(self._spawn, coro, label)
        return True

    def _spawn(self, coro: Coroutine[Any, Any, Any], label: str) -> None:
        task = create_safe_task(coro, label)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def shutdown(self, timeout: float) -> None:
        """Stop accepting events and wait for in-flight workflows."""
        self._closing = True
        pending = set(self._tasks)
        if not pending:
            return
        done, still_running = await asyncio.wait(pending, timeout=timeout)
        for task in still_running:
            task.cancel()
        logger.tree("Punishment Service Stopped", [
            ("Finished", str(len(done))),
            ("Cancelled", str(len(still_running))),
        ], emoji="🛑")

    # =========================================================================
    # Workflow Boundaries
    # =========================================================================

    async def process_punishment(self, event: PunishmentEvent) -> Optional[Punishment]:
        """
        Run the new-punishment workflow.

        Returns:
            The final snapshot, or None if the event was dropped or failed.
        """
        self.counters["received"] += 1
        async with self._semaphore:
            try:
                event.validate()
                async with self._workflow_locks.hold(event.external_id, None):
                    return await self._new_punishment(event)
            except InvalidEventError as e:
                return self._dropped(event.label, e)
            except StorageError as e:
                return self._failed(event.label, e, "Persist")
            except Exception as e:
                return self._failed(event.label, e, "Punishment Workflow", critical=True)

    async def process_revoke(self, event: RevokeEvent) -> Optional[Punishment]:
        """
        Run the revoke workflow. Revoking twice is a no-op the second time.

        Returns:
            The revoked snapshot, or None if nothing was revoked.
        """
        self.counters["revoke_received"] += 1
        async with self._semaphore:
            try:
                event.validate()
                async with self._workflow_locks.hold(event.external_id, None):
                    p = await asyncio.to_thread(
                        self.store.find_active_by_external_id,
                        event.external_id,
                        event.type,
                    )
                    if p is None:
                        self.counters["revoke_missing"] += 1
                        logger.warning("Revoke Target Not Found", [
                            ("External ID", event.external_id),
                            ("Type", event.type.code if event.type else "Any"),
                            ("Source", event.source),
                        ])
                        return None
                    return await self._revoke(p, event.kind, event.reason, event.moderator_id, event.moderator_name)
            except InvalidEventError as e:
                return self._dropped(event.label, e)
            except StorageError as e:
                return self._failed(event.label, e, "Revoke")
            except Exception as e:
                return self._failed(event.label, e, "Revoke Workflow", critical=True)

    async def expire(self, punishment_id: int) -> Optional[Punishment]:
        """Revoke one specific row with kind EXPIRED, if it is still active."""
        async with self._semaphore:
            try:
                p = await asyncio.to_thread(self.store.get_punishment, punishment_id)
                if p is None:
                    return None
                async with self._workflow_locks.hold(p.external_id, None):
                    p = await asyncio.to_thread(self.store.get_punishment, punishment_id)
                    if p is None or not p.active:
                        return None
                    return await self._revoke(p, RevokeKind.EXPIRED, None, None, None)
            except StorageError as e:
                return self._failed(f"expire:{punishment_id}", e, "Expire")
            except Exception as e:
                return self._failed(f"expire:{punishment_id}", e, "Expire Workflow", critical=True)

    async def redispatch(self, punishment_id: int) -> Optional[Punishment]:
        """Send whatever messages an active punishment is still missing."""
        async with self._semaphore:
            try:
                p = await asyncio.to_thread(self.store.get_punishment, punishment_id)
                if p is None:
                    return None
                async with self._workflow_locks.hold(p.external_id, None):
                    p = await asyncio.to_thread(self.store.get_punishment, punishment_id)
                    if p is None or not p.active:
                        return None
                    return await self._complete_dispatch(p)
            except StorageError as e:
                return self._failed(f"redispatch:{punishment_id}", e, "Redispatch")
            except Exception as e:
                return self._failed(f"redispatch:{punishment_id}", e, "Redispatch Workflow", critical=True)

    def _dropped(self, label: str, e: Exception) -> None:
        self.counters["dropped"] += 1
        logger.warning("Event Dropped", [
            ("Event", label),
            ("Reason", str(e)[:100]),
        ])
        return None

    def _failed(self, label: str, e: Exception, step: str, critical: bool = False) -> None:
        self.counters["failed"] += 1
        ErrorHandler.handle(e, f"PunishmentService.{step}", critical=critical, details=[("Event", label)])
        return None

    # =========================================================================
    # New Punishment
    # =========================================================================

    async def _new_punishment(self, event: PunishmentEvent) -> Punishment:
        p = event.to_punishment()

        existing = await asyncio.to_thread(self.store.find_active_by_external_id, p.external_id, p.type)
        if existing is not None and existing.player_id == p.player_id:
            return await self._merge(existing, p)

        row_id = await asyncio.to_thread(self.store.save, p)
        p = p.with_saved_id(row_id)
        self.counters["persisted"] += 1

        p = await self._complete_dispatch(p)
        await self._refresh_stats(p)

        logger.tree("Punishment Processed", [
            ("Type", f"{p.type.emoji} {p.type.display_name}"),
            ("Player", p.player_name),
            ("Moderator", p.moderator_name or SYSTEM_MODERATOR_NAME),
            ("Duration", format_duration(p.duration)),
            ("External ID", p.external_id),
            ("Source", event.source),
        ], emoji="🔨")
        return p

    async def _complete_dispatch(self, p: Punishment) -> Punishment:
        """Resolve threads, send what is missing, persist the message ids."""
        player_thread, moderator_thread = await self._resolve_threads(p)
        dispatched = await self._dispatch_missing(p, player_thread, moderator_thread)
        if dispatched is not p:
            await asyncio.to_thread(self.store.update, dispatched)
        return dispatched

    async def _merge(self, existing: Punishment, incoming: Punishment) -> Punishment:
        """Fold a repeated event into the active row instead of inserting."""
        merged = existing.merged_with(incoming)
        await asyncio.to_thread(self.store.update, merged)
        self.counters["merged"] += 1

        logger.tree("Duplicate Punishment Merged", [
            ("External ID", merged.external_id),
            ("Row", str(merged.id)),
            ("Reason", (merged.reason or "")[:50]),
            ("Duration", format_duration(merged.duration)),
        ], emoji="🔁")

        await self._edit_recorded(merged, f"Merge {merged.type.code}:{merged.external_id}")
        merged = await self._complete_dispatch(merged)
        await self._refresh_stats(merged)
        return merged

    # =========================================================================
    # Revoke
    # =========================================================================

    async def _revoke(
        self,
        p: Punishment,
        kind: RevokeKind,
        reason: Optional[str],
        moderator_id: Optional[str],
        moderator_name: Optional[str],
    ) -> Optional[Punishment]:
        if not p.type.can_be_revoked:
            self.counters["revoke_refused"] += 1
            logger.warning("Revoke Refused", [
                ("Type", p.type.display_name),
                ("External ID", p.external_id),
                ("Reason", f"{p.type.display_name} cannot be revoked"),
            ])
            return None

        revoked = p.revoked(kind, reason, moderator_id, moderator_name)
        await asyncio.to_thread(self.store.update, revoked)
        self.counters["revoked"] += 1

        await self._dispatch_revoke(revoked)
        await self._refresh_stats(revoked)

        logger.tree("Punishment Revoked", [
            ("Type", f"{revoked.type.emoji} {revoked.type.display_name}"),
            ("Player", revoked.player_name),
            ("Kind", f"{kind.emoji} {kind.display_name}"),
            ("By", moderator_name or SYSTEM_MODERATOR_NAME),
            ("External ID", revoked.external_id),
        ], emoji="✅")
        return revoked

    # =========================================================================
    # Admin Operations
    # =========================================================================

    async def resync_player(self, identifier: str) -> Optional[PlayerRecord]:
        """
        Recompute a player's counters and force a summary refresh.

        Args:
            identifier: Player UUID or last-seen name.
        """
        if is_uuid(identifier):
            player = await asyncio.to_thread(self.store.get_player, identifier)
        else:
            player = await asyncio.to_thread(self.store.get_player_by_name, identifier)
        if player is None:
            return None

        await self.resolver.resolve_player_thread(player.player_id, player.player_name)
        record = await self._refresh_player(player.player_id, player.player_name, force=True)

        logger.tree("Player Resynced", [
            ("Player", player.player_name),
            ("Total", str(record.total_punishments if record else "?")),
            ("Active", str(record.active_punishments if record else "?")),
        ], emoji="🔄")
        return record

    def apply_config(self, config: "Config") -> None:
        """Swap in a reloaded config; worker count changes need a restart."""
        self.config = config
        self.resolver.config = config

    async def get_service_stats(self) -> Dict[str, Any]:
        try:
            queue_size = await self.cache.queue_size()
        except CacheError:
            queue_size = None
        return {
            "in_flight": len(self._tasks),
            "closing": self._closing,
            "counters": dict(self.counters),
            "resolver": self.resolver.get_stats(),
            "cache_enabled": self.cache.enabled,
            "queue_size": queue_size,
            "store_available": await asyncio.to_thread(self.store.is_available),
        }


__all__ = ["PunishmentService"]
