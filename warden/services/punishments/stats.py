"""
Punishment Statistics Module
============================

Counter recomputation and the pinned summary message of each thread.

DESIGN:
    Counters are always recomputed from the punishments table under a
    per-identity lock, never incremented, so any interleaving of
    workflows converges on the true counts. The Discord summary is a
    view of those counters and is refreshed at most once per interval
    per identity.
"""

import asyncio
import time
from typing import Optional, TYPE_CHECKING

from warden.core.logger import logger
from warden.core.errors import RemoteServiceError
from warden.core.constants import STATS_UPDATE_LOCK
from warden.core.database.models import ModeratorRecord, PlayerRecord, Punishment
from warden.services.cache import LockState
from warden.services.rendering import moderator_summary_embed, player_summary_embed

if TYPE_CHECKING:
    from warden.services.punishments.service import PunishmentService


class StatsMixin:
    """Mixin for counters and summaries."""

    async def _refresh_stats(self: "PunishmentService", p: Punishment, force: bool = False) -> None:
        await self._refresh_player(p.player_id, p.player_name, force)
        if p.moderator_id:
            await self._refresh_moderator(p.moderator_id, p.moderator_name or p.moderator_id, force)

    # Players
    # =========================================================================

    def _recompute_player(self: "PunishmentService", player_id: str, player_name: str) -> PlayerRecord:
        counts = self.store.count_player_punishments(player_id)
        existing = self.store.get_player(player_id)
        self.store.upsert_player(PlayerRecord(
            player_id=player_id,
            player_name=player_name or (existing.player_name if existing else player_id),
            total_punishments=counts["total"],
            active_punishments=counts["active"],
            last_activity_at=time.time(),
            created_at=existing.created_at if existing else None,
        ))
        return self.store.get_player(player_id)

    async def _refresh_player(
        self: "PunishmentService",
        player_id: str,
        player_name: str,
        force: bool = False,
    ) -> Optional[PlayerRecord]:
        key = f"player:{player_id}"
        record = await self._locked_recompute(key, self._recompute_player, player_id, player_name)
        if record is None:
            return None
        if force or await self.cache.should_update_stats(key, self.config.stats_update_interval):
            await self._publish_player_summary(record)
        return record

    async def _publish_player_summary(self: "PunishmentService", record: PlayerRecord) -> None:
        if not record.discord_thread_id:
            return

        def _load():
            return (
                self.store.count_player_by_type(record.player_id),
                self.store.count_player_by_type(record.player_id, active_only=True),
                self.store.find_player_active_punishments(record.player_id),
            )

        totals, active_counts, active = await asyncio.to_thread(_load)
        embed = player_summary_embed(record, totals, active_counts, active)
        message_id = await self._publish_summary(record.discord_thread_id, record.summary_message_id, embed)
        if message_id and message_id != record.summary_message_id:
            await asyncio.to_thread(self.store.set_player_summary, record.player_id, message_id)

    # Moderators
    # =========================================================================

    def _recompute_moderator(self: "PunishmentService", moderator_id: str, moderator_name: str) -> ModeratorRecord:
        counts = self.store.count_moderator_punishments(moderator_id)
        existing = self.store.get_moderator(moderator_id)
        self.store.upsert_moderator(ModeratorRecord(
            moderator_id=moderator_id,
            moderator_name=moderator_name or (existing.moderator_name if existing else moderator_id),
            total_issued=counts["total"],
            active_issued=counts["active"],
            last_activity_at=time.time(),
            created_at=existing.created_at if existing else None,
        ))
        return self.store.get_moderator(moderator_id)

    async def _refresh_moderator(
        self: "PunishmentService",
        moderator_id: str,
        moderator_name: str,
        force: bool = False,
    ) -> Optional[ModeratorRecord]:
        key = f"moderator:{moderator_id}"
        record = await self._locked_recompute(key, self._recompute_moderator, moderator_id, moderator_name)
        if record is None:
            return None
        if force or await self.cache.should_update_stats(key, self.config.stats_update_interval):
            if record.discord_thread_id:
                by_type = await asyncio.to_thread(self.store.count_moderator_by_type, moderator_id)
                embed = moderator_summary_embed(record, by_type)
                message_id = await self._publish_summary(record.discord_thread_id, record.summary_message_id, embed)
                if message_id and message_id != record.summary_message_id:
                    await asyncio.to_thread(self.store.set_moderator_summary, moderator_id, message_id)
        return record

    # Shared
    # =========================================================================

    async def _locked_recompute(self: "PunishmentService", key: str, recompute, identity: str, name: str):
        """Run ``recompute`` on a worker thread under the stats lock for ``key``."""
        lock_key = f"{STATS_UPDATE_LOCK}{key}"
        timeout = self.config.stats_lock_timeout

        async with self._stats_locks.hold(lock_key, timeout) as acquired:
            if not acquired:
                return self._stats_timeout(key)
            async with self.cache.hold(lock_key, timeout) as state:
                if state is LockState.TIMED_OUT:
                    return self._stats_timeout(key)
                return await asyncio.to_thread(recompute, identity, name)

    def _stats_timeout(self: "PunishmentService", key: str) -> None:
        self.counters["stats_skipped"] += 1
        logger.warning("Stats Lock Timeout", [
            ("Identity", key),
            ("Timeout", f"{self.config.stats_lock_timeout}s"),
            ("Action", "Skipped; next workflow recomputes"),
        ])
        return None

    async def _publish_summary(
        self: "PunishmentService",
        thread_id: int,
        summary_message_id: Optional[int],
        embed,
    ) -> Optional[int]:
        """
        Edit the pinned summary, or post a new one if there is none.

        Returns:
            The summary message id, or None if Discord refused.
        """
        try:
            if summary_message_id:
                await self.gateway.edit_message(thread_id, summary_message_id, embed)
                return summary_message_id
            handle = await self.gateway.send_message(thread_id, embed)
            return handle.message_id
        except RemoteServiceError as e:
            logger.warning("Summary Refresh Failed", [
                ("Thread", str(thread_id)),
                ("Error", str(e)[:100]),
            ])
            return None


__all__ = ["StatsMixin"]
