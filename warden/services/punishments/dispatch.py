"""
Punishment Dispatch Module
==========================

Sending, editing and deferring the Discord messages of a punishment.
"""

import asyncio
from typing import Any, List, Optional, Tuple, TYPE_CHECKING

from warden.core.logger import logger
from warden.core.errors import CacheError, RemoteServiceError
from warden.core.database.models import Punishment
from warden.services.gateway import MessageHandle
from warden.services.rendering import log_embed, punishment_embed, revoke_embed
from warden.utils.async_utils import gather_with_logging

if TYPE_CHECKING:
    from warden.services.punishments.service import PunishmentService


PLAYER_TARGET = "Player Thread"
MODERATOR_TARGET = "Moderator Thread"
LOG_TARGET = "Log Channel"


class DispatchMixin:
    """Mixin for the Discord side of the workflows."""

    # Thread Resolution
    # =========================================================================

    async def _resolve_threads(self: "PunishmentService", p: Punishment) -> Tuple[Optional[int], Optional[int]]:
        """Player thread always, moderator thread when a moderator issued it."""
        player_coro = self.resolver.resolve_player_thread(p.player_id, p.player_name)
        if p.moderator_id:
            moderator_coro = self.resolver.resolve_moderator_thread(
                p.moderator_id,
                p.moderator_name or p.moderator_id,
            )
            return tuple(await asyncio.gather(player_coro, moderator_coro))
        return await player_coro, None

    # New / Missing Messages
    # =========================================================================

    async def _dispatch_missing(
        self: "PunishmentService",
        p: Punishment,
        player_thread: Optional[int],
        moderator_thread: Optional[int],
    ) -> Punishment:
        """
        Send the notification to every target that has no message yet.

        Returns:
            A snapshot carrying the new message ids. Retryable failures
            are queued for the reconciler.
        """
        operations: List[Tuple[str, Any]] = []
        if player_thread and not p.player_message_id:
            operations.append((PLAYER_TARGET, self.gateway.send_message(player_thread, punishment_embed(p))))
        if moderator_thread and not p.moderator_message_id:
            operations.append((MODERATOR_TARGET, self.gateway.send_message(moderator_thread, punishment_embed(p))))
        log_channel = self.config.log_channel_id
        if log_channel and not p.log_message_id:
            operations.append((LOG_TARGET, self.gateway.send_message(log_channel, log_embed(p))))

        if not operations:
            return p

        results = await gather_with_logging(*operations, context=f"Dispatch {p.type.code}:{p.external_id}")
        sent = {}
        retryable = False
        for (name, _), result in zip(operations, results):
            if isinstance(result, MessageHandle):
                sent[name] = result
            elif isinstance(result, RemoteServiceError) and result.retryable:
                retryable = True

        if retryable:
            await self._defer(p)

        player = sent.get(PLAYER_TARGET)
        moderator = sent.get(MODERATOR_TARGET)
        log = sent.get(LOG_TARGET)
        return p.with_messages(
            player_thread_id=player.channel_id if player else None,
            player_message_id=player.message_id if player else None,
            moderator_thread_id=moderator.channel_id if moderator else None,
            moderator_message_id=moderator.message_id if moderator else None,
            log_channel_id=log.channel_id if log else None,
            log_message_id=log.message_id if log else None,
        )

    async def _defer(self: "PunishmentService", p: Punishment) -> None:
        try:
            queued = await self.cache.enqueue({"action": "dispatch", "punishment_id": p.id})
        except CacheError:
            queued = False
        if queued:
            self.counters["deferred"] += 1
            logger.info("Dispatch Deferred", [
                ("Punishment", str(p.id)),
                ("External ID", p.external_id),
            ])

    # Edits
    # =========================================================================

    async def _edit_recorded(self: "PunishmentService", p: Punishment, context: str) -> None:
        """
        Re-render every recorded thread message from ``p``.

        Failures are logged and not retried; the store already holds
        the truth and the next edit will overwrite a stale message.
        """
        embed_for = revoke_embed if not p.active else punishment_embed
        operations = []
        if p.player_thread_id and p.player_message_id:
            operations.append((
                PLAYER_TARGET,
                self.gateway.edit_message(p.player_thread_id, p.player_message_id, embed_for(p)),
            ))
        if p.moderator_thread_id and p.moderator_message_id:
            operations.append((
                MODERATOR_TARGET,
                self.gateway.edit_message(p.moderator_thread_id, p.moderator_message_id, embed_for(p)),
            ))
        if p.active and p.log_channel_id and p.log_message_id:
            operations.append((
                LOG_TARGET,
                self.gateway.edit_message(p.log_channel_id, p.log_message_id, log_embed(p)),
            ))
        if operations:
            await gather_with_logging(*operations, context=context)

    async def _dispatch_revoke(self: "PunishmentService", p: Punishment) -> None:
        """Edit thread messages to the revoked rendering, then log the revoke."""
        await self._edit_recorded(p, f"Revoke {p.type.code}:{p.external_id}")

        log_channel = self.config.log_channel_id
        if not log_channel:
            return
        try:
            await self.gateway.send_message(log_channel, log_embed(p))
        except RemoteServiceError as e:
            logger.warning("Revoke Log Failed", [
                ("External ID", p.external_id),
                ("Error", str(e)[:100]),
            ])


__all__ = ["DispatchMixin"]
