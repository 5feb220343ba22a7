"""
Warden - Discord Gateway
========================

RemoteMessenger implemented on discord.py.

DESIGN:
    Forum threads auto-archive after inactivity. get_thread() reports an
    archived thread as not live, so the resolver opens a fresh one.
    Sends and edits aimed at an archived, unlocked thread (the recorded
    messages of older punishments) revive it first; a locked thread
    fails those calls. Transient failures (429, 5xx, network) are
    retried here a couple of times and then surface as
    RemoteServiceError(retryable=True) for the reconciler; permanent
    ones (403, 404) surface immediately.
"""

import math
from typing import Optional, TYPE_CHECKING, Union

import discord

from warden.core.logger import logger
from warden.core.errors import RemoteServiceError
from warden.core.constants import THREAD_NAME_MAX
from warden.services.gateway.base import MessageHandle, ThreadHandle
from warden.utils.retry import RETRYABLE_EXCEPTIONS, is_retryable, retry_async

if TYPE_CHECKING:
    from discord.ext import commands


Messageable = Union[discord.Thread, discord.TextChannel]

RETRY_ATTEMPTS = 2
RETRY_BASE_DELAY = 0.5


class DiscordGateway:
    """Discord-side half of every workflow."""

    def __init__(self, bot: "commands.Bot") -> None:
        self.bot = bot
        self.threads_created = 0
        self.messages_sent = 0
        self.failures = 0

    # =========================================================================
    # Helpers
    # =========================================================================

    def _fail(self, action: str, target: int, e: BaseException) -> RemoteServiceError:
        self.failures += 1
        retryable = is_retryable(e)
        logger.warning("Discord Call Failed", [
            ("Action", action),
            ("Target", str(target)),
            ("Error Type", type(e).__name__),
            ("Error", str(e)[:100]),
            ("Retryable", "Yes" if retryable else "No"),
        ])
        return RemoteServiceError(f"{action} {target}: {e}", retryable=retryable)

    async def _call(self, action: str, target: int, coro_func, *args, **kwargs):
        try:
            return await retry_async(
                coro_func,
                *args,
                max_retries=RETRY_ATTEMPTS,
                base_delay=RETRY_BASE_DELAY,
                **kwargs,
            )
        except RETRYABLE_EXCEPTIONS as e:
            raise self._fail(action, target, e) from e

    async def _channel(self, channel_id: int) -> Optional[discord.abc.GuildChannel]:
        """Cached channel, else fetched. None if it no longer exists."""
        channel = self.bot.get_channel(channel_id)
        if channel is not None:
            return channel
        try:
            return await self._call("fetch channel", channel_id, self.bot.fetch_channel, channel_id)
        except RemoteServiceError as e:
            cause = e.__cause__
            if isinstance(cause, (discord.NotFound, discord.Forbidden)):
                return None
            raise

    async def _revive(self, thread: discord.Thread) -> bool:
        """Unarchive if needed. False when the thread is locked or revive fails."""
        if not thread.archived:
            return True
        if thread.locked:
            return False
        try:
            await self._call("unarchive", thread.id, thread.edit, archived=False)
        except RemoteServiceError:
            return False
        logger.debug("Thread Unarchived", [("Thread", str(thread.id))])
        return True

    async def _messageable(self, channel_id: int) -> Messageable:
        channel = await self._channel(channel_id)
        if channel is None:
            raise RemoteServiceError(f"Channel {channel_id} not found", retryable=False)
        if isinstance(channel, discord.Thread) and not await self._revive(channel):
            raise RemoteServiceError(f"Thread {channel_id} is locked or cannot be revived", retryable=False)
        return channel

    # =========================================================================
    # Threads
    # =========================================================================

    async def get_thread(self, thread_id: int) -> Optional[ThreadHandle]:
        """
        The live thread with this id.

        Returns:
            None if the thread was deleted, is archived, or is not a thread.
            An archived thread is not reused; the resolver opens a new one.

        Raises:
            RemoteServiceError: On transient failures, so a flaky API is
                never mistaken for a missing thread.
        """
        channel = await self._channel(thread_id)
        if not isinstance(channel, discord.Thread) or channel.archived:
            return None
        return ThreadHandle(id=channel.id, name=channel.name, parent_id=channel.parent_id)

    async def create_thread(self, parent_id: int, title: str, payload: discord.Embed) -> ThreadHandle:
        """Create a forum post and pin its starter message."""
        forum = await self._channel(parent_id)
        if not isinstance(forum, discord.ForumChannel):
            raise RemoteServiceError(f"Forum {parent_id} not found", retryable=False)

        thread_with_msg = await self._call(
            "create thread",
            parent_id,
            forum.create_thread,
            name=title[:THREAD_NAME_MAX],
            embed=payload,
        )
        self.threads_created += 1

        starter = thread_with_msg.message
        if starter is not None:
            try:
                await starter.pin()
            except discord.HTTPException as e:
                logger.warning("Failed To Pin Summary", [
                    ("Thread", str(thread_with_msg.thread.id)),
                    ("Error", str(e)[:50]),
                ])

        logger.tree("Forum Thread Created", [
            ("Name", title[:THREAD_NAME_MAX]),
            ("Thread ID", str(thread_with_msg.thread.id)),
            ("Forum", str(parent_id)),
        ], emoji="🧵")

        return ThreadHandle(
            id=thread_with_msg.thread.id,
            name=thread_with_msg.thread.name,
            parent_id=parent_id,
            starter_message_id=starter.id if starter else None,
        )

    # =========================================================================
    # Messages
    # =========================================================================

    async def send_message(self, target_id: int, payload: discord.Embed) -> MessageHandle:
        channel = await self._messageable(target_id)
        message = await self._call("send", target_id, channel.send, embed=payload)
        self.messages_sent += 1
        return MessageHandle(channel_id=target_id, message_id=message.id)

    async def edit_message(self, channel_id: int, message_id: int, payload: discord.Embed) -> None:
        channel = await self._messageable(channel_id)
        partial = channel.get_partial_message(message_id)
        await self._call("edit", message_id, partial.edit, embed=payload)

    async def delete_message(self, channel_id: int, message_id: int) -> bool:
        """
        Returns:
            False if the message was already gone.
        """
        channel = await self._channel(channel_id)
        if channel is None:
            return False
        partial = channel.get_partial_message(message_id)
        try:
            await self._call("delete", message_id, partial.delete)
        except RemoteServiceError as e:
            if isinstance(e.__cause__, discord.NotFound):
                return False
            raise
        return True

    def get_stats(self) -> dict:
        return {
            "threads_created": self.threads_created,
            "messages_sent": self.messages_sent,
            "failures": self.failures,
            "latency_ms": round(self.bot.latency * 1000) if math.isfinite(self.bot.latency) else None,
        }


__all__ = ["DiscordGateway"]
