"""
Warden - Forum Cleanup Events
=============================

Keeps the punishment forums bot-only.

DESIGN:
    Any non-bot message posted in a thread under a managed forum is
    deleted, except a linked moderator writing in their own thread.
    The verdict per (thread, author) is cached in the write-permissions
    namespace and the thread -> linked Discord id mapping in the
    discord-ids namespace, so a busy thread costs one store lookup per
    TTL. Deletion runs under message_delete:<id> so two bot instances
    never both try to delete the same message.
"""

import asyncio
from typing import Optional, TYPE_CHECKING

import discord
from discord.ext import commands

from warden.core.logger import logger
from warden.core.constants import MESSAGE_DELETE_LOCK
from warden.core.errors import CacheError, RemoteServiceError, StorageError
from warden.services.cache import CacheNamespace, LockState

if TYPE_CHECKING:
    from warden.bot import WardenBot


# Cached marker for "thread has no linked moderator"
NO_LINK = "0"

DELETE_LOCK_TIMEOUT = 2.0


class ForumCleanupCog(commands.Cog):
    """Deletes foreign messages in managed forum threads."""

    def __init__(self, bot: "WardenBot") -> None:
        self.bot = bot
        self.deleted = 0

    def _managed_forums(self) -> set:
        config = self.bot.config
        return {fid for fid in (config.players_forum_id, config.moderators_forum_id) if fid}

    # =========================================================================
    # Permission Lookup
    # =========================================================================

    async def _remember(self, namespace: CacheNamespace, key: str, value) -> None:
        try:
            await self.bot.cache.set(namespace, key, value)
        except CacheError as e:
            logger.debug(f"Cache write skipped for {namespace.value}:{key}: {e}")

    async def _linked_discord_id(self, thread_id: int) -> Optional[int]:
        """Discord id linked to the moderator owning ``thread_id``, if any."""
        cache = self.bot.cache
        key = str(thread_id)
        try:
            cached = await cache.get(CacheNamespace.DISCORD_IDS, key)
        except CacheError:
            cached = None
        if cached is not None:
            return None if cached == NO_LINK else int(cached)

        moderator = await asyncio.to_thread(self.bot.store.get_moderator_by_thread_id, thread_id)
        discord_id = moderator.discord_id if moderator else None
        await self._remember(CacheNamespace.DISCORD_IDS, key, discord_id or NO_LINK)
        return discord_id

    async def can_write(self, thread_id: int, author_id: int) -> bool:
        """True only for the moderator linked to this thread."""
        cache = self.bot.cache
        key = f"{thread_id}:{author_id}"
        try:
            cached = await cache.get(CacheNamespace.WRITE_PERMISSIONS, key)
        except CacheError:
            cached = None
        if cached is not None:
            return cached == "1"

        allowed = await self._linked_discord_id(thread_id) == author_id
        await self._remember(CacheNamespace.WRITE_PERMISSIONS, key, "1" if allowed else "0")
        return allowed

    # =========================================================================
    # Listener
    # =========================================================================

    @commands.Cog.listener()
    async def on_message(self, message: discord.Message) -> None:
        if not self.bot.config.delete_foreign_messages or message.author.bot:
            return

        channel = message.channel
        if not isinstance(channel, discord.Thread) or channel.parent_id not in self._managed_forums():
            return

        try:
            if await self.can_write(channel.id, message.author.id):
                return
        except StorageError as e:
            logger.warning("Forum Permission Check Failed", [
                ("Thread", str(channel.id)),
                ("Error", str(e)[:100]),
            ])
            return

        await self.delete_foreign(channel.id, message.id, str(message.author))

    async def delete_foreign(self, thread_id: int, message_id: int, author: str) -> bool:
        """Delete one message under its delete lock. Returns True if deleted."""
        async with self.bot.cache.hold(f"{MESSAGE_DELETE_LOCK}{message_id}", DELETE_LOCK_TIMEOUT) as state:
            if state is LockState.TIMED_OUT:
                return False
            try:
                deleted = await self.bot.gateway.delete_message(thread_id, message_id)
            except RemoteServiceError as e:
                logger.warning("Foreign Message Delete Failed", [
                    ("Thread", str(thread_id)),
                    ("Message", str(message_id)),
                    ("Error", str(e)[:100]),
                ])
                return False

        if deleted:
            self.deleted += 1
            logger.tree("Foreign Forum Message Deleted", [
                ("Author", author),
                ("Thread", str(thread_id)),
            ], emoji="🧹")
        return deleted


# =============================================================================
# Setup
# =============================================================================

async def setup(bot: "WardenBot") -> None:
    """Load the ForumCleanup cog."""
    await bot.add_cog(ForumCleanupCog(bot))
