"""
Warden - Admin Commands Cog
===========================

/warden slash commands for operators.

DESIGN:
    Every subcommand is limited to ADMIN_IDS and answers ephemerally.
    Store calls go through asyncio.to_thread like the workflows do.

Commands:
    /warden reload              Re-read the environment
    /warden stats               Service, store, cache and forum stats
    /warden queue               Deferred Discord action queue depth
    /warden resync <player>     Recompute counters, force summary refresh
    /warden link <mod> <member> Link a moderator to a Discord account
"""

import asyncio
from typing import Optional, Set, TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from warden.core.logger import logger
from warden.core.config import ConfigValidationError, EmbedColors, is_admin, reload_config
from warden.core.errors import CacheError, StorageError
from warden.services.cache import CacheNamespace
from warden.services.punishments import is_uuid

if TYPE_CHECKING:
    from warden.bot import WardenBot


# =============================================================================
# Admin Cog
# =============================================================================

class AdminCog(commands.Cog):
    """
    Operator commands for the running bridge.

    Attributes:
        bot: Reference to the main bot instance.
    """

    def __init__(self, bot: "WardenBot") -> None:
        self.bot = bot

    warden_group = app_commands.Group(
        name="warden",
        description="Warden administration",
    )

    # =========================================================================
    # Permission Check
    # =========================================================================

    async def interaction_check(self, interaction: discord.Interaction) -> bool:
        if is_admin(self.bot.config, interaction.user.id):
            return True
        await interaction.response.send_message(
            "You are not allowed to use Warden admin commands.",
            ephemeral=True,
        )
        logger.warning("Admin Command Denied", [
            ("User", str(interaction.user)),
            ("User ID", str(interaction.user.id)),
        ])
        return False

    # =========================================================================
    # Reload
    # =========================================================================

    @warden_group.command(name="reload", description="Reload configuration from the environment")
    async def reload(self, interaction: discord.Interaction) -> None:
        try:
            config = reload_config()
        except ConfigValidationError as e:
            await interaction.response.send_message(f"Reload failed: {e}", ephemeral=True)
            return

        self.bot.apply_config(config)

        # Forum ids may have changed; cached thread ids could point at the old forum
        try:
            cleared = await self.bot.cache.clear_caches()
        except CacheError as e:
            cleared = 0
            logger.warning("Cache Clear Failed", [("Error", str(e)[:100])])

        logger.tree("Configuration Reloaded", [
            ("By", str(interaction.user)),
            ("Log Channel", str(config.log_channel_id or "Disabled")),
            ("Stats Interval", f"{config.stats_update_interval}s"),
            ("Cache Keys Cleared", str(cleared)),
        ], emoji="🔄")

        await interaction.response.send_message(
            "Configuration reloaded. Worker count and Redis URL changes need a restart.",
            ephemeral=True,
        )

    # =========================================================================
    # Stats
    # =========================================================================

    @warden_group.command(name="stats", description="Show bridge statistics")
    async def stats(self, interaction: discord.Interaction) -> None:
        await interaction.response.defer(ephemeral=True)

        service_stats = await self.bot.service.get_service_stats()
        store_stats = await asyncio.to_thread(self.bot.store.describe)
        cache_stats = await self.bot.cache.get_stats()
        gateway_stats = self.bot.gateway.get_stats()
        counters = service_stats["counters"]

        embed = discord.Embed(title="📊 Warden Stats", color=EmbedColors.BLUE)
        embed.add_field(
            name="Workflows",
            value=(
                f"Received: **{counters.get('received', 0)}**\n"
                f"Persisted: **{counters.get('persisted', 0)}**\n"
                f"Merged: **{counters.get('merged', 0)}**\n"
                f"Revoked: **{counters.get('revoked', 0)}**\n"
                f"Dropped: **{counters.get('dropped', 0)}**\n"
                f"Failed: **{counters.get('failed', 0)}**\n"
                f"In Flight: **{service_stats['in_flight']}**"
            ),
            inline=True,
        )
        embed.add_field(
            name="Store",
            value=(
                f"Available: **{'Yes' if store_stats.get('available') else 'No'}**\n"
                f"Punishments: **{store_stats.get('punishments', 0)}**\n"
                f"Active: **{store_stats.get('active_punishments', 0)}**\n"
                f"Players: **{store_stats.get('players', 0)}**\n"
                f"Moderators: **{store_stats.get('moderators', 0)}**\n"
                f"Size: **{store_stats.get('size_kb', 0)} KB**"
            ),
            inline=True,
        )
        embed.add_field(
            name="Cache",
            value=(
                f"Enabled: **{'Yes' if cache_stats.get('enabled') else 'No'}**\n"
                f"Hits: **{cache_stats.get('hits', 0)}**\n"
                f"Misses: **{cache_stats.get('misses', 0)}**\n"
                f"Errors: **{cache_stats.get('errors', 0)}**\n"
                f"Queue: **{cache_stats.get('queue_size', 0)}**"
            ),
            inline=True,
        )
        resolver_stats = service_stats["resolver"]
        embed.add_field(
            name="Forum",
            value=(
                f"Threads Created: **{resolver_stats.get('threads_created', 0)}**\n"
                f"Lock Timeouts: **{resolver_stats.get('lock_timeouts', 0)}**\n"
                f"Messages Sent: **{gateway_stats.get('messages_sent', 0)}**\n"
                f"Discord Failures: **{gateway_stats.get('failures', 0)}**"
            ),
            inline=True,
        )

        await interaction.followup.send(embed=embed, ephemeral=True)

    # =========================================================================
    # Queue
    # =========================================================================

    @warden_group.command(name="queue", description="Show deferred Discord action queue depth")
    async def queue(self, interaction: discord.Interaction) -> None:
        if not self.bot.cache.enabled:
            await interaction.response.send_message(
                "Redis is disabled; failed sends are recovered by the reconcile sweep only.",
                ephemeral=True,
            )
            return

        try:
            size = await self.bot.cache.queue_size()
        except CacheError as e:
            await interaction.response.send_message(f"Queue unavailable: {e}", ephemeral=True)
            return

        last = self.bot.reconciler.last_run if self.bot.reconciler else {}
        await interaction.response.send_message(
            f"Deferred actions queued: **{size}**\n"
            f"Last reconcile: drained **{last.get('drained', 0)}**, swept **{last.get('swept', 0)}**",
            ephemeral=True,
        )

    # =========================================================================
    # Resync
    # =========================================================================

    @warden_group.command(name="resync", description="Recompute a player's counters and summary")
    @app_commands.describe(player="Player UUID or name")
    async def resync(self, interaction: discord.Interaction, player: str) -> None:
        await interaction.response.defer(ephemeral=True)

        try:
            record = await self.bot.service.resync_player(player.strip())
        except StorageError as e:
            await interaction.followup.send(f"Resync failed: {e}", ephemeral=True)
            return

        if record is None:
            await interaction.followup.send(f"No player found for `{player}`.", ephemeral=True)
            return

        await interaction.followup.send(
            f"Resynced **{record.player_name}**: "
            f"{record.total_punishments} total, {record.active_punishments} active.",
            ephemeral=True,
        )

    # =========================================================================
    # Link
    # =========================================================================

    @warden_group.command(name="link", description="Link a moderator to a Discord account")
    @app_commands.describe(
        moderator="Moderator UUID or in-game name",
        member="Discord member allowed to write in that moderator's thread",
    )
    async def link(self, interaction: discord.Interaction, moderator: str, member: discord.Member) -> None:
        store = self.bot.store
        identifier = moderator.strip()
        lookup = store.get_moderator if is_uuid(identifier) else store.get_moderator_by_name

        try:
            record = await asyncio.to_thread(lookup, identifier)
            if record is None:
                await interaction.response.send_message(
                    f"No moderator found for `{identifier}`.",
                    ephemeral=True,
                )
                return
            await asyncio.to_thread(store.set_moderator_discord_id, record.moderator_id, member.id)
        except StorageError as e:
            await interaction.response.send_message(f"Link failed: {e}", ephemeral=True)
            return

        if record.discord_thread_id:
            await self._invalidate_link(record.discord_thread_id, {record.discord_id, member.id})

        logger.tree("Moderator Linked", [
            ("Moderator", record.moderator_name),
            ("UUID", record.moderator_id),
            ("Member", f"{member} ({member.id})"),
            ("Previous", str(record.discord_id) if record.discord_id else "None"),
            ("By", str(interaction.user)),
        ], emoji="🔗")

        await interaction.response.send_message(
            f"Linked **{record.moderator_name}** to {member.mention}.",
            ephemeral=True,
        )

    async def _invalidate_link(self, thread_id: int, member_ids: Set[Optional[int]]) -> None:
        """Forget the thread's cached owner and the write verdicts of old and new owners."""
        try:
            await self.bot.cache.delete(CacheNamespace.DISCORD_IDS, str(thread_id))
            for member_id in member_ids:
                if member_id:
                    await self.bot.cache.delete(CacheNamespace.WRITE_PERMISSIONS, f"{thread_id}:{member_id}")
        except CacheError as e:
            logger.warning("Link Cache Invalidation Failed", [
                ("Thread", str(thread_id)),
                ("Error", str(e)[:100]),
            ])


# =============================================================================
# Setup
# =============================================================================

async def setup(bot: "WardenBot") -> None:
    """Load the Admin cog."""
    await bot.add_cog(AdminCog(bot))
