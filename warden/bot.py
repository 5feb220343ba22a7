"""
Warden - Bot
============

discord.py client that owns every component of the bridge.

DESIGN:
    No component is a global. setup_hook builds them leaves first and
    hands each one explicit references:

        DatabaseManager, CacheProvider
          -> DiscordGateway
          -> ThreadResolver
          -> PunishmentService
          -> ExpiryScheduler, Reconciler, BackupScheduler
          -> EventIngestServer

    Store work runs on the loop's default executor, resized here to
    WORKER_COUNT so asyncio.to_thread never queues behind unrelated work.
"""

import asyncio
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Dict, Optional

import discord
from discord.ext import commands

from warden.core.logger import logger
from warden.core.config import Config, get_config
from warden.core.constants import SHUTDOWN_TIMEOUT
from warden.core.database import DatabaseManager
from warden.core.ingest import EventIngestServer
from warden.services.backup import BackupScheduler
from warden.services.cache import CacheProvider
from warden.services.gateway import DiscordGateway
from warden.services.punishments import ExpiryScheduler, PunishmentService, Reconciler
from warden.services.sources import EventSource, build_sources
from warden.services.threads import ThreadResolver


class WardenBot(commands.Bot):
    """
    Main Discord bot class for Warden.

    SERVICE INITIALIZATION ORDER (setup_hook, before on_ready):
        1. Executor sized to WORKER_COUNT
        2. Store, cache, gateway, resolver, punishment service
        3. Command and event cogs, command tree sync
        4. Expiry, reconcile and backup schedulers
        5. Ingest server (last, so events only arrive once all is ready)
    """

    # =========================================================================
    # Initialization
    # =========================================================================

    def __init__(self, config: Optional[Config] = None) -> None:
        self.config = config or get_config()

        intents = discord.Intents.default()
        intents.guild_messages = True

        super().__init__(
            command_prefix=commands.when_mentioned,
            intents=intents,
            help_command=None,
        )

        self.start_time: datetime = datetime.now()
        logger.set_webhook(self.config.error_webhook_url)

        # Component placeholders
        self.store: Optional[DatabaseManager] = None
        self.cache: Optional[CacheProvider] = None
        self.gateway: Optional[DiscordGateway] = None
        self.resolver: Optional[ThreadResolver] = None
        self.service: Optional[PunishmentService] = None
        self.sources: Dict[str, EventSource] = {}
        self.expiry: Optional[ExpiryScheduler] = None
        self.reconciler: Optional[Reconciler] = None
        self.backups: Optional[BackupScheduler] = None
        self.ingest: Optional[EventIngestServer] = None

        self._shutting_down = False

        logger.info("Bot Instance Created")

    # =========================================================================
    # Setup Hook
    # =========================================================================

    async def setup_hook(self) -> None:
        """Build components, load cogs, sync commands, start background work."""
        config = self.config
        self.loop.set_default_executor(
            ThreadPoolExecutor(max_workers=config.worker_count, thread_name_prefix="warden-store")
        )

        self.store = DatabaseManager(config.database_path)
        self.cache = CacheProvider.from_config(config)
        await self.cache.connect()

        self.gateway = DiscordGateway(self)
        self.resolver = ThreadResolver(self.store, self.cache, self.gateway, config)
        self.service = PunishmentService(self.store, self.cache, self.resolver, self.gateway, config)
        self.service.bind_loop(self.loop)
        self.sources = build_sources(config)

        from warden.commands import COMMAND_COGS
        from warden.events import EVENT_COGS
        for cog in COMMAND_COGS + EVENT_COGS:
            try:
                await self.load_extension(cog)
                logger.info(f"Cog Loaded: {cog.split('.')[-1]}")
            except commands.ExtensionError as e:
                logger.error("Failed to Load Cog", [("Cog", cog), ("Error", str(e)[:100])])

        try:
            if config.guild_id:
                guild = discord.Object(id=config.guild_id)
                self.tree.copy_global_to(guild=guild)
                synced = await self.tree.sync(guild=guild)
            else:
                synced = await self.tree.sync()
            logger.tree("Commands Synced", [("Count", str(len(synced)))], emoji="✅")
        except discord.HTTPException as e:
            logger.error("Command Sync Failed", [("Error", str(e)[:100])])

        self.expiry = ExpiryScheduler(self.service, self.store, config)
        self.reconciler = Reconciler(self.service, self.store, self.cache, config)
        self.backups = BackupScheduler(
            self.store,
            config.backup_dir,
            keep=config.backup_keep,
            interval_hours=config.backup_interval_hours,
        )
        await self.expiry.start()
        await self.reconciler.start()
        await self.backups.start()

        self.ingest = EventIngestServer(self.service, self.sources, config, bot=self)
        await self.ingest.start()

    # =========================================================================
    # Events
    # =========================================================================

    async def on_ready(self) -> None:
        logger.tree("Warden Online", [
            ("Bot", f"{self.user} ({self.user.id})" if self.user else "Unknown"),
            ("Guilds", str(len(self.guilds))),
            ("Cache", "Redis" if self.cache and self.cache.enabled else "Disabled"),
            ("Sources", ", ".join(sorted(self.sources)) or "None"),
        ], emoji="🟢")

    # =========================================================================
    # Configuration
    # =========================================================================

    def apply_config(self, config: Config) -> None:
        """Propagate a reloaded config to every running component."""
        self.config = config
        logger.set_webhook(config.error_webhook_url)
        if self.service:
            self.service.apply_config(config)
        for component in (self.expiry, self.reconciler, self.ingest):
            if component:
                component.config = config
        self.sources = build_sources(config)
        if self.ingest:
            self.ingest.sources = self.sources

    # =========================================================================
    # Shutdown
    # =========================================================================

    async def shutdown(self) -> None:
        """Stop intake first, drain workflows, then release resources."""
        if self._shutting_down:
            return
        self._shutting_down = True
        logger.info("Initiating Graceful Shutdown")

        if self.ingest:
            await self.ingest.stop()
        for scheduler in (self.expiry, self.reconciler, self.backups):
            if scheduler:
                await scheduler.stop()
        if self.service:
            await self.service.shutdown(SHUTDOWN_TIMEOUT)

        if self.store:
            if self.config.auto_backup:
                await asyncio.to_thread(self.store.backup, self.config.backup_dir, self.config.backup_keep)
            self.store.close()
        if self.cache:
            await self.cache.close()

        await super().close()

        logger.tree("SHUTDOWN COMPLETE", [
            ("Uptime", str(datetime.now() - self.start_time)),
        ], emoji="🛑")

    async def close(self) -> None:
        """Override close to ensure proper shutdown."""
        await self.shutdown()


__all__ = ["WardenBot"]
