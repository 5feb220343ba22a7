"""
Warden - Backup Scheduler
=========================

Periodic database snapshots on the bot's event loop.
"""

import asyncio
from pathlib import Path
from typing import Optional, TYPE_CHECKING

from warden.core.logger import logger
from warden.core.constants import SECONDS_PER_HOUR

if TYPE_CHECKING:
    from warden.core.database import DatabaseManager


class BackupScheduler:
    """
    Runs DatabaseManager.backup() every ``interval_hours``.

    DESIGN: The snapshot itself runs on a worker thread; a failed pass is
    logged and the loop keeps its schedule.
    """

    def __init__(
        self,
        store: "DatabaseManager",
        backup_dir: str,
        keep: int = 10,
        interval_hours: int = 24,
    ) -> None:
        self.store = store
        self.backup_dir = backup_dir
        self.keep = keep
        self.interval = max(1, interval_hours) * SECONDS_PER_HOUR
        self._task: Optional[asyncio.Task] = None
        self._running = False
        self.last_backup: Optional[Path] = None

    async def run_once(self) -> Optional[Path]:
        """Take one snapshot now."""
        path = await asyncio.to_thread(self.store.backup, self.backup_dir, self.keep)
        if path:
            self.last_backup = path
        return path

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._scheduler_loop())

        logger.tree("Backup Scheduler Started", [
            ("Every", f"{self.interval // SECONDS_PER_HOUR}h"),
            ("Keep", str(self.keep)),
            ("Directory", self.backup_dir),
        ], emoji="💾")

    async def stop(self) -> None:
        """Stop the backup scheduler."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def _scheduler_loop(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self.interval)
                if not self._running:
                    break
                await self.run_once()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Backup Scheduler Error", [
                    ("Error", str(e)[:100]),
                ])


__all__ = ["BackupScheduler"]
