"""
Warden - Expiry Scheduler
=========================

Revokes temporary punishments whose time ran out.

DESIGN:
    Plugins do not always emit an unban when a temp ban lapses, so the
    bot checks the store itself. Each pass revokes with kind EXPIRED in
    small concurrent batches; PunishmentService.expire() re-reads the
    row under the workflow lock, so a plugin unban racing the scheduler
    still flips the row exactly once.
"""

import asyncio
import time
from typing import Optional, TYPE_CHECKING

from warden.core.logger import logger
from warden.core.constants import EXPIRY_BATCH_SIZE
from warden.core.errors import StorageError

if TYPE_CHECKING:
    from warden.core.config import Config
    from warden.core.database import DatabaseManager
    from warden.services.punishments.service import PunishmentService


class ExpiryScheduler:
    """Periodic find_expired() sweep."""

    def __init__(self, service: "PunishmentService", store: "DatabaseManager", config: "Config") -> None:
        self.service = service
        self.store = store
        self.config = config
        self._task: Optional[asyncio.Task] = None
        self._running = False
        self.total_expired = 0

    async def run_once(self, now: Optional[float] = None) -> int:
        """
        Expire every due punishment.

        Returns:
            Number of rows actually revoked in this pass.
        """
        now = time.time() if now is None else now
        try:
            due = await asyncio.to_thread(self.store.find_expired, now)
        except StorageError as e:
            logger.error("Expiry Check Failed", [
                ("Error", str(e)[:100]),
            ])
            return 0

        if not due:
            return 0

        expired = 0
        for start in range(0, len(due), EXPIRY_BATCH_SIZE):
            batch = due[start:start + EXPIRY_BATCH_SIZE]
            results = await asyncio.gather(*(self.service.expire(p.id) for p in batch))
            expired += sum(1 for r in results if r is not None)

        self.total_expired += expired
        logger.tree("Expired Punishments Revoked", [
            ("Due", str(len(due))),
            ("Revoked", str(expired)),
        ], emoji="⌛")
        return expired

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._scheduler_loop())

        logger.tree("Expiry Scheduler Started", [
            ("Every", f"{self.config.expiry_check_interval}s"),
        ], emoji="⏰")

    async def stop(self) -> None:
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
                await self.run_once()
                await asyncio.sleep(max(1, self.config.expiry_check_interval))
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Expiry Scheduler Error", [
                    ("Error Type", type(e).__name__),
                    ("Error", str(e)[:100]),
                ])
                await asyncio.sleep(max(1, self.config.expiry_check_interval))


__all__ = ["ExpiryScheduler"]
