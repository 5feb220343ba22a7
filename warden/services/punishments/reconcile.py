"""
Warden - Dispatch Reconciler
============================

Finishes punishments whose Discord messages never went out.

DESIGN:
    Two sources of work:
        1. The deferred-action queue in Redis, filled when a send failed
           with a retryable Discord error (429 or 5xx).
        2. A store sweep for active rows older than the grace period
           with no log message id, which also covers a restart between
           persist and dispatch. Rows that keep failing are retried once
           per grace period, up to MAX_DISPATCH_ATTEMPTS times.
    Both funnel into PunishmentService.redispatch(), which only sends
    to targets that still lack a message id, so repeats are harmless.
"""

import asyncio
import time
from typing import Dict, Optional, TYPE_CHECKING

from warden.core.logger import logger
from warden.core.constants import MAX_DISPATCH_ATTEMPTS, QUEUE_DRAIN_LIMIT
from warden.core.errors import CacheError, StorageError

if TYPE_CHECKING:
    from warden.core.config import Config
    from warden.core.database import DatabaseManager
    from warden.services.cache import CacheProvider
    from warden.services.punishments.service import PunishmentService


class Reconciler:
    """Periodic queue drain plus undispatched-row sweep."""

    def __init__(
        self,
        service: "PunishmentService",
        store: "DatabaseManager",
        cache: "CacheProvider",
        config: "Config",
    ) -> None:
        self.service = service
        self.store = store
        self.cache = cache
        self.config = config
        self._task: Optional[asyncio.Task] = None
        self._running = False
        self.last_run: Dict[str, int] = {}

    # =========================================================================
    # Passes
    # =========================================================================

    async def drain_queue(self, limit: int = QUEUE_DRAIN_LIMIT) -> int:
        """Handle up to ``limit`` deferred actions. Returns how many ran."""
        handled = 0
        seen = set()
        for _ in range(limit):
            try:
                payload = await self.cache.dequeue()
            except CacheError as e:
                logger.warning("Queue Drain Interrupted", [
                    ("Error", str(e)[:100]),
                ])
                break
            if payload is None:
                break

            if payload.get("action") != "dispatch" or not payload.get("punishment_id"):
                logger.warning("Unknown Deferred Action", [
                    ("Payload", str(payload)[:100]),
                ])
                continue

            punishment_id = int(payload["punishment_id"])
            if punishment_id in seen:
                continue
            seen.add(punishment_id)
            await self.service.redispatch(punishment_id)
            handled += 1
        return handled

    async def sweep_undispatched(self, now: Optional[float] = None, limit: int = QUEUE_DRAIN_LIMIT) -> int:
        """
        Redispatch active rows that never reached the log channel.

        Each row that is still undispatched afterwards has an attempt
        recorded; after MAX_DISPATCH_ATTEMPTS it drops out of the sweep.
        """
        if not self.config.log_channel_id:
            return 0
        now = time.time() if now is None else now
        try:
            rows = await asyncio.to_thread(
                self.store.find_undispatched,
                now - self.config.reconcile_grace_period,
                limit,
            )
        except StorageError as e:
            logger.error("Undispatched Sweep Failed", [
                ("Error", str(e)[:100]),
            ])
            return 0

        for p in rows:
            result = await self.service.redispatch(p.id)
            if result is not None and result.log_message_id is not None:
                continue
            try:
                attempts = await asyncio.to_thread(self.store.record_dispatch_attempt, p.id, now)
            except StorageError as e:
                logger.error("Dispatch Attempt Not Recorded", [
                    ("Punishment", str(p.id)),
                    ("Error", str(e)[:100]),
                ])
                continue
            if attempts >= MAX_DISPATCH_ATTEMPTS:
                logger.warning("Dispatch Abandoned", [
                    ("Punishment", str(p.id)),
                    ("External ID", p.external_id),
                    ("Attempts", str(attempts)),
                ])
        return len(rows)

    async def run_once(self) -> Dict[str, int]:
        drained = await self.drain_queue()
        swept = await self.sweep_undispatched()
        self.last_run = {"drained": drained, "swept": swept}
        if drained or swept:
            logger.tree("Reconcile Pass Complete", [
                ("Queue Drained", str(drained)),
                ("Rows Swept", str(swept)),
            ], emoji="🔧")
        return self.last_run

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._scheduler_loop())

        logger.tree("Reconciler Started", [
            ("Every", f"{self.config.reconcile_interval}s"),
            ("Grace Period", f"{self.config.reconcile_grace_period}s"),
        ], emoji="🔧")

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
                await asyncio.sleep(max(1, self.config.reconcile_interval))
                if not self._running:
                    break
                await self.run_once()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Reconciler Error", [
                    ("Error Type", type(e).__name__),
                    ("Error", str(e)[:100]),
                ])


__all__ = ["Reconciler"]
