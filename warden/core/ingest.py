"""
Warden - Event Ingest Server
============================

HTTP endpoint the Minecraft-side forwarder posts plugin events to.

DESIGN:
    Runs on the bot's event loop with aiohttp's AppRunner, like any
    other background service. A request is only parsed and handed to
    PunishmentService.submit_*; the workflow itself runs as a task, so
    the forwarder gets its 202 without waiting on Discord.

    Status codes:
        202  Accepted and scheduled
        204  Valid but filtered out (untracked type, below minimum)
        400  Malformed JSON or payload
        401  Missing or wrong shared secret
        404  Unknown source name
        503  Service is shutting down
"""

import hmac
import json
from datetime import datetime
from typing import Dict, Optional, TYPE_CHECKING

from aiohttp import web

from warden.core.logger import logger
from warden.core.config import NY_TZ
from warden.core.constants import INGEST_MAX_BODY, INGEST_SECRET_HEADER
from warden.core.errors import InvalidEventError
from warden.services.punishments.events import PunishmentEvent

if TYPE_CHECKING:
    from discord.ext import commands
    from warden.core.config import Config
    from warden.services.punishments import PunishmentService
    from warden.services.sources import EventSource


# =============================================================================
# Ingest Server
# =============================================================================

class EventIngestServer:
    """
    aiohttp server for inbound plugin events.

    Attributes:
        app: aiohttp Application, exposed for test clients.
        accepted: Events scheduled since start.
        rejected: Requests answered with a 4xx or 5xx.
    """

    def __init__(
        self,
        service: "PunishmentService",
        sources: Dict[str, "EventSource"],
        config: "Config",
        bot: Optional["commands.Bot"] = None,
    ) -> None:
        self.service = service
        self.sources = sources
        self.config = config
        self.bot = bot
        self.runner: Optional[web.AppRunner] = None
        self.accepted = 0
        self.filtered = 0
        self.rejected = 0

        self.app = web.Application(client_max_size=INGEST_MAX_BODY)
        self.app.router.add_post("/events/{source}", self.event_handler)
        self.app.router.add_get("/health", self.health_handler)

    # =========================================================================
    # Request Handlers
    # =========================================================================

    def _authorized(self, request: web.Request) -> bool:
        secret = self.config.ingest_secret
        if not secret:
            return True
        supplied = request.headers.get(INGEST_SECRET_HEADER, "")
        return hmac.compare_digest(supplied.encode(), secret.encode())

    def _reject(self, status: int, error: str, source: str) -> web.Response:
        self.rejected += 1
        logger.warning("Ingest Rejected", [
            ("Source", source),
            ("Status", str(status)),
            ("Error", error[:100]),
        ])
        return web.json_response({"error": error}, status=status)

    async def event_handler(self, request: web.Request) -> web.Response:
        name = request.match_info["source"]

        if not self._authorized(request):
            return self._reject(401, "Invalid secret", name)

        source = self.sources.get(name)
        if source is None:
            return self._reject(404, f"Unknown source: {name}", name)

        try:
            payload = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return self._reject(400, "Body is not valid JSON", name)

        try:
            event = source.parse(payload)
        except InvalidEventError as e:
            return self._reject(400, str(e), name)

        if event is None:
            self.filtered += 1
            logger.debug(f"Ingest filtered {name} event")
            return web.Response(status=204)

        if isinstance(event, PunishmentEvent):
            scheduled = self.service.submit_punishment(event)
        else:
            scheduled = self.service.submit_revoke(event)

        if not scheduled:
            return self._reject(503, "Service unavailable", name)

        self.accepted += 1
        return web.json_response({"status": "accepted", "event": event.label}, status=202)

    async def health_handler(self, request: web.Request) -> web.Response:
        """Service stats as JSON; no secrets."""
        connected = self.bot.is_ready() if self.bot is not None else None
        status = {
            "status": "healthy" if connected is not False else "starting",
            "bot": "Warden",
            "connected": connected,
            "sources": sorted(self.sources),
            "ingest": {
                "accepted": self.accepted,
                "filtered": self.filtered,
                "rejected": self.rejected,
            },
            "service": await self.service.get_service_stats(),
            "timestamp": datetime.now(NY_TZ).isoformat(),
        }
        return web.json_response(status)

    # =========================================================================
    # Lifecycle Management
    # =========================================================================

    async def start(self) -> None:
        """
        Start listening.

        A bind failure is logged and leaves the bot running without
        ingest, like a failed health server.
        """
        host, port = self.config.ingest_host, self.config.ingest_port
        try:
            self.runner = web.AppRunner(self.app)
            await self.runner.setup()
            site = web.TCPSite(self.runner, host, port)
            await site.start()

            logger.tree("Ingest Server Started", [
                ("Endpoint", f"http://{host}:{port}/events/<source>"),
                ("Sources", ", ".join(sorted(self.sources)) or "None"),
                ("Auth", "Shared secret" if self.config.ingest_secret else "⚠️ None"),
            ], emoji="📥")

        except OSError as e:
            logger.error("Ingest Server Startup Failed", [
                ("Port", str(port)),
                ("Error", str(e)[:100]),
            ])

    async def stop(self) -> None:
        if self.runner:
            await self.runner.cleanup()
            self.runner = None
            logger.info("Ingest server stopped")


__all__ = ["EventIngestServer"]
