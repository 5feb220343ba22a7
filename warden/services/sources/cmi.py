"""
Warden - CMI Event Source
=========================

Jails from the CMI plugin.

Payload shape:

    {
        "event": "jail" | "unjail",
        "uuid": "<player uuid>",
        "name": "<player name>",
        "jail": "<jail name>",
        "executorUUID": "<moderator uuid>",   # optional
        "executor": "<moderator name>",       # optional
        "time": 600000                        # jail only, milliseconds
    }

CMI has no punishment ids, so the external id is derived from the player:
a player is in at most one jail at a time and the unjail must find the
row the jail created.
"""

from typing import Any, Dict, Optional

from warden.core.errors import InvalidEventError
from warden.core.database.models import PunishmentType, RevokeKind
from warden.services.punishments.events import PunishmentEvent, RevokeEvent
from warden.services.sources.base import EventSource, ParsedEvent


JAIL_ID_PREFIX = "cmi_jail_"


def jail_external_id(player_id: str) -> str:
    return f"{JAIL_ID_PREFIX}{player_id.lower()}"


class CMISource(EventSource):
    """Jail and unjail events."""

    name = "cmi"

    def enabled(self, config=None) -> bool:
        return (config or self.config).track_jails

    def parse(self, payload: Dict[str, Any]) -> ParsedEvent:
        event = self._event_name(payload)
        if event == "jail":
            return self._parse_jail(payload)
        if event == "unjail":
            return self._parse_unjail(payload)
        raise InvalidEventError(f"Unknown CMI event: {event}")

    def _parse_jail(self, payload: Dict[str, Any]) -> Optional[PunishmentEvent]:
        if not self.config.track_jails:
            return None

        duration_ms = self._duration_ms(payload, "time")
        if self._below_minimum(duration_ms, self.config.min_jail_duration):
            return None

        player_id = self._require(payload, "uuid")
        jail_name = str(payload.get("jail") or "Unknown")
        moderator_id, moderator_name = self._executor(payload, "executorUUID", "executor")
        return PunishmentEvent(
            type=PunishmentType.JAIL,
            player_id=player_id,
            player_name=self._require(payload, "name"),
            external_id=jail_external_id(player_id),
            reason=f"Jailed: {jail_name}",
            moderator_id=moderator_id,
            moderator_name=moderator_name,
            duration=self._seconds(duration_ms),
            jail_name=jail_name,
            source=self.name,
        )

    def _parse_unjail(self, payload: Dict[str, Any]) -> Optional[RevokeEvent]:
        if not self.config.track_jails:
            return None

        player_id = self._require(payload, "uuid")
        moderator_id, moderator_name = self._executor(payload, "executorUUID", "executor")
        # No executor means CMI released the player on its own timer
        manual = moderator_id is not None or bool(moderator_name)
        return RevokeEvent(
            external_id=jail_external_id(player_id),
            kind=RevokeKind.MANUAL if manual else RevokeKind.AUTOMATIC,
            reason="Released" if manual else "Sentence served",
            moderator_id=moderator_id,
            moderator_name=moderator_name,
            type=PunishmentType.JAIL,
            source=self.name,
        )


__all__ = ["CMISource", "jail_external_id", "JAIL_ID_PREFIX"]
