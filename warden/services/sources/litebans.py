"""
Warden - LiteBans Event Source
==============================

Payload shape (one JSON object per event):

    {
        "event": "ban" | "mute" | "kick" | "unban" | "unmute",
        "id": 101,
        "uuid": "<player uuid>",
        "name": "<player name>",
        "executorUUID": "<moderator uuid or CONSOLE>",
        "executor": "<moderator name>",
        "reason": "...",
        "duration": 3600000
    }

``duration`` is in milliseconds; 0 or missing means permanent.
LiteBans numbers bans and mutes independently, so revokes carry the
punishment type to keep ban #5 and mute #5 apart.
"""

from typing import Any, Dict, Optional

from warden.core.errors import InvalidEventError
from warden.core.database.models import PunishmentType, RevokeKind
from warden.services.punishments.events import PunishmentEvent, RevokeEvent
from warden.services.sources.base import EventSource, ParsedEvent


_ISSUE_EVENTS = {
    "ban": PunishmentType.BAN,
    "mute": PunishmentType.MUTE,
    "kick": PunishmentType.KICK,
}

_REVOKE_EVENTS = {
    "unban": PunishmentType.BAN,
    "unmute": PunishmentType.MUTE,
}


class LiteBansSource(EventSource):
    """Bans, mutes and kicks from the LiteBans plugin."""

    name = "litebans"

    def enabled(self, config=None) -> bool:
        config = config or self.config
        return config.track_bans or config.track_mutes or config.track_kicks

    def _tracked(self, type: PunishmentType) -> bool:
        return {
            PunishmentType.BAN: self.config.track_bans,
            PunishmentType.MUTE: self.config.track_mutes,
            PunishmentType.KICK: self.config.track_kicks,
        }.get(type, False)

    def parse(self, payload: Dict[str, Any]) -> ParsedEvent:
        event = self._event_name(payload)
        if event in _ISSUE_EVENTS:
            return self._parse_issue(_ISSUE_EVENTS[event], payload)
        if event in _REVOKE_EVENTS:
            return self._parse_revoke(_REVOKE_EVENTS[event], payload)
        raise InvalidEventError(f"Unknown LiteBans event: {event}")

    def _parse_issue(self, type: PunishmentType, payload: Dict[str, Any]) -> Optional[PunishmentEvent]:
        if not self._tracked(type):
            return None

        duration_ms = self._duration_ms(payload, "duration") if type.can_be_temporary else 0
        if self._below_minimum(duration_ms, self.config.min_temp_duration):
            return None

        moderator_id, moderator_name = self._executor(payload, "executorUUID", "executor")
        return PunishmentEvent(
            type=type,
            player_id=self._require(payload, "uuid"),
            player_name=self._require(payload, "name"),
            external_id=self._require(payload, "id"),
            reason=str(payload.get("reason") or ""),
            moderator_id=moderator_id,
            moderator_name=moderator_name,
            duration=self._seconds(duration_ms),
            source=self.name,
        )

    def _parse_revoke(self, type: PunishmentType, payload: Dict[str, Any]) -> Optional[RevokeEvent]:
        if not self._tracked(type):
            return None

        reason = payload.get("reason") or None
        moderator_id, moderator_name = self._executor(payload, "executorUUID", "executor")
        return RevokeEvent(
            external_id=self._require(payload, "id"),
            kind=RevokeKind.from_reason(reason),
            reason=reason,
            moderator_id=moderator_id,
            moderator_name=moderator_name,
            type=type,
            source=self.name,
        )


__all__ = ["LiteBansSource"]
