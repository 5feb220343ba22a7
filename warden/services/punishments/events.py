"""
Warden - Inbound Events
=======================

Normalized punishment and revoke events produced by event sources.
"""

import uuid
from dataclasses import dataclass
from typing import Optional

from warden.core.errors import InvalidEventError
from warden.core.database.models import Punishment, PunishmentType, RevokeKind


def is_uuid(value: Optional[str]) -> bool:
    if not value:
        return False
    try:
        uuid.UUID(str(value))
    except ValueError:
        return False
    return True


@dataclass(frozen=True)
class PunishmentEvent:
    """A punishment was issued in game."""

    type: PunishmentType
    player_id: str
    player_name: str
    external_id: str
    reason: str = ""
    moderator_id: Optional[str] = None
    moderator_name: Optional[str] = None
    duration: Optional[int] = None
    jail_name: Optional[str] = None
    source: str = "unknown"

    def validate(self) -> None:
        """
        Raises:
            InvalidEventError: Bad player UUID, bad moderator UUID, or a
                missing external id or player name.
        """
        if not is_uuid(self.player_id):
            raise InvalidEventError(f"Invalid player UUID: {self.player_id!r}")
        if self.moderator_id is not None and not is_uuid(self.moderator_id):
            raise InvalidEventError(f"Invalid moderator UUID: {self.moderator_id!r}")
        if not self.external_id:
            raise InvalidEventError("Missing external id")
        if not self.player_name:
            raise InvalidEventError("Missing player name")

    def to_punishment(self, now: Optional[float] = None) -> Punishment:
        # Kicks are instantaneous; a stray duration is ignored
        duration = self.duration if self.type.can_be_temporary else None
        return Punishment.new(
            type=self.type,
            player_id=str(uuid.UUID(self.player_id)),
            player_name=self.player_name,
            external_id=self.external_id,
            reason=self.reason or "",
            moderator_id=str(uuid.UUID(self.moderator_id)) if self.moderator_id else None,
            moderator_name=self.moderator_name,
            duration=duration,
            jail_name=self.jail_name,
            now=now,
        )

    @property
    def label(self) -> str:
        return f"{self.type.code}:{self.external_id}"


@dataclass(frozen=True)
class RevokeEvent:
    """A punishment was lifted, by a moderator, a plugin policy or expiry."""

    external_id: str
    kind: RevokeKind = RevokeKind.MANUAL
    reason: Optional[str] = None
    moderator_id: Optional[str] = None
    moderator_name: Optional[str] = None
    type: Optional[PunishmentType] = None
    source: str = "unknown"

    def validate(self) -> None:
        if not self.external_id:
            raise InvalidEventError("Missing external id")
        if self.moderator_id is not None and not is_uuid(self.moderator_id):
            raise InvalidEventError(f"Invalid moderator UUID: {self.moderator_id!r}")

    @property
    def label(self) -> str:
        prefix = self.type.code if self.type else "any"
        return f"revoke:{prefix}:{self.external_id}"


__all__ = ["PunishmentEvent", "RevokeEvent", "is_uuid"]
