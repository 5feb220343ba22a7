"""
Warden - Database Models
========================

Immutable records for punishments, players and moderators, plus the
TypedDicts returned by aggregate queries.

DESIGN:
    Punishment is a frozen dataclass. Workflow steps never mutate a
    snapshot; they derive a new one with dataclasses.replace() and
    persist that, so concurrent workflows never share mutable state.
    Every "not yet known" value is None, never 0.
"""

import time
import sqlite3
from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, Optional, TypedDict


# =============================================================================
# Enums
# =============================================================================

class PunishmentType(Enum):
    """Kind of moderation action, with display metadata."""

    BAN = ("ban", "🚫", "Ban")
    MUTE = ("mute", "🔇", "Mute")
    KICK = ("kick", "👢", "Kick")
    JAIL = ("jail", "🏢", "Jail")

    def __init__(self, code: str, emoji: str, display_name: str) -> None:
        self.code = code
        self.emoji = emoji
        self.display_name = display_name

    @classmethod
    def from_code(cls, code: str) -> "PunishmentType":
        """
        Look up a type by its code, case-insensitively.

        Raises:
            ValueError: If the code is unknown.
        """
        for member in cls:
            if member.code == (code or "").strip().lower():
                return member
        raise ValueError(f"Unknown punishment type: {code}")

    @property
    def can_be_temporary(self) -> bool:
        return self is not PunishmentType.KICK

    @property
    def can_be_revoked(self) -> bool:
        return self is not PunishmentType.KICK


class RevokeKind(Enum):
    """How a punishment ended."""

    MANUAL = ("manual", "👮", "Manual")
    AUTOMATIC = ("automatic", "⏰", "Automatic")
    EXPIRED = ("expired", "⌛", "Expired")

    def __init__(self, code: str, emoji: str, display_name: str) -> None:
        self.code = code
        self.emoji = emoji
        self.display_name = display_name

    @classmethod
    def from_code(cls, code: Optional[str]) -> "RevokeKind":
        """Look up a kind by code; unknown or empty codes are manual."""
        for member in cls:
            if member.code == (code or "").strip().lower():
                return member
        return cls.MANUAL

    @classmethod
    def from_reason(cls, reason: Optional[str]) -> "RevokeKind":
        """
        Infer the kind from a free-text unban reason.

        An empty reason or one mentioning expiry means the punishment ran
        out; a reason mentioning "automatic" came from a plugin policy.
        """
        if not reason or not reason.strip():
            return cls.EXPIRED
        lowered = reason.lower()
        if "expired" in lowered or "истек" in lowered:
            return cls.EXPIRED
        if "automatic" in lowered or "автоматически" in lowered:
            return cls.AUTOMATIC
        return cls.MANUAL


# =============================================================================
# Punishment Snapshot
# =============================================================================

@dataclass(frozen=True)
class Punishment:
    """One moderation action as stored in the punishments table."""

    type: PunishmentType
    player_id: str
    player_name: str
    external_id: str
    reason: str
    created_at: float
    updated_at: float
    moderator_id: Optional[str] = None
    moderator_name: Optional[str] = None
    duration: Optional[int] = None
    expires_at: Optional[float] = None
    jail_name: Optional[str] = None
    id: Optional[int] = None

    player_thread_id: Optional[int] = None
    player_message_id: Optional[int] = None
    moderator_thread_id: Optional[int] = None
    moderator_message_id: Optional[int] = None
    log_channel_id: Optional[int] = None
    log_message_id: Optional[int] = None

    active: bool = True
    revoked_at: Optional[float] = None
    revoke_reason: Optional[str] = None
    revoke_moderator_id: Optional[str] = None
    revoke_moderator_name: Optional[str] = None
    revoke_kind: Optional[RevokeKind] = None

    # -------------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------------

    @classmethod
    def new(
        cls,
        type: PunishmentType,
        player_id: str,
        player_name: str,
        external_id: str,
        reason: str,
        moderator_id: Optional[str] = None,
        moderator_name: Optional[str] = None,
        duration: Optional[int] = None,
        jail_name: Optional[str] = None,
        now: Optional[float] = None,
    ) -> "Punishment":
        """
        Build a fresh active punishment.

        A duration of None or <= 0 is stored as None (permanent) and
        yields no expiry.
        """
        created_at = time.time() if now is None else now
        if duration is not None and duration <= 0:
            duration = None
        return cls(
            type=type,
            player_id=player_id,
            player_name=player_name,
            external_id=external_id,
            reason=reason,
            moderator_id=moderator_id,
            moderator_name=moderator_name,
            duration=duration,
            expires_at=created_at + duration if duration else None,
            jail_name=jail_name,
            created_at=created_at,
            updated_at=created_at,
        )

    # -------------------------------------------------------------------------
    # Derived State
    # -------------------------------------------------------------------------

    @property
    def is_permanent(self) -> bool:
        return self.duration is None or self.duration <= 0

    @property
    def is_temporary(self) -> bool:
        return not self.is_permanent

    def is_expired(self, now: Optional[float] = None) -> bool:
        """True when a temporary punishment's expiry lies in the past."""
        if self.is_permanent or self.expires_at is None:
            return False
        return (time.time() if now is None else now) > self.expires_at

    @property
    def is_system_issued(self) -> bool:
        return self.moderator_id is None

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def with_saved_id(self, punishment_id: int) -> "Punishment":
        return replace(self, id=punishment_id)

    def with_messages(
        self,
        player_thread_id: Optional[int] = None,
        player_message_id: Optional[int] = None,
        moderator_thread_id: Optional[int] = None,
        moderator_message_id: Optional[int] = None,
        log_channel_id: Optional[int] = None,
        log_message_id: Optional[int] = None,
        now: Optional[float] = None,
    ) -> "Punishment":
        """
        Attach remote identifiers; arguments left as None keep current values.
        """
        return replace(
            self,
            player_thread_id=player_thread_id or self.player_thread_id,
            player_message_id=player_message_id or self.player_message_id,
            moderator_thread_id=moderator_thread_id or self.moderator_thread_id,
            moderator_message_id=moderator_message_id or self.moderator_message_id,
            log_channel_id=log_channel_id or self.log_channel_id,
            log_message_id=log_message_id or self.log_message_id,
            updated_at=time.time() if now is None else now,
        )

    def revoked(
        self,
        kind: RevokeKind,
        reason: Optional[str],
        moderator_id: Optional[str],
        moderator_name: Optional[str],
        now: Optional[float] = None,
    ) -> "Punishment":
        """Return the inactive snapshot with every revoke field populated."""
        revoked_at = time.time() if now is None else now
        return replace(
            self,
            active=False,
            revoked_at=revoked_at,
            revoke_reason=reason or kind.display_name,
            revoke_moderator_id=moderator_id,
            revoke_moderator_name=moderator_name or "",
            revoke_kind=kind,
            updated_at=revoked_at,
        )

    def merged_with(self, newer: "Punishment", now: Optional[float] = None) -> "Punishment":
        """
        Fold a repeated event for the same external id into this row.

        Keeps identity, remote ids and created_at; takes the newer
        names, reason and duration, recomputing the expiry from the
        original creation time.
        """
        duration = newer.duration
        return replace(
            self,
            player_name=newer.player_name,
            moderator_id=newer.moderator_id,
            moderator_name=newer.moderator_name,
            reason=newer.reason,
            duration=duration,
            expires_at=self.created_at + duration if duration else None,
            jail_name=newer.jail_name or self.jail_name,
            updated_at=time.time() if now is None else now,
        )

    # -------------------------------------------------------------------------
    # Row Mapping
    # -------------------------------------------------------------------------

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Punishment":
        """Build a snapshot from a punishments table row."""
        return cls(
            id=row["id"],
            type=PunishmentType.from_code(row["punishment_type"]),
            player_id=row["player_uuid"],
            player_name=row["player_name"],
            moderator_id=row["moderator_uuid"],
            moderator_name=row["moderator_name"],
            external_id=row["punishment_id"],
            reason=row["reason"],
            duration=row["duration"],
            expires_at=row["expires_at"],
            jail_name=row["jail_name"],
            player_thread_id=row["player_thread_id"],
            player_message_id=row["player_message_id"],
            moderator_thread_id=row["moderator_thread_id"],
            moderator_message_id=row["moderator_message_id"],
            log_channel_id=row["log_channel_id"],
            log_message_id=row["log_message_id"],
            active=bool(row["active"]),
            revoked_at=row["revoked_at"],
            revoke_reason=row["revoke_reason"],
            revoke_moderator_id=row["revoke_moderator_uuid"],
            revoke_moderator_name=row["revoke_moderator_name"],
            revoke_kind=RevokeKind.from_code(row["revoke_kind"]) if row["revoke_kind"] else None,
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


# =============================================================================
# Identity Records
# =============================================================================

@dataclass(frozen=True)
class PlayerRecord:
    """One row per punished player."""

    player_id: str
    player_name: str
    discord_thread_id: Optional[int] = None
    summary_message_id: Optional[int] = None
    total_punishments: int = 0
    active_punishments: int = 0
    last_activity_at: Optional[float] = None
    created_at: Optional[float] = None
    updated_at: Optional[float] = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "PlayerRecord":
        return cls(
            player_id=row["player_uuid"],
            player_name=row["player_name"],
            discord_thread_id=row["discord_thread_id"],
            summary_message_id=row["summary_message_id"],
            total_punishments=row["total_punishments"],
            active_punishments=row["active_punishments"],
            last_activity_at=row["last_punishment_at"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


@dataclass(frozen=True)
class ModeratorRecord:
    """One row per moderator who issued at least one punishment."""

    moderator_id: str
    moderator_name: str
    discord_id: Optional[int] = None
    discord_thread_id: Optional[int] = None
    summary_message_id: Optional[int] = None
    total_issued: int = 0
    active_issued: int = 0
    last_activity_at: Optional[float] = None
    created_at: Optional[float] = None
    updated_at: Optional[float] = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "ModeratorRecord":
        return cls(
            moderator_id=row["moderator_uuid"],
            moderator_name=row["moderator_name"],
            discord_id=row["discord_id"],
            discord_thread_id=row["discord_thread_id"],
            summary_message_id=row["summary_message_id"],
            total_issued=row["total_issued"],
            active_issued=row["active_issued"],
            last_activity_at=row["last_action_at"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


# =============================================================================
# Aggregate Query Results
# =============================================================================

class IdentityCounts(TypedDict):
    """Totals recomputed from the punishments table."""
    total: int
    active: int


class TypeCounts(TypedDict, total=False):
    """Per-type counts keyed by PunishmentType."""
    by_type: Dict[PunishmentType, int]


class StoreStats(TypedDict, total=False):
    """Row counts and file details reported by /warden stats."""
    path: str
    size_kb: float
    punishments: int
    active_punishments: int
    players: int
    moderators: int
    available: bool


__all__ = [
    "PunishmentType",
    "RevokeKind",
    "Punishment",
    "PlayerRecord",
    "ModeratorRecord",
    "IdentityCounts",
    "TypeCounts",
    "StoreStats",
]
