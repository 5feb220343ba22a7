"""
Database Punishment Operations Module
=====================================

Insert, update and lookups over the punishments table.
"""

import time
from typing import List, Optional, Tuple, TYPE_CHECKING

from warden.core.logger import logger
from warden.core.constants import MAX_DISPATCH_ATTEMPTS
from warden.core.errors import StorageError
from warden.core.database.models import Punishment, PunishmentType
from warden.utils.time_format import format_datetime

if TYPE_CHECKING:
    from warden.core.database.manager import DatabaseManager


# Column order shared by INSERT and UPDATE
_COLUMNS = (
    "punishment_type", "player_uuid", "player_name", "moderator_uuid",
    "moderator_name", "punishment_id", "reason", "duration", "expires_at",
    "jail_name", "player_thread_id", "player_message_id",
    "moderator_thread_id", "moderator_message_id", "log_channel_id",
    "log_message_id", "active", "revoked_at", "revoke_reason",
    "revoke_moderator_uuid", "revoke_moderator_name", "revoke_kind",
    "created_at", "updated_at",
)


def _values(p: Punishment) -> Tuple:
    return (
        p.type.code, p.player_id, p.player_name, p.moderator_id,
        p.moderator_name, p.external_id, p.reason or "", p.duration, p.expires_at,
        p.jail_name, p.player_thread_id, p.player_message_id,
        p.moderator_thread_id, p.moderator_message_id, p.log_channel_id,
        p.log_message_id, 1 if p.active else 0, p.revoked_at, p.revoke_reason,
        p.revoke_moderator_id, p.revoke_moderator_name,
        p.revoke_kind.code if p.revoke_kind else None,
        p.created_at, p.updated_at,
    )


class PunishmentsMixin:
    """Mixin for punishment row operations."""

    # Writes
    # =========================================================================

    def save(self: "DatabaseManager", punishment: Punishment) -> int:
        """
        Insert a punishment row.

        External-id uniqueness is not enforced here; callers decide
        whether a repeat event merges into an existing row.

        Returns:
            The new row id.

        Raises:
            StorageError: On constraint violation or connectivity loss.
        """
        placeholders = ", ".join("?" for _ in _COLUMNS)
        cursor = self.execute(
            f"INSERT INTO punishments ({', '.join(_COLUMNS)}) VALUES ({placeholders})",
            _values(punishment),
        )
        row_id = cursor.lastrowid

        logger.tree("Punishment Persisted", [
            ("ID", str(row_id)),
            ("Type", punishment.type.code),
            ("Player", punishment.player_name),
            ("External ID", punishment.external_id),
            ("Expires", "Never" if punishment.expires_at is None else format_datetime(punishment.expires_at)),
        ], emoji="💾")
        return row_id

    def update(self: "DatabaseManager", punishment: Punishment) -> None:
        """
        Overwrite every column of an existing row.

        Raises:
            StorageError: If the id is missing or no row has it.
        """
        if punishment.id is None:
            raise StorageError("Cannot update a punishment that was never saved")

        assignments = ", ".join(f"{col} = ?" for col in _COLUMNS)
        cursor = self.execute(
            f"UPDATE punishments SET {assignments} WHERE id = ?",
            _values(punishment) + (punishment.id,),
        )
        if cursor.rowcount == 0:
            raise StorageError(f"Punishment {punishment.id} does not exist")

    # Lookups
    # =========================================================================

    def get_punishment(self: "DatabaseManager", punishment_id: int) -> Optional[Punishment]:
        row = self.fetchone("SELECT * FROM punishments WHERE id = ?", (punishment_id,))
        return Punishment.from_row(row) if row else None

    def find_active_by_external_id(
        self: "DatabaseManager",
        external_id: str,
        type: Optional[PunishmentType] = None,
    ) -> Optional[Punishment]:
        """
        Most recent active row carrying this external id, if any.

        LiteBans numbers bans and mutes independently, so callers that
        know the type pass it to avoid matching the other table's row.
        """
        if type is None:
            row = self.fetchone(
                """SELECT * FROM punishments
                   WHERE punishment_id = ? AND active = 1
                   ORDER BY created_at DESC, id DESC LIMIT 1""",
                (external_id,),
            )
        else:
            row = self.fetchone(
                """SELECT * FROM punishments
                   WHERE punishment_id = ? AND punishment_type = ? AND active = 1
                   ORDER BY created_at DESC, id DESC LIMIT 1""",
                (external_id, type.code),
            )
        return Punishment.from_row(row) if row else None

    def find_expired(self: "DatabaseManager", now: Optional[float] = None, limit: int = 500) -> List[Punishment]:
        """Active temporary rows whose expiry is at or before ``now``."""
        now = time.time() if now is None else now
        rows = self.fetchall(
            """SELECT * FROM punishments
               WHERE active = 1 AND duration IS NOT NULL AND duration > 0
                 AND expires_at IS NOT NULL AND expires_at <= ?
               ORDER BY expires_at ASC LIMIT ?""",
            (now, limit),
        )
        return [Punishment.from_row(r) for r in rows]

    def find_player_active_punishments(self: "DatabaseManager", player_id: str) -> List[Punishment]:
        rows = self.fetchall(
            """SELECT * FROM punishments
               WHERE player_uuid = ? AND active = 1
               ORDER BY created_at DESC""",
            (player_id,),
        )
        return [Punishment.from_row(r) for r in rows]

    def find_undispatched(
        self: "DatabaseManager",
        older_than: float,
        limit: int = 50,
        max_attempts: int = MAX_DISPATCH_ATTEMPTS,
    ) -> List[Punishment]:
        """
        Active rows created before ``older_than`` that never reached the
        log channel. Used by the reconciler to finish partial dispatches.

        Rows swept since ``older_than`` wait for the next grace period, and
        rows that failed ``max_attempts`` sweeps are skipped. Least recently
        attempted rows come first so one bad row cannot hold the batch.
        """
        rows = self.fetchall(
            """SELECT * FROM punishments
               WHERE active = 1 AND log_message_id IS NULL AND created_at <= ?
                 AND dispatch_attempts < ?
                 AND (last_dispatch_at IS NULL OR last_dispatch_at <= ?)
               ORDER BY COALESCE(last_dispatch_at, 0) ASC, created_at ASC LIMIT ?""",
            (older_than, max_attempts, older_than, limit),
        )
        return [Punishment.from_row(r) for r in rows]

    def record_dispatch_attempt(self: "DatabaseManager", punishment_id: int, at: Optional[float] = None) -> int:
        """
        Note a sweep that left the row undispatched.

        Returns:
            The row's attempt count after this one, 0 if the row is gone.
        """
        at = time.time() if at is None else at
        self.execute(
            """UPDATE punishments
               SET dispatch_attempts = dispatch_attempts + 1, last_dispatch_at = ?
               WHERE id = ?""",
            (at, punishment_id),
        )
        row = self.fetchone("SELECT dispatch_attempts FROM punishments WHERE id = ?", (punishment_id,))
        return row["dispatch_attempts"] if row else 0


__all__ = ["PunishmentsMixin"]
