"""
Database Statistics Module
==========================

Aggregate counts, always computed from the punishments table.
"""

import os
from typing import Dict, TYPE_CHECKING

from warden.core.database.models import IdentityCounts, PunishmentType, StoreStats

if TYPE_CHECKING:
    from warden.core.database.manager import DatabaseManager


class StatsMixin:
    """Mixin for aggregate queries."""

    # Per-Identity Counts
    # =========================================================================

    def count_player_punishments(self: "DatabaseManager", player_id: str) -> IdentityCounts:
        row = self.fetchone(
            """SELECT COUNT(*) AS total, COALESCE(SUM(active), 0) AS active
               FROM punishments WHERE player_uuid = ?""",
            (player_id,),
        )
        return {"total": row["total"], "active": row["active"]}

    def count_moderator_punishments(self: "DatabaseManager", moderator_id: str) -> IdentityCounts:
        row = self.fetchone(
            """SELECT COUNT(*) AS total, COALESCE(SUM(active), 0) AS active
               FROM punishments WHERE moderator_uuid = ?""",
            (moderator_id,),
        )
        return {"total": row["total"], "active": row["active"]}

    # Per-Type Counts
    # =========================================================================

    def _type_counts(self: "DatabaseManager", column: str, identity: str, active_only: bool) -> Dict[PunishmentType, int]:
        query = f"""SELECT punishment_type, COUNT(*) AS count FROM punishments
                    WHERE {column} = ?{' AND active = 1' if active_only else ''}
                    GROUP BY punishment_type"""
        counts = {t: 0 for t in PunishmentType}
        for row in self.fetchall(query, (identity,)):
            try:
                counts[PunishmentType.from_code(row["punishment_type"])] = row["count"]
            except ValueError:
                continue  # Unknown type written by a newer version
        return counts

    def count_player_by_type(
        self: "DatabaseManager",
        player_id: str,
        active_only: bool = False,
    ) -> Dict[PunishmentType, int]:
        return self._type_counts("player_uuid", player_id, active_only)

    def count_moderator_by_type(self: "DatabaseManager", moderator_id: str) -> Dict[PunishmentType, int]:
        return self._type_counts("moderator_uuid", moderator_id, False)

    # Store Overview
    # =========================================================================

    def get_stats(self: "DatabaseManager") -> StoreStats:
        """Row counts and file size for the admin stats command."""
        row = self.fetchone(
            """SELECT
                   (SELECT COUNT(*) FROM punishments) AS punishments,
                   (SELECT COUNT(*) FROM punishments WHERE active = 1) AS active_punishments,
                   (SELECT COUNT(*) FROM players) AS players,
                   (SELECT COUNT(*) FROM moderators) AS moderators"""
        )
        size_kb = 0.0
        if os.path.exists(self.db_path):
            size_kb = round(os.path.getsize(self.db_path) / 1024, 1)
        return {
            "path": str(self.db_path),
            "size_kb": size_kb,
            "punishments": row["punishments"],
            "active_punishments": row["active_punishments"],
            "players": row["players"],
            "moderators": row["moderators"],
            "available": True,
        }


__all__ = ["StatsMixin"]
