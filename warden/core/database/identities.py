"""
Database Identity Operations Module
===================================

Player and moderator rows: upserts, lookups and thread bookkeeping.
"""

import time
from typing import Optional, TYPE_CHECKING

from warden.core.database.models import PlayerRecord, ModeratorRecord

if TYPE_CHECKING:
    from warden.core.database.manager import DatabaseManager


class IdentitiesMixin:
    """Mixin for player and moderator rows."""

    # Players
    # =========================================================================

    def upsert_player(self: "DatabaseManager", record: PlayerRecord) -> None:
        """
        Insert or replace a player row by UUID.

        DESIGN: A None thread or summary id never clears a stored one;
        those are only changed through the explicit setters.
        """
        now = time.time()
        self.execute(
            """INSERT INTO players
               (player_uuid, player_name, discord_thread_id, summary_message_id,
                total_punishments, active_punishments, last_punishment_at,
                created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
               ON CONFLICT(player_uuid) DO UPDATE SET
                   player_name = excluded.player_name,
                   discord_thread_id = COALESCE(excluded.discord_thread_id, players.discord_thread_id),
                   summary_message_id = COALESCE(excluded.summary_message_id, players.summary_message_id),
                   total_punishments = excluded.total_punishments,
                   active_punishments = excluded.active_punishments,
                   last_punishment_at = COALESCE(excluded.last_punishment_at, players.last_punishment_at),
                   updated_at = excluded.updated_at""",
            (
                record.player_id, record.player_name, record.discord_thread_id,
                record.summary_message_id, record.total_punishments,
                record.active_punishments, record.last_activity_at,
                record.created_at or now, now,
            ),
        )

    def get_player(self: "DatabaseManager", player_id: str) -> Optional[PlayerRecord]:
        row = self.fetchone("SELECT * FROM players WHERE player_uuid = ?", (player_id,))
        return PlayerRecord.from_row(row) if row else None

    def get_player_by_name(self: "DatabaseManager", player_name: str) -> Optional[PlayerRecord]:
        """Case-insensitive lookup by last-seen name."""
        row = self.fetchone(
            """SELECT * FROM players WHERE player_name = ? COLLATE NOCASE
               ORDER BY updated_at DESC LIMIT 1""",
            (player_name,),
        )
        return PlayerRecord.from_row(row) if row else None

    def set_player_thread(self: "DatabaseManager", player_id: str, player_name: str, thread_id: int) -> None:
        """Record the forum thread for a player, creating the row if needed."""
        now = time.time()
        self.execute(
            """INSERT INTO players (player_uuid, player_name, discord_thread_id, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?)
               ON CONFLICT(player_uuid) DO UPDATE SET
                   discord_thread_id = excluded.discord_thread_id,
                   updated_at = excluded.updated_at""",
            (player_id, player_name, thread_id, now, now),
        )

    def set_player_summary(self: "DatabaseManager", player_id: str, message_id: Optional[int]) -> None:
        self.execute(
            "UPDATE players SET summary_message_id = ?, updated_at = ? WHERE player_uuid = ?",
            (message_id, time.time(), player_id),
        )

    # Moderators
    # =========================================================================

    def upsert_moderator(self: "DatabaseManager", record: ModeratorRecord) -> None:
        """Insert or replace a moderator row by UUID."""
        now = time.time()
        self.execute(
            """INSERT INTO moderators
               (moderator_uuid, moderator_name, discord_id, discord_thread_id,
                summary_message_id, total_issued, active_issued, last_action_at,
                created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
               ON CONFLICT(moderator_uuid) DO UPDATE SET
                   moderator_name = excluded.moderator_name,
                   discord_id = COALESCE(excluded.discord_id, moderators.discord_id),
                   discord_thread_id = COALESCE(excluded.discord_thread_id, moderators.discord_thread_id),
                   summary_message_id = COALESCE(excluded.summary_message_id, moderators.summary_message_id),
                   total_issued = excluded.total_issued,
                   active_issued = excluded.active_issued,
                   last_action_at = COALESCE(excluded.last_action_at, moderators.last_action_at),
                   updated_at = excluded.updated_at""",
            (
                record.moderator_id, record.moderator_name, record.discord_id,
                record.discord_thread_id, record.summary_message_id,
                record.total_issued, record.active_issued, record.last_activity_at,
                record.created_at or now, now,
            ),
        )

    def get_moderator(self: "DatabaseManager", moderator_id: str) -> Optional[ModeratorRecord]:
        row = self.fetchone("SELECT * FROM moderators WHERE moderator_uuid = ?", (moderator_id,))
        return ModeratorRecord.from_row(row) if row else None

    def get_moderator_by_name(self: "DatabaseManager", moderator_name: str) -> Optional[ModeratorRecord]:
        row = self.fetchone(
            """SELECT * FROM moderators WHERE moderator_name = ? COLLATE NOCASE
               ORDER BY updated_at DESC LIMIT 1""",
            (moderator_name,),
        )
        return ModeratorRecord.from_row(row) if row else None

    def get_moderator_by_thread_id(self: "DatabaseManager", thread_id: int) -> Optional[ModeratorRecord]:
        row = self.fetchone("SELECT * FROM moderators WHERE discord_thread_id = ?", (thread_id,))
        return ModeratorRecord.from_row(row) if row else None

    def set_moderator_thread(
        self: "DatabaseManager",
        moderator_id: str,
        moderator_name: str,
        thread_id: int,
    ) -> None:
        now = time.time()
        self.execute(
            """INSERT INTO moderators (moderator_uuid, moderator_name, discord_thread_id, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?)
               ON CONFLICT(moderator_uuid) DO UPDATE SET
                   discord_thread_id = excluded.discord_thread_id,
                   updated_at = excluded.updated_at""",
            (moderator_id, moderator_name, thread_id, now, now),
        )

    def set_moderator_summary(self: "DatabaseManager", moderator_id: str, message_id: Optional[int]) -> None:
        self.execute(
            "UPDATE moderators SET summary_message_id = ?, updated_at = ? WHERE moderator_uuid = ?",
            (message_id, time.time(), moderator_id),
        )

    def set_moderator_discord_id(self: "DatabaseManager", moderator_id: str, discord_id: Optional[int]) -> bool:
        """
        Link a moderator to a Discord account.

        Returns:
            False if no such moderator row exists.
        """
        cursor = self.execute(
            "UPDATE moderators SET discord_id = ?, updated_at = ? WHERE moderator_uuid = ?",
            (discord_id, time.time(), moderator_id),
        )
        return cursor.rowcount > 0


__all__ = ["IdentitiesMixin"]
