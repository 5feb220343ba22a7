"""
Database Schema Module
======================

Table definitions and additive migrations.
"""

import sqlite3
from typing import TYPE_CHECKING, List, Tuple

from warden.core.logger import logger

if TYPE_CHECKING:
    from warden.core.database.manager import DatabaseManager


# =============================================================================
# Migrations
# =============================================================================

# (table, column definition). Applied on every startup; re-adding an existing
# column raises "duplicate column name", which is ignored.
MIGRATIONS: List[Tuple[str, str]] = [
    ("punishments", "jail_name TEXT"),
    ("punishments", "log_channel_id INTEGER"),
    ("punishments", "log_message_id INTEGER"),
    ("punishments", "revoke_kind TEXT"),
    ("players", "summary_message_id INTEGER"),
    ("moderators", "summary_message_id INTEGER"),
    ("moderators", "discord_id INTEGER"),
    ("punishments", "dispatch_attempts INTEGER NOT NULL DEFAULT 0"),
    ("punishments", "last_dispatch_at REAL"),
]


class SchemaMixin:
    """Mixin for database schema initialization."""

    def _init_tables(self: "DatabaseManager") -> None:
        """
        Create tables and indexes, then apply additive migrations.

        DESIGN: Tables are created if not exist, allowing safe restarts.
        """
        conn = self._ensure_connection()
        cursor = conn.cursor()

        # -----------------------------------------------------------------
        # Punishments Table
        # DESIGN: Audit trail; rows are deactivated, never deleted
        # -----------------------------------------------------------------
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS punishments (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                punishment_type TEXT NOT NULL,
                player_uuid TEXT NOT NULL,
                player_name TEXT NOT NULL,
                moderator_uuid TEXT,
                moderator_name TEXT,
                punishment_id TEXT NOT NULL,
                reason TEXT NOT NULL DEFAULT '',
                duration INTEGER,
                expires_at REAL,
                player_thread_id INTEGER,
                player_message_id INTEGER,
                moderator_thread_id INTEGER,
                moderator_message_id INTEGER,
                active INTEGER NOT NULL DEFAULT 1,
                revoked_at REAL,
                revoke_reason TEXT,
                revoke_moderator_uuid TEXT,
                revoke_moderator_name TEXT,
                created_at REAL NOT NULL,
                updated_at REAL NOT NULL
            )
        """)

        # -----------------------------------------------------------------
        # Players Table
        # DESIGN: Counters are a projection of the punishments table
        # -----------------------------------------------------------------
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS players (
                player_uuid TEXT PRIMARY KEY,
                player_name TEXT NOT NULL,
                discord_thread_id INTEGER,
                total_punishments INTEGER NOT NULL DEFAULT 0,
                active_punishments INTEGER NOT NULL DEFAULT 0,
                last_punishment_at REAL,
                created_at REAL NOT NULL,
                updated_at REAL NOT NULL
            )
        """)

        # -----------------------------------------------------------------
        # Moderators Table
        # -----------------------------------------------------------------
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS moderators (
                moderator_uuid TEXT PRIMARY KEY,
                moderator_name TEXT NOT NULL,
                discord_thread_id INTEGER,
                total_issued INTEGER NOT NULL DEFAULT 0,
                active_issued INTEGER NOT NULL DEFAULT 0,
                last_action_at REAL,
                created_at REAL NOT NULL,
                updated_at REAL NOT NULL
            )
        """)

        # -----------------------------------------------------------------
        # Indexes
        # -----------------------------------------------------------------
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_punishments_external ON punishments(punishment_id, active)"
        )
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_punishments_player ON punishments(player_uuid, active)"
        )
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_punishments_moderator ON punishments(moderator_uuid)"
        )
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_punishments_expiry ON punishments(active, expires_at)"
        )
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_players_name ON players(player_name COLLATE NOCASE)"
        )
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_moderators_thread ON moderators(discord_thread_id)"
        )

        applied = self._apply_migrations(cursor)
        conn.commit()

        if applied:
            logger.tree("Database Migrations Applied", [
                ("Columns", str(applied)),
            ], emoji="🧱")

    def _apply_migrations(self: "DatabaseManager", cursor: sqlite3.Cursor) -> int:
        """Add missing columns. Returns how many were actually added."""
        applied = 0
        for table, column in MIGRATIONS:
            try:
                cursor.execute(f"ALTER TABLE {table} ADD COLUMN {column}")
                applied += 1
            except sqlite3.OperationalError as e:
                if "duplicate column" not in str(e).lower():
                    raise
        return applied


__all__ = ["SchemaMixin", "MIGRATIONS"]
