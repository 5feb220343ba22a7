"""
Warden - Database Manager
=========================

SQLite store for punishments, players and moderators.
"""

import sqlite3
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from warden.core.logger import logger
from warden.core.errors import StorageError
from warden.core.constants import DB_CONNECTION_TIMEOUT, SQLITE_BUSY_TIMEOUT

from warden.core.database.schema import SchemaMixin
from warden.core.database.punishments import PunishmentsMixin
from warden.core.database.identities import IdentitiesMixin
from warden.core.database.stats import StatsMixin


# =============================================================================
# Database Manager
# =============================================================================

class DatabaseManager(
    SchemaMixin,
    PunishmentsMixin,
    IdentitiesMixin,
    StatsMixin,
):
    """
    Thread-safe SQLite store.

    DESIGN: One instance per process, constructed by the bot and passed to
    every component that needs it. WAL mode lets readers proceed while a
    write is in flight. Methods are synchronous; async callers go through
    asyncio.to_thread so the event loop never blocks on disk.
    """

    def __init__(self, db_path: str) -> None:
        self.db_path = Path(db_path)
        self._db_lock: threading.Lock = threading.Lock()
        self._conn: Optional[sqlite3.Connection] = None

        if str(self.db_path) != ":memory:":
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            self._connect()
            self._init_tables()
        except sqlite3.Error as e:
            raise StorageError(f"Database initialization failed: {e}") from e

        logger.tree("Database Manager Initialized", [
            ("Path", str(self.db_path)),
            ("WAL Mode", "Enabled"),
        ], emoji="🗄️")

    # =========================================================================
    # Connection Management
    # =========================================================================

    def _connect(self) -> None:
        """Establish database connection with WAL mode."""
        try:
            self._conn = sqlite3.connect(
                str(self.db_path),
                check_same_thread=False,
                timeout=DB_CONNECTION_TIMEOUT,
            )
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA synchronous=NORMAL")
            self._conn.execute("PRAGMA temp_store=MEMORY")
            self._conn.execute(f"PRAGMA busy_timeout={SQLITE_BUSY_TIMEOUT}")
            self._conn.row_factory = sqlite3.Row
        except sqlite3.Error as e:
            logger.error("Database Connection Failed", [("Error", str(e)[:100])])
            raise

    def _ensure_connection(self) -> sqlite3.Connection:
        """Ensure connection is valid, reconnect once if the probe fails."""
        if self._conn is None:
            self._connect()
        try:
            self._conn.execute("SELECT 1")
        except sqlite3.Error:
            logger.warning("Database Probe Failed", [("Action", "Reconnecting")])
            self._connect()
        return self._conn

    def is_available(self) -> bool:
        """Liveness probe."""
        try:
            with self._db_lock:
                self._ensure_connection().execute("SELECT 1")
            return True
        except sqlite3.Error:
            return False

    def execute(
        self,
        query: str,
        params: Tuple = (),
        commit: bool = True,
    ) -> sqlite3.Cursor:
        """
        Execute a query with thread safety.

        Raises:
            StorageError: Wrapping any sqlite3 error.
        """
        with self._db_lock:
            try:
                conn = self._ensure_connection()
                cursor = conn.cursor()
                cursor.execute(query, params)
                if commit:
                    conn.commit()
                return cursor
            except sqlite3.Error as e:
                raise StorageError(str(e)) from e

    def fetchone(self, query: str, params: Tuple = ()) -> Optional[sqlite3.Row]:
        """Execute query and fetch one result."""
        cursor = self.execute(query, params, commit=False)
        return cursor.fetchone()

    def fetchall(self, query: str, params: Tuple = ()) -> List[sqlite3.Row]:
        """Execute query and fetch all results."""
        cursor = self.execute(query, params, commit=False)
        return cursor.fetchall()

    def close(self) -> None:
        """Close database connection."""
        with self._db_lock:
            if self._conn:
                self._conn.close()
                self._conn = None
                logger.info("Database Connection Closed")

    # =========================================================================
    # Backup
    # =========================================================================

    def backup(self, backup_dir: str, keep: int = 10) -> Optional[Path]:
        """
        Snapshot the database file, keeping the ``keep`` most recent copies.

        The WAL is checkpointed first so the copied file is complete.
        """
        from warden.services.backup.base import create_backup_system

        with self._db_lock:
            try:
                self._ensure_connection().execute("PRAGMA wal_checkpoint(TRUNCATE)")
            except sqlite3.Error as e:
                logger.warning("WAL Checkpoint Failed", [("Error", str(e)[:100])])

            system = create_backup_system(
                database_path=str(self.db_path),
                backup_dir=backup_dir,
                keep=keep,
            )
            return system["create_backup"]()

    def describe(self) -> Dict[str, Any]:
        """Store stats with availability folded in; never raises."""
        try:
            return dict(self.get_stats())
        except StorageError as e:
            return {"path": str(self.db_path), "available": False, "error": str(e)[:100]}


__all__ = ["DatabaseManager"]
