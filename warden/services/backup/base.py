"""
Warden - Database Backup System
===============================

SQLite file snapshots with count-based retention.

Usage:
    from warden.services.backup import create_backup_system

    backup_system = create_backup_system(
        database_path="data/punishment_logs.db",
        backup_dir="data/backups",
        keep=10,
    )
    backup_system["create_backup"]()
    backup_system["cleanup_old_backups"]()

DESIGN:
    Snapshot names embed a sortable timestamp, so "most recent N" is a
    sort by name. Retention runs after every successful snapshot.
"""

import shutil
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from warden.core.logger import logger, NY_TZ
from warden.core.constants import BACKUP_PREFIX


# =============================================================================
# Constants
# =============================================================================

DEFAULT_KEEP = 10
KB_DIVISOR = 1024


# =============================================================================
# Backup Functions Factory
# =============================================================================

def create_backup_system(
    database_path: str,
    backup_dir: str = "data/backups",
    keep: int = DEFAULT_KEEP,
    backup_prefix: str = BACKUP_PREFIX,
) -> Dict[str, Any]:
    """
    Create backup functions bound to one database file.

    Args:
        database_path: Path to the SQLite database file.
        backup_dir: Directory to store snapshots.
        keep: Number of most recent snapshots to retain.
        backup_prefix: Filename prefix for snapshots.

    Returns:
        Dict containing backup functions and configuration.
    """
    db_path = Path(database_path)
    bak_dir = Path(backup_dir)
    keep = max(1, keep)

    def _snapshots() -> List[Path]:
        if not bak_dir.exists():
            return []
        return sorted(bak_dir.glob(f"{backup_prefix}_*.db"), key=lambda p: p.name)

    def create_backup() -> Optional[Path]:
        """Copy the database file into the backup directory."""
        if not db_path.exists():
            logger.warning("Database Backup Skipped", [
                ("Reason", "Database file does not exist"),
                ("Path", str(db_path)),
            ])
            return None

        bak_dir.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now(NY_TZ).strftime("%Y-%m-%d_%H-%M-%S-%f")
        backup_path = bak_dir / f"{backup_prefix}_{timestamp}.db"

        try:
            shutil.copy2(db_path, backup_path)
        except OSError as e:
            logger.error("Database Backup Failed", [
                ("Error", str(e)[:100]),
                ("Path", str(db_path)),
            ])
            return None

        logger.tree("Database Backup Created", [
            ("Backup", backup_path.name),
            ("Size", f"{backup_path.stat().st_size / KB_DIVISOR:.1f} KB"),
            ("Location", str(bak_dir)),
        ], emoji="💾")

        cleanup_old_backups()
        return backup_path

    def cleanup_old_backups() -> int:
        """Delete all but the ``keep`` newest snapshots."""
        snapshots = _snapshots()
        stale = snapshots[:-keep] if len(snapshots) > keep else []
        removed = 0
        for backup_file in stale:
            try:
                backup_file.unlink()
                removed += 1
            except OSError as e:
                logger.warning("Backup Removal Failed", [
                    ("File", backup_file.name),
                    ("Error", str(e)[:50]),
                ])

        if removed:
            logger.info("Old Backups Cleaned Up", [
                ("Removed", str(removed)),
                ("Kept", str(keep)),
            ])
        return removed

    def list_backups() -> List[Dict]:
        """Snapshots newest first, with size and mtime."""
        backups = []
        for backup_file in reversed(_snapshots()):
            try:
                stat = backup_file.stat()
            except OSError:
                continue
            backups.append({
                "path": backup_file,
                "name": backup_file.name,
                "size_kb": stat.st_size / KB_DIVISOR,
                "created": datetime.fromtimestamp(stat.st_mtime, tz=NY_TZ),
            })
        return backups

    def get_latest_backup() -> Optional[Path]:
        snapshots = _snapshots()
        return snapshots[-1] if snapshots else None

    return {
        "create_backup": create_backup,
        "cleanup_old_backups": cleanup_old_backups,
        "list_backups": list_backups,
        "get_latest_backup": get_latest_backup,
        "database_path": db_path,
        "backup_dir": bak_dir,
        "backup_prefix": backup_prefix,
        "keep": keep,
    }


__all__ = ["create_backup_system", "DEFAULT_KEEP"]
