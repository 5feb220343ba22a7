"""
Warden - Backup Tests
=====================

Tests for database snapshots and retention.
"""

import asyncio
import sqlite3

import pytest

from warden.services.backup import BackupScheduler, create_backup_system


class TestBackupSystem:
    """Tests for create_backup_system()."""

    def test_missing_database_is_skipped(self, tmp_path):
        """Test no snapshot is made for a file that does not exist."""
        system = create_backup_system(str(tmp_path / "missing.db"), str(tmp_path / "bak"))
        assert system["create_backup"]() is None
        assert system["list_backups"]() == []

    def test_retention_keeps_newest(self, tmp_path):
        """Test only the newest ``keep`` snapshots survive."""
        db = tmp_path / "warden.db"
        db.write_bytes(b"data")
        system = create_backup_system(str(db), str(tmp_path / "bak"), keep=2)

        created = [system["create_backup"]() for _ in range(4)]

        names = [b["name"] for b in system["list_backups"]()]
        assert names == [created[3].name, created[2].name]
        assert system["get_latest_backup"]() == created[3]

    def test_keep_is_at_least_one(self, tmp_path):
        """Test a zero keep still retains the latest snapshot."""
        db = tmp_path / "warden.db"
        db.write_bytes(b"data")
        system = create_backup_system(str(db), str(tmp_path / "bak"), keep=0)

        system["create_backup"]()
        assert system["keep"] == 1
        assert len(system["list_backups"]()) == 1


class TestBackupScheduler:
    """Tests for BackupScheduler."""

    @pytest.mark.asyncio
    async def test_run_once_snapshots_store(self, store, tmp_path):
        """Test a snapshot of the live store is a readable database."""
        scheduler = BackupScheduler(store, str(tmp_path / "bak"), keep=3)

        path = await scheduler.run_once()

        assert path is not None and path.exists()
        assert scheduler.last_backup == path
        conn = sqlite3.connect(path)
        try:
            tables = {r[0] for r in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")}
        finally:
            conn.close()
        assert {"punishments", "players", "moderators"} <= tables

    @pytest.mark.asyncio
    async def test_start_and_stop(self, store, tmp_path):
        """Test the loop task starts once and stops cleanly."""
        scheduler = BackupScheduler(store, str(tmp_path / "bak"))
        await scheduler.start()
        task = scheduler._task
        await scheduler.start()
        assert scheduler._task is task

        await scheduler.stop()
        await asyncio.sleep(0)
        assert scheduler._task is None
        assert task.done()
