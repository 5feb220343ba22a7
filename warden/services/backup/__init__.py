"""
Warden - Database Backup Package
================================

Snapshot factory and the periodic scheduler.
"""

from .base import create_backup_system, DEFAULT_KEEP
from .scheduler import BackupScheduler

__all__ = [
    "create_backup_system",
    "DEFAULT_KEEP",
    "BackupScheduler",
]
