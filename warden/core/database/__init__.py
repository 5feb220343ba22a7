"""
Warden - Database Package
=========================

SQLite persistence split into mixins by concern.
"""

from warden.core.database.manager import DatabaseManager
from warden.core.database.models import (
    Punishment,
    PunishmentType,
    RevokeKind,
    PlayerRecord,
    ModeratorRecord,
)

__all__ = [
    "DatabaseManager",
    "Punishment",
    "PunishmentType",
    "RevokeKind",
    "PlayerRecord",
    "ModeratorRecord",
]
