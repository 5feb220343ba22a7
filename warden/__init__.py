"""
Warden - Source Package
=======================

Bridges Minecraft moderation events to Discord forum threads with a
durable SQLite audit trail.

Package Structure:
- bot.py: Discord client that wires every component together
- core/: Logging, configuration, database and the event ingest server
- services/: Cache/locks, thread resolution, punishment workflows, backups
- sources/: Adapters translating plugin payloads into events
- commands/: Admin slash commands
- events/: Discord event listeners (forum hygiene)
- utils/: Retry, async and formatting helpers

Version: v1.0.0
"""

__version__ = "1.0.0"
