"""
Warden - Events Package
=======================

Event listener Cogs, loaded by the bot with load_extension().

    - forum_cleanup.py: keeps managed forum threads bot-only
"""

EVENT_COGS = [
    "warden.events.forum_cleanup",
]


__all__ = [
    "EVENT_COGS",
]
