"""
Warden - Commands Package
=========================

Slash command Cogs, loaded by the bot with load_extension().

To add a command cog, give the module an ``async def setup(bot)`` and
list it in COMMAND_COGS.
"""

COMMAND_COGS = [
    "warden.commands.admin",
]


__all__ = [
    "COMMAND_COGS",
]
