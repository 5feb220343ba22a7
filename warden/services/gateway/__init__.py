"""
Warden - Gateway Package
========================

Remote messaging protocol and its discord.py implementation.
"""

from .base import MessageHandle, RemoteMessenger, ThreadHandle
from .discord_gateway import DiscordGateway

__all__ = ["MessageHandle", "RemoteMessenger", "ThreadHandle", "DiscordGateway"]
