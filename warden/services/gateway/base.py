"""
Warden - Remote Messaging Interface
===================================

What the workflows need from Discord, as a Protocol so tests can swap in
an in-memory double.
"""

from dataclasses import dataclass
from typing import Optional, Protocol

import discord


@dataclass(frozen=True)
class ThreadHandle:
    """A live forum thread."""

    id: int
    name: str
    parent_id: Optional[int] = None
    starter_message_id: Optional[int] = None


@dataclass(frozen=True)
class MessageHandle:
    """A sent message, addressed by (channel, message)."""

    channel_id: int
    message_id: int


class RemoteMessenger(Protocol):
    """
    Discord operations used by the resolver and orchestrator.

    Every method raises RemoteServiceError on failure, except get_thread,
    which returns None for a thread that is gone or archived.
    """

    async def get_thread(self, thread_id: int) -> Optional[ThreadHandle]:
        ...

    async def create_thread(self, parent_id: int, title: str, payload: discord.Embed) -> ThreadHandle:
        ...

    async def send_message(self, target_id: int, payload: discord.Embed) -> MessageHandle:
        ...

    async def edit_message(self, channel_id: int, message_id: int, payload: discord.Embed) -> None:
        ...

    async def delete_message(self, channel_id: int, message_id: int) -> bool:
        ...


__all__ = ["ThreadHandle", "MessageHandle", "RemoteMessenger"]
