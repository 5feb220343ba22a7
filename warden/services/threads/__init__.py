"""
Warden - Threads Package
========================

Resolve-or-create for player and moderator forum threads.
"""

from .resolver import ThreadResolver, thread_title

__all__ = ["ThreadResolver", "thread_title"]
