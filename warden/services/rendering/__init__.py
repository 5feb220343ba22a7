"""
Warden - Rendering Package
==========================

Embed builders for notifications, revokes, log entries and summaries.
"""

from .embeds import (
    log_embed,
    moderator_summary_embed,
    player_summary_embed,
    punishment_embed,
    revoke_embed,
)

__all__ = [
    "punishment_embed",
    "revoke_embed",
    "log_embed",
    "player_summary_embed",
    "moderator_summary_embed",
]
