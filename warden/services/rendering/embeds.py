"""
Warden - Embed Rendering
========================

Pure functions turning punishments and counters into discord.Embed.

DESIGN:
    No I/O and no clock reads beyond embed timestamps, so every layout
    can be asserted in tests without a Discord connection.
"""

from datetime import datetime
from typing import Dict, List, Optional

import discord

from warden.core.config import EmbedColors
from warden.core.logger import NY_TZ
from warden.core.constants import (
    EMBED_DESCRIPTION_MAX,
    EMBED_FIELD_MAX,
    EMBED_TITLE_MAX,
    SYSTEM_MODERATOR_NAME,
)
from warden.core.database.models import (
    ModeratorRecord,
    PlayerRecord,
    Punishment,
    PunishmentType,
)
from warden.utils.time_format import (
    PERMANENT,
    discord_timestamp,
    format_duration,
    format_time_left,
)


# =============================================================================
# Constants
# =============================================================================

TYPE_COLORS: Dict[PunishmentType, int] = {
    PunishmentType.BAN: EmbedColors.RED,
    PunishmentType.MUTE: EmbedColors.ORANGE,
    PunishmentType.KICK: EmbedColors.GOLD,
    PunishmentType.JAIL: EmbedColors.PURPLE,
}

REVOKE_TITLES: Dict[PunishmentType, str] = {
    PunishmentType.BAN: "Unban",
    PunishmentType.MUTE: "Unmute",
    PunishmentType.JAIL: "Unjail",
}

STATUS_ACTIVE = "🔴 Active"
STATUS_INACTIVE = "⚪ Inactive"


# =============================================================================
# Helpers
# =============================================================================

def _ts(epoch: Optional[float]) -> datetime:
    if epoch is None:
        return datetime.now(NY_TZ)
    return datetime.fromtimestamp(epoch, tz=NY_TZ)


def _clip(text: str, limit: int = EMBED_FIELD_MAX) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


def _moderator(name: Optional[str]) -> str:
    return name or SYSTEM_MODERATOR_NAME


def _duration_text(p: Punishment) -> str:
    if p.is_permanent:
        return PERMANENT
    text = format_duration(p.duration)
    if p.expires_at is not None:
        text += f"\nExpires {discord_timestamp(p.expires_at, 'R')}"
    return text


# =============================================================================
# Punishment Embeds
# =============================================================================

def punishment_embed(p: Punishment) -> discord.Embed:
    """Full notification posted in the player and moderator threads."""
    embed = discord.Embed(
        title=_clip(f"{p.type.emoji} {p.type.display_name}", EMBED_TITLE_MAX),
        color=TYPE_COLORS[p.type],
        timestamp=_ts(p.created_at),
    )
    embed.add_field(name="👤 Player", value=f"{p.player_name}\n`{p.player_id}`", inline=True)
    embed.add_field(name="👮 Moderator", value=_moderator(p.moderator_name), inline=True)
    if p.type.can_be_temporary:
        embed.add_field(name="⏰ Duration", value=_duration_text(p), inline=True)
    embed.add_field(name="📝 Reason", value=_clip(p.reason or "No reason given"), inline=False)
    embed.add_field(name="🆔 ID", value=f"`{p.external_id}`", inline=True)
    if p.type is PunishmentType.JAIL and p.jail_name:
        embed.add_field(name="🏢 Jail", value=p.jail_name, inline=True)
    if p.type.can_be_revoked:
        embed.add_field(name="Status", value=STATUS_ACTIVE if p.active else STATUS_INACTIVE, inline=True)
    embed.set_footer(text="Issued")
    return embed


def revoke_embed(p: Punishment) -> discord.Embed:
    """
    Replacement for a thread notification once the punishment ends.

    Keeps the original details and appends who lifted it and why.
    """
    embed = discord.Embed(
        title=_clip(f"✅ {REVOKE_TITLES.get(p.type, 'Revoked')} - {p.type.display_name}", EMBED_TITLE_MAX),
        color=EmbedColors.GREEN,
        timestamp=_ts(p.revoked_at),
    )
    embed.add_field(name="👤 Player", value=f"{p.player_name}\n`{p.player_id}`", inline=True)
    embed.add_field(name="👮 Issued By", value=_moderator(p.moderator_name), inline=True)
    embed.add_field(name="👮 Lifted By", value=_moderator(p.revoke_moderator_name), inline=True)
    if p.revoke_kind is not None:
        embed.add_field(
            name="Revoke Type",
            value=f"{p.revoke_kind.emoji} {p.revoke_kind.display_name}",
            inline=True,
        )
    embed.add_field(name="⏰ Original Duration", value=format_duration(p.duration), inline=True)
    embed.add_field(name="📝 Original Reason", value=_clip(p.reason or "No reason given"), inline=False)
    if p.revoke_reason:
        embed.add_field(name="📝 Revoke Reason", value=_clip(p.revoke_reason), inline=False)
    embed.add_field(name="🆔 ID", value=f"`{p.external_id}`", inline=True)
    embed.add_field(name="Status", value=STATUS_INACTIVE, inline=True)
    embed.set_footer(text="Lifted")
    return embed


def log_embed(p: Punishment) -> discord.Embed:
    """Compact one-block entry for the log channel, for both issue and revoke."""
    if p.active:
        title = f"{p.type.emoji} {p.type.display_name}"
        color = TYPE_COLORS[p.type]
        lines = [
            f"**Player:** {p.player_name}",
            f"**Moderator:** {_moderator(p.moderator_name)}",
            f"**Duration:** {format_duration(p.duration) if p.type.can_be_temporary else 'Instant'}",
            f"**Reason:** {p.reason or 'No reason given'}",
            f"**ID:** `{p.external_id}`",
        ]
        when = p.created_at
    else:
        title = f"✅ {REVOKE_TITLES.get(p.type, 'Revoked')}"
        color = EmbedColors.GREEN
        kind = p.revoke_kind.display_name if p.revoke_kind else "Manual"
        lines = [
            f"**Player:** {p.player_name}",
            f"**Lifted By:** {_moderator(p.revoke_moderator_name)}",
            f"**Type:** {kind}",
            f"**Reason:** {p.revoke_reason or kind}",
            f"**ID:** `{p.external_id}`",
        ]
        when = p.revoked_at

    embed = discord.Embed(
        title=_clip(title, EMBED_TITLE_MAX),
        description=_clip("\n".join(lines), EMBED_DESCRIPTION_MAX),
        color=color,
        timestamp=_ts(when),
    )
    return embed


# =============================================================================
# Summary Embeds
# =============================================================================

def _count_lines(counts: Dict[PunishmentType, int]) -> str:
    lines = [f"{t.emoji} {t.display_name}: **{counts.get(t, 0)}**" for t in PunishmentType]
    return "\n".join(lines)


def player_summary_embed(
    player: PlayerRecord,
    total_by_type: Dict[PunishmentType, int],
    active_by_type: Dict[PunishmentType, int],
    active: List[Punishment],
    now: Optional[float] = None,
) -> discord.Embed:
    """Pinned starter message of a player's thread."""
    embed = discord.Embed(
        title=_clip(f"📊 Player: {player.player_name}", EMBED_TITLE_MAX),
        color=EmbedColors.BLUE,
        timestamp=datetime.now(NY_TZ),
    )
    embed.add_field(
        name=f"Total ({player.total_punishments})",
        value=_count_lines(total_by_type),
        inline=True,
    )
    embed.add_field(
        name=f"Active ({player.active_punishments})",
        value=_count_lines({t: c for t, c in active_by_type.items() if t.can_be_revoked}),
        inline=True,
    )

    if active:
        details = []
        for p in active:
            if not p.type.can_be_revoked:
                continue
            left = format_time_left(p.expires_at, now)
            details.append(f"{p.type.emoji} `{p.external_id}` {p.reason or 'No reason'} ({left})")
        if details:
            embed.add_field(name="Active Details", value=_clip("\n".join(details)), inline=False)

    embed.add_field(name="UUID", value=f"`{player.player_id}`", inline=False)
    embed.set_footer(text="Updated")
    return embed


def moderator_summary_embed(
    moderator: ModeratorRecord,
    issued_by_type: Dict[PunishmentType, int],
) -> discord.Embed:
    """Pinned starter message of a moderator's thread."""
    embed = discord.Embed(
        title=_clip(f"📊 Moderator: {moderator.moderator_name}", EMBED_TITLE_MAX),
        color=EmbedColors.BLUE,
        timestamp=datetime.now(NY_TZ),
    )
    embed.add_field(
        name="Totals",
        value=f"Issued: **{moderator.total_issued}**\nStill active: **{moderator.active_issued}**",
        inline=True,
    )
    embed.add_field(name="By Type", value=_count_lines(issued_by_type), inline=True)
    if moderator.discord_id:
        embed.add_field(name="Discord", value=f"<@{moderator.discord_id}>", inline=True)
    embed.add_field(name="UUID", value=f"`{moderator.moderator_id}`", inline=False)
    embed.set_footer(text="Updated")
    return embed


__all__ = [
    "punishment_embed",
    "revoke_embed",
    "log_embed",
    "player_summary_embed",
    "moderator_summary_embed",
    "TYPE_COLORS",
]
