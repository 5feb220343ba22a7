"""
Warden - Time Formatting Utils
==============================

Human-readable durations and timestamps for embeds and log trees.

Features:
- Seconds to "2d 3h 15m" style strings
- Seconds are shown only for sub-day durations
- Time-left strings that say "Expired" once past
- Discord timestamp markup for localized display
"""

import time
from datetime import datetime
from typing import Optional

from warden.core.logger import NY_TZ
from warden.core.constants import SECONDS_PER_DAY, SECONDS_PER_HOUR, SECONDS_PER_MINUTE, MS_PER_SECOND


PERMANENT = "Permanent"
EXPIRED = "Expired"
UNKNOWN = "Unknown"


def format_duration(total_seconds: Optional[int]) -> str:
    """
    Format seconds into a compact duration string.

    Examples:
        - None or 0: "Permanent"
        - 45: "45s"
        - 3600: "1h"
        - 90061: "1d 1h 1m" (seconds dropped once a day is present)
    """
    if total_seconds is None or total_seconds <= 0:
        return PERMANENT

    total_seconds = int(total_seconds)
    days, remaining = divmod(total_seconds, SECONDS_PER_DAY)
    hours, remaining = divmod(remaining, SECONDS_PER_HOUR)
    minutes, seconds = divmod(remaining, SECONDS_PER_MINUTE)

    parts: list[str] = []
    if days > 0:
        parts.append(f"{days}d")
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    if seconds > 0 and days == 0:
        parts.append(f"{seconds}s")

    return " ".join(parts)


def format_time_left(expires_at: Optional[float], now: Optional[float] = None) -> str:
    """Remaining time until ``expires_at``; "Expired" once past."""
    if expires_at is None:
        return PERMANENT
    now = time.time() if now is None else now
    if now > expires_at:
        return EXPIRED
    remaining = int(expires_at - now)
    if remaining < 1:
        return "<1s"
    return format_duration(remaining)


def format_datetime(timestamp: Optional[float]) -> str:
    """Eastern-time wall clock string for log trees."""
    if timestamp is None:
        return UNKNOWN
    return datetime.fromtimestamp(timestamp, tz=NY_TZ).strftime("%Y-%m-%d %I:%M:%S %p %Z")


def discord_timestamp(timestamp: Optional[float], style: str = "f") -> str:
    """Discord ``<t:unix:style>`` markup, rendered in the reader's timezone."""
    if timestamp is None:
        return UNKNOWN
    return f"<t:{int(timestamp)}:{style}>"


def ms_to_seconds(milliseconds: Optional[int]) -> Optional[int]:
    """Plugin durations arrive in ms; None or non-positive means permanent."""
    if milliseconds is None or milliseconds <= 0:
        return None
    return max(1, int(milliseconds) // MS_PER_SECOND)


__all__ = [
    "format_duration",
    "format_time_left",
    "format_datetime",
    "discord_timestamp",
    "ms_to_seconds",
    "PERMANENT",
    "EXPIRED",
]
