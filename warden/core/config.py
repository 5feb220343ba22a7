"""
Warden - Configuration Module
=============================

Centralized configuration management with environment variable validation.

DESIGN:
    A single Config dataclass is loaded from environment variables at
    startup (main.py calls load_dotenv first). Components receive the
    Config object at construction; get_config() only exists for the
    entry point and the admin reload command.

    Key patterns:
    - Validation happens once at load time, not on every access
    - Optional integers clamp to sane ranges with a warning
    - reload_config() re-reads the environment for /warden reload
"""

import os
from dataclasses import dataclass, field
from typing import Optional, Set
from zoneinfo import ZoneInfo


# =============================================================================
# Timezone Configuration
# =============================================================================

NY_TZ = ZoneInfo("America/New_York")
"""Eastern timezone for every timestamp the bot renders."""


# =============================================================================
# Configuration Dataclass
# =============================================================================

@dataclass
class Config:
    """
    Bot configuration loaded from environment variables.

    Attributes:
        discord_token: Discord bot authentication token.
        players_forum_id: Forum holding one thread per punished player.
        moderators_forum_id: Forum holding one thread per moderator.
        log_channel_id: Text channel receiving a compact line per action.
        redis_url: Redis connection URL; empty disables the cache layer.
    """

    # -------------------------------------------------------------------------
    # Required: Discord
    # -------------------------------------------------------------------------

    discord_token: str
    players_forum_id: int

    # -------------------------------------------------------------------------
    # Optional: Discord
    # -------------------------------------------------------------------------

    guild_id: Optional[int] = None
    moderators_forum_id: Optional[int] = None
    log_channel_id: Optional[int] = None
    admin_ids: Set[int] = field(default_factory=set)
    error_webhook_url: Optional[str] = None

    # -------------------------------------------------------------------------
    # Optional: Database & Backups
    # -------------------------------------------------------------------------

    database_path: str = "data/punishment_logs.db"
    backup_dir: str = "data/backups"
    backup_keep: int = 10
    backup_interval_hours: int = 24
    auto_backup: bool = True

    # -------------------------------------------------------------------------
    # Optional: Redis Cache (TTL values in minutes)
    # -------------------------------------------------------------------------

    redis_url: Optional[str] = None
    thread_cache_ttl: int = 60
    discord_id_cache_ttl: int = 30
    permissions_cache_ttl: int = 15

    # -------------------------------------------------------------------------
    # Optional: Integrations (durations in minutes)
    # -------------------------------------------------------------------------

    track_bans: bool = True
    track_mutes: bool = True
    track_kicks: bool = True
    track_jails: bool = True
    min_temp_duration: int = 0
    min_jail_duration: int = 0

    # -------------------------------------------------------------------------
    # Optional: Event Ingest Server
    # -------------------------------------------------------------------------

    ingest_host: str = "0.0.0.0"
    ingest_port: int = 8095
    ingest_secret: Optional[str] = None

    # -------------------------------------------------------------------------
    # Optional: Workflow Tuning (seconds unless noted)
    # -------------------------------------------------------------------------

    worker_count: int = 8
    stats_update_interval: int = 60
    thread_lock_timeout: float = 10.0
    stats_lock_timeout: float = 5.0
    expiry_check_interval: int = 30
    reconcile_interval: int = 300
    reconcile_grace_period: int = 600

    # -------------------------------------------------------------------------
    # Optional: Forum Hygiene
    # -------------------------------------------------------------------------

    delete_foreign_messages: bool = True


# =============================================================================
# Validation
# =============================================================================

class ConfigValidationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


def _parse_int(value: Optional[str], name: str) -> int:
    """
    Parse string to integer with descriptive error handling.

    Raises:
        ConfigValidationError: If value is missing or not a valid integer.
    """
    if not value:
        raise ConfigValidationError(f"Missing required: {name}")
    try:
        return int(value)
    except ValueError:
        raise ConfigValidationError(f"Invalid integer for {name}: {value}")


def _parse_int_optional(value: Optional[str]) -> Optional[int]:
    """Parse optional string to integer, returning None on failure."""
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _parse_int_set(value: Optional[str]) -> Set[int]:
    """
    Parse comma-separated string to set of integers.

    Args:
        value: Comma-separated string of integers (e.g., "123,456,789").

    Returns:
        Set of parsed integers, empty set if input is None or empty.
    """
    if not value:
        return set()

    result = set()
    for part in value.split(","):
        part = part.strip()
        if part:
            try:
                result.add(int(part))
            except ValueError:
                pass  # Skip invalid entries silently
    return result


def _parse_int_with_default(
    value: Optional[str],
    default: int,
    name: str,
    min_val: Optional[int] = None,
    max_val: Optional[int] = None,
) -> int:
    """
    Parse optional integer with default and range validation.

    Args:
        value: String value from environment variable.
        default: Default value if not set or invalid.
        name: Variable name for warning messages.
        min_val: Minimum allowed value (inclusive).
        max_val: Maximum allowed value (inclusive).

    Returns:
        Parsed integer within valid range, or default.
    """
    if not value:
        return default

    from warden.core.logger import logger

    try:
        parsed = int(value)
    except ValueError:
        logger.warning(f"Config {name}='{value}' invalid, using default {default}")
        return default

    if min_val is not None and parsed < min_val:
        logger.warning(f"Config {name}={parsed} below min {min_val}, using {min_val}")
        return min_val
    if max_val is not None and parsed > max_val:
        logger.warning(f"Config {name}={parsed} above max {max_val}, using {max_val}")
        return max_val
    return parsed


def _parse_bool(value: Optional[str], default: bool) -> bool:
    """Parse a true/false style flag, falling back to default."""
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _validate_url(value: Optional[str], name: str) -> Optional[str]:
    """
    Validate URL format for webhooks.

    Returns:
        URL if valid, None if invalid or empty.
    """
    if not value:
        return None
    if not value.startswith(("https://", "http://")):
        from warden.core.logger import logger
        logger.warning(f"Config {name} invalid URL format, ignoring")
        return None
    return value


def _validate_redis_url(value: Optional[str]) -> Optional[str]:
    """Accept redis://, rediss:// and unix:// URLs only."""
    if not value:
        return None
    if not value.startswith(("redis://", "rediss://", "unix://")):
        from warden.core.logger import logger
        logger.warning("Config REDIS_URL invalid scheme, cache disabled")
        return None
    return value


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config() -> Config:
    """
    Load and validate configuration from environment variables.

    DESIGN:
        Validates all required variables upfront before creating the
        Config object, so a bad deployment fails at startup rather than
        on the first ban.

    Raises:
        ConfigValidationError: If any required variable is missing or invalid.
    """
    missing = []

    discord_token = os.getenv("DISCORD_TOKEN")
    if not discord_token:
        missing.append("DISCORD_TOKEN")

    players_forum_id_str = os.getenv("PLAYERS_FORUM_ID")
    if not players_forum_id_str:
        missing.append("PLAYERS_FORUM_ID")

    if missing:
        raise ConfigValidationError(
            f"Missing required environment variables: {', '.join(missing)}"
        )

    players_forum_id = _parse_int(players_forum_id_str, "PLAYERS_FORUM_ID")

    return Config(
        discord_token=discord_token,
        players_forum_id=players_forum_id,
        guild_id=_parse_int_optional(os.getenv("GUILD_ID")),
        moderators_forum_id=_parse_int_optional(os.getenv("MODERATORS_FORUM_ID")),
        log_channel_id=_parse_int_optional(os.getenv("LOG_CHANNEL_ID")),
        admin_ids=_parse_int_set(os.getenv("ADMIN_IDS")),
        error_webhook_url=_validate_url(os.getenv("ERROR_WEBHOOK_URL"), "ERROR_WEBHOOK_URL"),
        database_path=os.getenv("DATABASE_PATH", "data/punishment_logs.db"),
        backup_dir=os.getenv("BACKUP_DIR", "data/backups"),
        backup_keep=_parse_int_with_default(
            os.getenv("BACKUP_KEEP"), 10, "BACKUP_KEEP", min_val=1, max_val=100
        ),
        backup_interval_hours=_parse_int_with_default(
            os.getenv("BACKUP_INTERVAL_HOURS"), 24, "BACKUP_INTERVAL_HOURS", min_val=1, max_val=168
        ),
        auto_backup=_parse_bool(os.getenv("AUTO_BACKUP"), True),
        redis_url=_validate_redis_url(os.getenv("REDIS_URL")),
        thread_cache_ttl=_parse_int_with_default(
            os.getenv("THREAD_CACHE_TTL"), 60, "THREAD_CACHE_TTL", min_val=1, max_val=10080
        ),
        discord_id_cache_ttl=_parse_int_with_default(
            os.getenv("DISCORD_ID_CACHE_TTL"), 30, "DISCORD_ID_CACHE_TTL", min_val=1, max_val=10080
        ),
        permissions_cache_ttl=_parse_int_with_default(
            os.getenv("PERMISSIONS_CACHE_TTL"), 15, "PERMISSIONS_CACHE_TTL", min_val=1, max_val=10080
        ),
        track_bans=_parse_bool(os.getenv("TRACK_BANS"), True),
        track_mutes=_parse_bool(os.getenv("TRACK_MUTES"), True),
        track_kicks=_parse_bool(os.getenv("TRACK_KICKS"), True),
        track_jails=_parse_bool(os.getenv("TRACK_JAILS"), True),
        min_temp_duration=_parse_int_with_default(
            os.getenv("MIN_TEMP_DURATION"), 0, "MIN_TEMP_DURATION", min_val=0
        ),
        min_jail_duration=_parse_int_with_default(
            os.getenv("MIN_JAIL_DURATION"), 0, "MIN_JAIL_DURATION", min_val=0
        ),
        ingest_host=os.getenv("INGEST_HOST", "0.0.0.0"),
        ingest_port=_parse_int_with_default(
            os.getenv("INGEST_PORT"), 8095, "INGEST_PORT", min_val=1, max_val=65535
        ),
        ingest_secret=os.getenv("INGEST_SECRET") or None,
        worker_count=_parse_int_with_default(
            os.getenv("WORKER_COUNT"), 8, "WORKER_COUNT", min_val=1, max_val=64
        ),
        stats_update_interval=_parse_int_with_default(
            os.getenv("STATS_UPDATE_INTERVAL"), 60, "STATS_UPDATE_INTERVAL", min_val=0, max_val=3600
        ),
        expiry_check_interval=_parse_int_with_default(
            os.getenv("EXPIRY_CHECK_INTERVAL"), 30, "EXPIRY_CHECK_INTERVAL", min_val=5, max_val=3600
        ),
        reconcile_interval=_parse_int_with_default(
            os.getenv("RECONCILE_INTERVAL"), 300, "RECONCILE_INTERVAL", min_val=30, max_val=86400
        ),
        reconcile_grace_period=_parse_int_with_default(
            os.getenv("RECONCILE_GRACE_PERIOD"), 600, "RECONCILE_GRACE_PERIOD", min_val=60, max_val=86400
        ),
        delete_foreign_messages=_parse_bool(os.getenv("DELETE_FOREIGN_MESSAGES"), True),
    )


# =============================================================================
# Global Config Instance
# =============================================================================

_config: Optional[Config] = None


def get_config() -> Config:
    """
    Get the global configuration instance, loading if needed.

    Raises:
        ConfigValidationError: On first call if config is invalid.
    """
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> Config:
    """
    Re-read the environment and replace the global configuration.

    The previous Config stays in place if the new one fails validation.

    Raises:
        ConfigValidationError: If the new environment is invalid.
    """
    global _config
    new_config = load_config()
    _config = new_config
    return new_config


# =============================================================================
# Config Validation & Logging
# =============================================================================

def validate_and_log_config() -> Config:
    """
    Validate configuration and log results at startup.

    Raises:
        ConfigValidationError: If required configuration is missing.
    """
    from warden.core.logger import logger

    config = get_config()

    optional_features = []
    if config.moderators_forum_id:
        optional_features.append("Moderator Threads")
    if config.log_channel_id:
        optional_features.append("Log Channel")
    if config.redis_url:
        optional_features.append("Redis Cache")
    if config.ingest_secret:
        optional_features.append("Authenticated Ingest")
    if config.error_webhook_url:
        optional_features.append("Webhook Alerts")

    for var, value in (
        ("MODERATORS_FORUM_ID", config.moderators_forum_id),
        ("LOG_CHANNEL_ID", config.log_channel_id),
        ("REDIS_URL", config.redis_url),
        ("INGEST_SECRET", config.ingest_secret),
    ):
        if not value:
            logger.info(f"Optional config not set: {var}")

    logger.tree("Configuration Validated", [
        ("Required", "✅ All required variables set"),
        ("Optional Features", ", ".join(optional_features) if optional_features else "None"),
        ("Database", config.database_path),
        ("Workers", str(config.worker_count)),
    ], emoji="⚙️")

    return config


# =============================================================================
# Permission Helpers
# =============================================================================

def is_admin(config: Config, user_id: int) -> bool:
    """
    Check if a Discord user may run admin commands.

    Args:
        config: Active configuration.
        user_id: Discord user ID to check.
    """
    return user_id in config.admin_ids


# =============================================================================
# Embed Colors
# =============================================================================

class EmbedColors:
    """Standardized color palette for Discord embeds."""

    RED = 0xDC3545      # Bans
    ORANGE = 0xFF9800   # Mutes
    GOLD = 0xE6B84A     # Kicks, warnings
    PURPLE = 0x9B59B6   # Jails
    GREEN = 0x1F5E2E    # Revokes
    BLUE = 0x3498DB     # Summaries

    SUCCESS = GREEN
    INFO = BLUE
    WARNING = GOLD


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "Config",
    "ConfigValidationError",
    "EmbedColors",
    "NY_TZ",
    "load_config",
    "get_config",
    "reload_config",
    "validate_and_log_config",
    "is_admin",
]
