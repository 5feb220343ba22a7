"""
Warden - Centralized Constants
==============================

Magic numbers, key prefixes and Discord limits in one place.
"""

# =============================================================================
# Time Constants (in seconds)
# =============================================================================

SECONDS_PER_MINUTE = 60
SECONDS_PER_HOUR = 3600
SECONDS_PER_DAY = 86400

MS_PER_SECOND = 1000

# =============================================================================
# Database Constants
# =============================================================================

DB_CONNECTION_TIMEOUT = 30.0          # sqlite3.connect timeout (seconds)
SQLITE_BUSY_TIMEOUT = 5000            # PRAGMA busy_timeout (milliseconds)
BACKUP_PREFIX = "punishment_logs_backup"

# =============================================================================
# Cache Key Prefixes
# =============================================================================

LOCK_PREFIX = "punishment_lock:"
THREAD_CREATE_LOCK = "thread_create:"
STATS_UPDATE_LOCK = "stats_update:"
MESSAGE_DELETE_LOCK = "message_delete:"

LAST_STATS_UPDATE_PREFIX = "last_stats_update:"
PENDING_ACTIONS_QUEUE = "pending_discord_actions"

LOCK_LEASE_SECONDS = 30               # Redis lock auto-expiry if holder dies

# =============================================================================
# Thread Naming
# =============================================================================

PLAYER_THREAD_PREFIX = "👤"
MODERATOR_THREAD_PREFIX = "👮"
SYSTEM_MODERATOR_NAME = "Console"

# =============================================================================
# Discord Limits
# =============================================================================

THREAD_NAME_MAX = 100
EMBED_FIELD_MAX = 1024
EMBED_DESCRIPTION_MAX = 4096
EMBED_TITLE_MAX = 256

# =============================================================================
# Workflow Constants
# =============================================================================

EXPIRY_BATCH_SIZE = 25                # Expired punishments revoked concurrently
QUEUE_DRAIN_LIMIT = 50                # Deferred actions handled per reconcile pass
MAX_DISPATCH_ATTEMPTS = 5             # Sweep attempts before a row is left for an admin
SHUTDOWN_TIMEOUT = 10                 # Seconds to wait for in-flight workflows

# =============================================================================
# Ingest Server
# =============================================================================

INGEST_SECRET_HEADER = "X-Warden-Secret"
INGEST_MAX_BODY = 64 * 1024
