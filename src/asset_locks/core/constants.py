"""Constants and default values for asset-locks.

This module centralizes on-disk layout names, lease and history limits,
and the environment variables recognized by the CLI.
"""

from asset_locks.core.config import _DEFAULT_LOCKABLE_EXTENSIONS, CoordinatorConfig, LogConfig

# ==================== ON-DISK LAYOUT ====================

COORDINATION_DIRNAME: str = ".coordination"
LOCKS_DIRNAME: str = "locks"
LOCK_FILE_SUFFIX: str = ".lock"
HISTORY_FILENAME: str = "history.json"
CONFIG_FILENAME: str = "config.json"
TEAM_FILENAME: str = "team.json"

# ==================== LOCK RECORDS ====================

LOCK_SCHEMA_VERSION: int = 1
DEFAULT_LEASE_HOURS: int = 24
DEFAULT_LOCK_REASON: str = "Working"
DEFAULT_LOCKABLE_EXTENSIONS: tuple[str, ...] = tuple(ext.lower() for ext in _DEFAULT_LOCKABLE_EXTENSIONS)

# ==================== HISTORY ====================

MAX_HISTORY_ENTRIES: int = 100
DEFAULT_RECENT_HISTORY: int = 20

# ==================== SYNC ====================

# Minimum seconds between repository reachability re-checks
REPOSITORY_RECHECK_SECONDS: float = 1.0
DEFAULT_WATCH_INTERVAL_SECONDS: float = 30.0

# ==================== IDENTITY FALLBACKS ====================

UNKNOWN_USER_NAME: str = "Unknown"
UNKNOWN_USER_EMAIL: str = "unknown@unknown.com"
UNKNOWN_BRANCH: str = "unknown"

# ==================== LOGGING DEFAULTS ====================

LOG_FILE_MAX_BYTES: int = 10 * 1024 * 1024  # 10MB max per log file
LOG_FILE_BACKUP_COUNT: int = 5  # Number of backup log files to keep

# ==================== DISPLAY ====================

BANNER_WIDTH: int = 60
# Batch operations smaller than this run without a progress bar
PROGRESS_BAR_THRESHOLD: int = 5

# ==================== ENVIRONMENT ====================

ENV_VAR_MAPPING: dict[str, str] = {
    "root": "ASSET_LOCKS_ROOT",
    "lease_hours": "ASSET_LOCKS_LEASE_HOURS",
    "lockable_extensions": "ASSET_LOCKS_EXTENSIONS",
    "log_level": "LOG_LEVEL",
}

# ==================== DEFAULT CONFIG INSTANCES ====================

DEFAULT_LOG = LogConfig()
DEFAULT_COORDINATOR = CoordinatorConfig()
