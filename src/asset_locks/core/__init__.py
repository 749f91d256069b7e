"""Core module - foundation shared by the lock engine and the CLI:
- Version information
- Custom exceptions
- Configuration dataclasses
- Constants and defaults
- Logging setup
- Console colors
"""

from asset_locks.core.version import __version__

from asset_locks.core.exceptions import (
    AssetLockError,
    ConfigurationError,
    CoordinationUnavailableError,
    VersionControlError,
)

from asset_locks.core.config import (
    CoordinatorConfig,
    LogConfig,
    parse_extension_list,
)

from asset_locks.core.constants import (
    COORDINATION_DIRNAME,
    DEFAULT_LEASE_HOURS,
    DEFAULT_LOCK_REASON,
    DEFAULT_LOCKABLE_EXTENSIONS,
    ENV_VAR_MAPPING,
    LOCK_SCHEMA_VERSION,
    MAX_HISTORY_ENTRIES,
)

from asset_locks.core.colors import ConsoleColors

from asset_locks.core.logging import (
    ContextTextFormatter,
    JSONFormatter,
    setup_logging,
    with_log_context,
)

__all__ = [
    "__version__",
    "AssetLockError",
    "ConfigurationError",
    "CoordinationUnavailableError",
    "VersionControlError",
    "CoordinatorConfig",
    "LogConfig",
    "parse_extension_list",
    "COORDINATION_DIRNAME",
    "DEFAULT_LEASE_HOURS",
    "DEFAULT_LOCK_REASON",
    "DEFAULT_LOCKABLE_EXTENSIONS",
    "ENV_VAR_MAPPING",
    "LOCK_SCHEMA_VERSION",
    "MAX_HISTORY_ENTRIES",
    "ConsoleColors",
    "ContextTextFormatter",
    "JSONFormatter",
    "setup_logging",
    "with_log_context",
]
