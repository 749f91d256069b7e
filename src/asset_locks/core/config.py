"""Configuration dataclasses for asset-locks.

These dataclasses centralize runtime options for type safety and easy
testing. They can be created from command-line arguments, from environment
variables, or used directly in code.
"""

from __future__ import annotations

import argparse
import os
from dataclasses import dataclass, field
from pathlib import Path

from asset_locks.core.exceptions import ConfigurationError

_DEFAULT_LOCKABLE_EXTENSIONS: tuple[str, ...] = (
    ".unity",
    ".prefab",
    ".asset",
    ".controller",
    ".mat",
    ".png",
    ".jpg",
    ".jpeg",
    ".tga",
    ".psd",
    ".fbx",
    ".obj",
    ".blend",
    ".max",
    ".wav",
    ".mp3",
    ".ogg",
    ".aiff",
    ".anim",
    ".mask",
    ".overrideController",
)


def parse_extension_list(raw: str | list[str] | tuple[str, ...] | None) -> tuple[str, ...] | None:
    """Normalize a comma separated string or sequence of extensions.

    Entries are lower-cased and given a leading dot. Returns None for empty input.
    """
    if raw is None:
        return None
    items = raw.split(",") if isinstance(raw, str) else list(raw)
    normalized = []
    for item in items:
        ext = str(item).strip().lower()
        if not ext:
            continue
        if not ext.startswith("."):
            ext = f".{ext}"
        if ext not in normalized:
            normalized.append(ext)
    return tuple(normalized) or None


@dataclass
class LogConfig:
    """Configuration for logging behavior.

    Attributes:
        level: Logging level string (default: "INFO")
        log_format: "text" or "json"
        file_max_bytes: Maximum size per log file (default: 10MB)
        file_backup_count: Number of backup log files (default: 5)
    """

    level: str = "INFO"
    log_format: str = "text"
    file_max_bytes: int = 10 * 1024 * 1024  # 10MB
    file_backup_count: int = 5


@dataclass
class CoordinatorConfig:
    """Options consumed when composing a lock coordinator.

    Attributes:
        root: Fallback coordination root used when git cannot report one
        lease_hours: Lease duration stamped on new lock records (default: 24)
        max_history_entries: History log cap (default: 100)
        lockable_extensions: Extension allow-list override, None for the default list
    """

    root: Path | None = None
    lease_hours: float = 24.0
    max_history_entries: int = 100
    lockable_extensions: tuple[str, ...] | None = None
    log: LogConfig = field(default_factory=LogConfig)

    def __post_init__(self):
        if self.lease_hours <= 0:
            raise ConfigurationError("Lease duration must be positive", field="lease_hours", details=str(self.lease_hours))
        if self.max_history_entries < 1:
            raise ConfigurationError(
                "History cap must be at least 1", field="max_history_entries", details=str(self.max_history_entries)
            )

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> CoordinatorConfig:
        """Build configuration from ASSET_LOCKS_* environment variables."""
        env = os.environ if environ is None else environ
        root = env.get("ASSET_LOCKS_ROOT")
        lease_raw = env.get("ASSET_LOCKS_LEASE_HOURS")
        try:
            lease_hours = float(lease_raw) if lease_raw else 24.0
        except ValueError as e:
            raise ConfigurationError(
                "ASSET_LOCKS_LEASE_HOURS must be a number", field="ASSET_LOCKS_LEASE_HOURS", details=lease_raw
            ) from e
        return cls(
            root=Path(root) if root else None,
            lease_hours=lease_hours,
            lockable_extensions=parse_extension_list(env.get("ASSET_LOCKS_EXTENSIONS")),
            log=LogConfig(level=env.get("LOG_LEVEL", "INFO")),
        )

    @classmethod
    def from_args(cls, args: argparse.Namespace, environ: dict[str, str] | None = None) -> CoordinatorConfig:
        """Create configuration from parsed command-line arguments.

        Explicit arguments win over environment variables.
        """
        base = cls.from_env(environ)
        root = getattr(args, "root", None)
        return cls(
            root=Path(root) if root else base.root,
            lease_hours=base.lease_hours,
            max_history_entries=base.max_history_entries,
            lockable_extensions=base.lockable_extensions,
            log=LogConfig(
                level=getattr(args, "log_level", None) or base.log.level,
                log_format=getattr(args, "log_format", "text"),
            ),
        )
