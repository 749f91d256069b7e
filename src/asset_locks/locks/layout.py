"""On-disk layout of the shared coordination directory."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from asset_locks.core.constants import (
    CONFIG_FILENAME,
    COORDINATION_DIRNAME,
    HISTORY_FILENAME,
    LOCKS_DIRNAME,
    TEAM_FILENAME,
)


@dataclass(frozen=True)
class CoordinationLayout:
    """Paths under ``<root>/.coordination``.

    The directory is committed with the repository; git synchronization is
    what propagates lock state between teammates.
    """

    root: Path

    @property
    def coordination_dir(self) -> Path:
        return self.root / COORDINATION_DIRNAME

    @property
    def locks_dir(self) -> Path:
        return self.coordination_dir / LOCKS_DIRNAME

    @property
    def history_file(self) -> Path:
        return self.coordination_dir / HISTORY_FILENAME

    @property
    def config_file(self) -> Path:
        return self.coordination_dir / CONFIG_FILENAME

    @property
    def team_file(self) -> Path:
        return self.coordination_dir / TEAM_FILENAME

    def ensure_initialized(self) -> None:
        self.locks_dir.mkdir(parents=True, exist_ok=True)
