"""
asset-locks - Advisory locks for binary assets shared through git

Lock records live as one JSON file per resource under ``.coordination/locks``
in the repository; teammates see each other's locks when they pull.
"""

from __future__ import annotations

import importlib
from typing import TYPE_CHECKING, Any

from asset_locks.core.version import __version__

# Resolved on first access so ``import asset_locks`` stays cheap for the CLI
_LAZY_EXPORTS: dict[str, str] = {
    "GitVersionControl": "asset_locks.git.vcs",
    "LockCoordinator": "asset_locks.locks.coordinator",
    "LockErrorKind": "asset_locks.locks.models",
    "LockRecord": "asset_locks.locks.models",
    "LockResult": "asset_locks.locks.models",
    "LockSession": "asset_locks.session",
    "SyncCoordinator": "asset_locks.locks.sync",
    "main": "asset_locks.cli.main",
}

__all__ = ["__version__", *_LAZY_EXPORTS]

if TYPE_CHECKING:
    from asset_locks.cli.main import main
    from asset_locks.git.vcs import GitVersionControl
    from asset_locks.locks.coordinator import LockCoordinator
    from asset_locks.locks.models import LockErrorKind, LockRecord, LockResult
    from asset_locks.locks.sync import SyncCoordinator
    from asset_locks.session import LockSession


def __getattr__(name: str) -> Any:
    module_path = _LAZY_EXPORTS.get(name)
    if module_path is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    return getattr(importlib.import_module(module_path), name)
