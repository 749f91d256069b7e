"""Lock engine: record storage, coordination, history and refresh.

The engine depends only on the ``VersionControl`` protocol, never on how
git is invoked.
"""

from asset_locks.locks.cache import LockCache
from asset_locks.locks.coordinator import LockCoordinator
from asset_locks.locks.history import LockHistory
from asset_locks.locks.layout import CoordinationLayout
from asset_locks.locks.models import (
    HistoryAction,
    HistoryEntry,
    LockDiagnostic,
    LockErrorKind,
    LockOwner,
    LockRecord,
    LockResult,
)
from asset_locks.locks.policy import LockablePolicy
from asset_locks.locks.protection import BlockedSave, SaveCheck, SaveProtection
from asset_locks.locks.settings import CoordinationSettings, SettingsStore
from asset_locks.locks.store import LockRecordStore
from asset_locks.locks.sync import Subscription, SyncCoordinator, SyncResult

__all__ = [
    "BlockedSave",
    "CoordinationLayout",
    "CoordinationSettings",
    "HistoryAction",
    "HistoryEntry",
    "LockCache",
    "LockCoordinator",
    "LockDiagnostic",
    "LockErrorKind",
    "LockHistory",
    "LockOwner",
    "LockRecord",
    "LockRecordStore",
    "LockResult",
    "LockablePolicy",
    "SaveCheck",
    "SaveProtection",
    "SettingsStore",
    "Subscription",
    "SyncCoordinator",
    "SyncResult",
]
