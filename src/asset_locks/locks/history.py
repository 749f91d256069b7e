"""Bounded audit trail of lock and unlock actions.

The whole log is one JSON document (``{"entries": [...]}``) in the shared
coordination directory. It is loaded lazily, cached in memory, trimmed
oldest-first to ``max_entries`` on every append, and rewritten atomically.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import threading
import uuid
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from asset_locks.core.constants import DEFAULT_RECENT_HISTORY, MAX_HISTORY_ENTRIES
from asset_locks.locks import codec
from asset_locks.locks.models import HistoryAction, HistoryEntry, utcnow

if TYPE_CHECKING:
    from asset_locks.git.vcs import VersionControl


class LockHistory:
    """Append-only, size-bounded lock history."""

    def __init__(
        self,
        history_file: Path,
        identity: VersionControl,
        *,
        clock: Callable[[], datetime] = utcnow,
        max_entries: int = MAX_HISTORY_ENTRIES,
        logger: logging.Logger | None = None,
    ):
        self.history_file = Path(history_file)
        self.identity = identity
        self.clock = clock
        self.max_entries = max(1, max_entries)
        self.logger = logger or logging.getLogger(__name__)
        self._entries: list[HistoryEntry] | None = None
        self._lock = threading.RLock()

    def record_lock(self, resource_path: str, reason: str) -> HistoryEntry:
        return self._append(HistoryAction.LOCK, resource_path, reason)

    def record_unlock(self, resource_path: str, forced: bool = False) -> HistoryEntry:
        action = HistoryAction.FORCE_UNLOCK if forced else HistoryAction.UNLOCK
        return self._append(action, resource_path, "")

    def recent_entries(self, count: int = DEFAULT_RECENT_HISTORY) -> list[HistoryEntry]:
        """Most recent first, at most ``count`` entries."""
        if count <= 0:
            return []
        with self._lock:
            entries = self._load()
            return list(reversed(entries[-count:]))

    def entries_for(self, resource_path: str) -> list[HistoryEntry]:
        """Every entry for one resource, most recent first."""
        normalized = codec.normalize(resource_path)
        with self._lock:
            return [entry for entry in reversed(self._load()) if entry.resource_path == normalized]

    @property
    def entries(self) -> list[HistoryEntry]:
        """All entries in chronological order."""
        with self._lock:
            return list(self._load())

    def invalidate_cache(self) -> None:
        with self._lock:
            self._entries = None

    def _append(self, action: HistoryAction, resource_path: str, reason: str) -> HistoryEntry:
        entry = HistoryEntry(
            action=action,
            resource_path=codec.normalize(resource_path),
            user=self.identity.current_user_name(),
            email=self.identity.current_user_email(),
            reason=reason,
            timestamp=self.clock().isoformat(),
            branch=self.identity.current_branch(),
        )
        with self._lock:
            entries = self._load()
            entries.append(entry)
            overflow = len(entries) - self.max_entries
            if overflow > 0:
                del entries[:overflow]
            self._save(entries)
        return entry

    def _load(self) -> list[HistoryEntry]:
        if self._entries is not None:
            return self._entries

        if not self.history_file.exists():
            self._entries = []
            return self._entries

        try:
            with open(self.history_file, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            self.logger.warning(f"Lock history at {self.history_file} is unreadable, starting empty: {e}")
            self._entries = []
            return self._entries

        raw_entries = data.get("entries") if isinstance(data, dict) else None
        if not isinstance(raw_entries, list):
            self.logger.warning(f"Lock history at {self.history_file} has no entry list, starting empty")
            self._entries = []
            return self._entries

        entries = []
        for raw in raw_entries:
            entry = HistoryEntry.from_dict(raw) if isinstance(raw, dict) else None
            if entry is None:
                self.logger.debug(f"Dropping malformed history entry: {raw!r}")
                continue
            entries.append(entry)
        self._entries = entries[-self.max_entries :]
        return self._entries

    def _save(self, entries: list[HistoryEntry]) -> None:
        """Save the log via atomic write-then-rename; failures are logged only."""
        self._entries = entries
        tmp_path = self.history_file.with_name(f".{self.history_file.name}.{uuid.uuid4().hex}.tmp")
        try:
            self.history_file.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump({"entries": [entry.to_dict() for entry in entries]}, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.history_file)
        except OSError as e:
            self.logger.warning(f"Failed to save lock history to {self.history_file}: {e}")
            with contextlib.suppress(OSError):
                tmp_path.unlink()
