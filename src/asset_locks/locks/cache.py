"""In-process lock record cache owned by a single coordinator."""

from __future__ import annotations

import threading
from collections.abc import Iterable

from asset_locks.locks.models import LockRecord


class LockCache:
    """Read-through, write-through mapping of resource path to last known record.

    Only positive results are stored: a cached miss could hide a lock a
    teammate created since the last read. ``complete`` is True after a full
    directory scan populated the cache and no invalidation happened since.
    """

    def __init__(self):
        self._records: dict[str, LockRecord] = {}
        self._complete = False
        self._lock = threading.RLock()

    def get(self, resource_path: str) -> LockRecord | None:
        with self._lock:
            return self._records.get(resource_path)

    def put(self, record: LockRecord) -> None:
        with self._lock:
            self._records[record.resource_path] = record

    def remove(self, resource_path: str) -> None:
        with self._lock:
            self._records.pop(resource_path, None)

    def replace_all(self, records: Iterable[LockRecord]) -> None:
        with self._lock:
            self._records = {record.resource_path: record for record in records}
            self._complete = True

    def invalidate(self) -> None:
        with self._lock:
            self._records = {}
            self._complete = False

    @property
    def complete(self) -> bool:
        with self._lock:
            return self._complete

    def snapshot(self) -> list[LockRecord]:
        with self._lock:
            return list(self._records.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, resource_path: object) -> bool:
        with self._lock:
            return resource_path in self._records
