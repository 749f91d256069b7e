"""Save protection: keep users from overwriting resources a teammate holds."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from asset_locks.locks.coordinator import LockCoordinator
from asset_locks.locks.models import LockRecord
from asset_locks.locks.settings import SettingsStore


@dataclass(frozen=True)
class BlockedSave:
    path: str
    record: LockRecord
    message: str


@dataclass
class SaveCheck:
    """Paths split into those that may be saved and those held by others."""

    allowed: list[str] = field(default_factory=list)
    blocked: list[BlockedSave] = field(default_factory=list)

    @property
    def all_allowed(self) -> bool:
        return not self.blocked


class SaveProtection:
    def __init__(
        self,
        coordinator: LockCoordinator,
        settings_store: SettingsStore,
        logger: logging.Logger | None = None,
    ):
        self.coordinator = coordinator
        self.settings_store = settings_store
        self.logger = logger or logging.getLogger(__name__)

    @property
    def enabled(self) -> bool:
        return self.settings_store.settings.save_protection

    def filter_saveable(self, paths: Iterable[str]) -> SaveCheck:
        """Split ``paths`` into saveable and blocked.

        Lock state is re-read from storage first so a teammate's lock pulled
        a moment ago is honored.
        """
        candidates = [self.coordinator.resource_path_for(path) for path in paths]
        check = SaveCheck()
        if not self.enabled or not self.coordinator.is_coordinated():
            check.allowed.extend(candidates)
            return check

        self.coordinator.invalidate_cache()
        for path in candidates:
            if not self.coordinator.is_lockable(path):
                check.allowed.append(path)
                continue
            record = self.coordinator.query(path)
            if record is None or self.coordinator.is_owned_by_me(record):
                check.allowed.append(path)
                continue
            message = f"Cannot save '{path}': locked by '{record.owner.name}'."
            self.logger.warning(message)
            check.blocked.append(BlockedSave(path=path, record=record, message=message))
        return check

    def is_open_for_edit(self, path: str) -> tuple[bool, str]:
        """Whether the current user may edit ``path``, with a message when not."""
        if not self.enabled:
            return True, ""
        resource_path = self.coordinator.resource_path_for(path)
        if not self.coordinator.is_lockable(resource_path):
            return True, ""
        record = self.coordinator.query(resource_path)
        if record is None or self.coordinator.is_owned_by_me(record):
            return True, ""
        return False, f"Locked by '{record.owner.name}'"
