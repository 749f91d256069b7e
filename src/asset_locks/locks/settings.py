"""Shared coordination settings stored in ``.coordination/config.json``."""

from __future__ import annotations

import contextlib
import json
import logging
import os
import threading
import uuid
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any

from asset_locks.core.config import parse_extension_list

SETTINGS_VERSION = 1


@dataclass
class CoordinationSettings:
    """Team-wide options committed alongside the lock records.

    Attributes:
        version: Settings schema version
        save_protection: Block saves of resources locked by someone else
        show_overlays: Show lock state next to resources in front ends
        show_notifications: Notify when teammates' locks change
        lockable_extensions: Extension allow-list override, None for defaults
        require_admin_for_force_unlock: Callers check the team roster before forcing
    """

    version: int = SETTINGS_VERSION
    save_protection: bool = True
    show_overlays: bool = True
    show_notifications: bool = True
    lockable_extensions: list[str] | None = None
    require_admin_for_force_unlock: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CoordinationSettings:
        """Build settings from JSON; unknown keys are ignored, missing keys take defaults."""
        known = {f.name for f in fields(cls)}
        values = {key: value for key, value in data.items() if key in known}
        extensions = parse_extension_list(values.pop("lockable_extensions", None))
        return cls(**values, lockable_extensions=list(extensions) if extensions else None)


class SettingsStore:
    """Lazily loaded, cached view of the shared settings file.

    A missing file is created with defaults. A corrupt file yields defaults
    without overwriting it, so a teammate's hand edit is not lost.
    """

    def __init__(self, config_file: Path, logger: logging.Logger | None = None):
        self.config_file = Path(config_file)
        self.logger = logger or logging.getLogger(__name__)
        self._settings: CoordinationSettings | None = None
        self._lock = threading.RLock()

    @property
    def settings(self) -> CoordinationSettings:
        with self._lock:
            if self._settings is None:
                self._settings = self._load()
            return self._settings

    def save(self, settings: CoordinationSettings) -> bool:
        """Persist settings atomically. Returns False when the write failed."""
        with self._lock:
            self._settings = settings
            tmp_path = self.config_file.with_name(f".{self.config_file.name}.{uuid.uuid4().hex}.tmp")
            try:
                self.config_file.parent.mkdir(parents=True, exist_ok=True)
                with open(tmp_path, "w", encoding="utf-8") as f:
                    json.dump(settings.to_dict(), f, indent=2)
                os.replace(tmp_path, self.config_file)
            except OSError as e:
                self.logger.error(f"Failed to save settings to {self.config_file}: {e}")
                with contextlib.suppress(OSError):
                    tmp_path.unlink()
                return False
        return True

    def invalidate_cache(self) -> None:
        with self._lock:
            self._settings = None

    def _load(self) -> CoordinationSettings:
        if not self.config_file.exists():
            settings = CoordinationSettings()
            self.save(settings)
            return settings

        try:
            with open(self.config_file, encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("settings must be a JSON object")
            return CoordinationSettings.from_dict(data)
        except (OSError, UnicodeDecodeError, ValueError, TypeError) as e:
            self.logger.warning(f"Failed to load settings from {self.config_file}, using defaults: {e}")
            return CoordinationSettings()
