"""Composition root: wires one coordinator and its collaborators for a repository."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path

from asset_locks.core.config import CoordinatorConfig
from asset_locks.core.exceptions import CoordinationUnavailableError
from asset_locks.git.vcs import GitVersionControl, VersionControl
from asset_locks.locks.cache import LockCache
from asset_locks.locks.coordinator import LockCoordinator
from asset_locks.locks.history import LockHistory
from asset_locks.locks.layout import CoordinationLayout
from asset_locks.locks.policy import LockablePolicy
from asset_locks.locks.protection import SaveProtection
from asset_locks.locks.settings import SettingsStore
from asset_locks.locks.store import LockRecordStore
from asset_locks.locks.sync import SyncCoordinator
from asset_locks.team.roster import TeamRoster


@dataclass
class LockSession:
    """Everything a front end needs to work with locks in one repository."""

    vcs: VersionControl
    layout: CoordinationLayout
    settings: SettingsStore
    coordinator: LockCoordinator
    history: LockHistory
    sync: SyncCoordinator
    protection: SaveProtection
    team: TeamRoster

    @classmethod
    def open(
        cls,
        vcs: VersionControl | None = None,
        config: CoordinatorConfig | None = None,
        logger: logging.Logger | None = None,
    ) -> LockSession:
        """Compose a session.

        Extension allow-list precedence: ``config`` (CLI or environment), then
        ``lockable_extensions`` in the shared settings file, then the defaults.

        Raises:
            CoordinationUnavailableError: no repository root and no configured root
        """
        config = config or CoordinatorConfig()
        if vcs is None:
            vcs = GitVersionControl(config.root)
        logger = logger or logging.getLogger("asset_locks")

        root = vcs.repository_root() or config.root
        if root is None:
            raise CoordinationUnavailableError()
        layout = CoordinationLayout(Path(root))

        settings = SettingsStore(layout.config_file, logger=logger.getChild("settings"))
        extensions = config.lockable_extensions or settings.settings.lockable_extensions
        policy = LockablePolicy(extensions)

        history = LockHistory(
            layout.history_file,
            vcs,
            max_entries=config.max_history_entries,
            logger=logger.getChild("history"),
        )
        coordinator = LockCoordinator(
            vcs,
            root=layout.root,
            policy=policy,
            cache=LockCache(),
            store=LockRecordStore(layout.locks_dir, logger=logger.getChild("store")),
            history=history,
            lease=timedelta(hours=config.lease_hours),
            logger=logger.getChild("coordinator"),
        )
        team = TeamRoster(layout.team_file, vcs, project_name=layout.root.name, logger=logger.getChild("team"))
        sync = SyncCoordinator(coordinator, dependents=(history, settings, team), logger=logger.getChild("sync"))
        protection = SaveProtection(coordinator, settings, logger=logger.getChild("protection"))
        logger.debug(f"Opened lock session at {layout.root} with {policy!r}")

        return cls(
            vcs=vcs,
            layout=layout,
            settings=settings,
            coordinator=coordinator,
            history=history,
            sync=sync,
            protection=protection,
            team=team,
        )
