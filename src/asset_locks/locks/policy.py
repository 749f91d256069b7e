"""Lockable-resource predicate based on an extension allow-list."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import PurePosixPath

from asset_locks.core.config import parse_extension_list
from asset_locks.core.constants import DEFAULT_LOCKABLE_EXTENSIONS
from asset_locks.locks import codec


class LockablePolicy:
    """Decides whether a resource type is eligible for locking.

    Text and code files are mergeable and stay off the list; the default
    covers scenes, prefabs, materials, images, 3D models, audio and
    animation assets.
    """

    def __init__(self, extensions: Iterable[str] | None = None):
        normalized = parse_extension_list(tuple(extensions)) if extensions is not None else None
        self.extensions: frozenset[str] = frozenset(normalized or DEFAULT_LOCKABLE_EXTENSIONS)

    def is_lockable(self, resource_path: str | None) -> bool:
        if not resource_path:
            return False
        suffix = PurePosixPath(codec.normalize(resource_path)).suffix.lower()
        return bool(suffix) and suffix in self.extensions

    def __call__(self, resource_path: str | None) -> bool:
        return self.is_lockable(resource_path)

    def __repr__(self) -> str:
        return f"LockablePolicy({sorted(self.extensions)!r})"
