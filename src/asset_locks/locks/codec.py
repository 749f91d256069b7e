"""Reversible mapping from resource paths to lock file names.

Paths are normalized to forward slashes, UTF-8 encoded and written as
URL-safe base64 without padding, so the identifier never contains a path
separator and is safe as a file name on every platform git supports.
"""

from __future__ import annotations

import base64
import binascii
import re

from asset_locks.core.constants import LOCK_FILE_SUFFIX

_IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


def normalize(path: str) -> str:
    """Return the canonical forward-slash form of a resource path."""
    return path.replace("\\", "/")


def encode(path: str | None) -> str | None:
    """Encode a resource path into a storage-safe identifier.

    Returns None for None or empty input.
    """
    if not path:
        return None
    raw = normalize(path).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def decode(identifier: str | None) -> str | None:
    """Decode an identifier produced by :func:`encode`.

    Returns None for empty or malformed input instead of raising.
    """
    if not identifier or not _IDENTIFIER_PATTERN.match(identifier):
        return None
    padding = -len(identifier) % 4
    try:
        raw = base64.b64decode(identifier + "=" * padding, altchars=b"-_", validate=True)
        return raw.decode("utf-8")
    except (binascii.Error, ValueError):
        return None


def lock_file_name(path: str | None) -> str | None:
    """File name of the lock record for a resource path."""
    encoded = encode(path)
    if encoded is None:
        return None
    return f"{encoded}{LOCK_FILE_SUFFIX}"


def path_from_lock_file_name(file_name: str) -> str | None:
    """Recover the resource path from a lock record file name."""
    encoded = file_name
    if encoded.endswith(LOCK_FILE_SUFFIX):
        encoded = encoded[: -len(LOCK_FILE_SUFFIX)]
    return decode(encoded)
