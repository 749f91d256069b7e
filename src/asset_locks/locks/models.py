"""Data model for lock records, history entries and operation results."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from asset_locks.core.constants import DEFAULT_LOCK_REASON, LOCK_SCHEMA_VERSION


def utcnow() -> datetime:
    return datetime.now(UTC)


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _format_elapsed(since: datetime | None, now: datetime, *, compact: bool) -> str:
    if since is None:
        return "Unknown"
    elapsed = (now - since).total_seconds()
    minutes = elapsed / 60
    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return f"{int(minutes)}m ago" if compact else f"{int(minutes)} min ago"
    hours = minutes / 60
    if hours < 24:
        return f"{int(hours)}h ago" if compact else f"{int(hours)} hours ago"
    days = hours / 24
    return f"{int(days)}d ago" if compact else f"{int(days)} days ago"


class LockErrorKind(Enum):
    """Failure and diagnostic kinds reported by lock operations."""

    NOT_COORDINATED = "not_coordinated"
    NOT_LOCKABLE = "not_lockable"
    ALREADY_LOCKED_BY_ME = "already_locked_by_me"
    LOCKED_BY_OTHER = "locked_by_other"
    NOT_LOCKED = "not_locked"
    NOT_OWNER = "not_owner"
    CORRUPT_RECORD = "corrupt_record"
    STAGING_FAILED = "staging_failed"
    IO_FAILURE = "io_failure"


class HistoryAction(Enum):
    LOCK = "lock"
    UNLOCK = "unlock"
    FORCE_UNLOCK = "force_unlock"


@dataclass(frozen=True)
class LockOwner:
    """Identity of a lock holder. The email is the stable identity key."""

    name: str
    email: str

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "email": self.email}


@dataclass(frozen=True)
class LockRecord:
    """One resource's current lock, persisted as a single JSON file.

    Records are never patched in place; a new lock replaces the file wholesale.
    """

    resource_path: str
    owner: LockOwner
    locked_at: str
    expires_at: str
    content_hash: str = ""
    reason: str = DEFAULT_LOCK_REASON
    branch: str = ""
    machine_id: str = ""
    schema_version: int = LOCK_SCHEMA_VERSION

    def is_owned_by(self, email: str | None) -> bool:
        return email is not None and self.owner.email == email

    def is_expired(self, now: datetime | None = None) -> bool:
        """True once the clock passes ``expires_at``. Unparseable expiry never expires."""
        expiry = parse_timestamp(self.expires_at)
        if expiry is None:
            return False
        return (now or utcnow()) > expiry

    def time_since_lock(self, now: datetime | None = None) -> str:
        return _format_elapsed(parse_timestamp(self.locked_at), now or utcnow(), compact=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "schemaVersion": self.schema_version,
            "resourcePath": self.resource_path,
            "contentHash": self.content_hash,
            "owner": self.owner.to_dict(),
            "lockedAt": self.locked_at,
            "expiresAt": self.expires_at,
            "reason": self.reason,
            "branch": self.branch,
            "machineId": self.machine_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LockRecord | None:
        """Build a record from its serialized form; None when required fields are missing."""
        try:
            owner_data = data["owner"]
            if not isinstance(owner_data, dict):
                return None
            resource_path = str(data["resourcePath"])
            if not resource_path:
                return None
            return cls(
                resource_path=resource_path,
                owner=LockOwner(name=str(owner_data.get("name", "")), email=str(owner_data["email"])),
                locked_at=str(data["lockedAt"]),
                expires_at=str(data.get("expiresAt", "")),
                content_hash=str(data.get("contentHash") or ""),
                reason=str(data.get("reason") or DEFAULT_LOCK_REASON),
                branch=str(data.get("branch") or ""),
                machine_id=str(data.get("machineId") or ""),
                schema_version=int(data.get("schemaVersion", LOCK_SCHEMA_VERSION)),
            )
        except (KeyError, TypeError, ValueError):
            return None


@dataclass(frozen=True)
class HistoryEntry:
    """Immutable audit record of a lock or unlock action."""

    action: HistoryAction
    resource_path: str
    user: str
    email: str
    timestamp: str
    reason: str = ""
    branch: str = ""

    def formatted_time(self, now: datetime | None = None) -> str:
        return _format_elapsed(parse_timestamp(self.timestamp), now or utcnow(), compact=True)

    def to_dict(self) -> dict[str, str]:
        return {
            "action": self.action.value,
            "resourcePath": self.resource_path,
            "user": self.user,
            "email": self.email,
            "reason": self.reason,
            "timestamp": self.timestamp,
            "branch": self.branch,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HistoryEntry | None:
        try:
            return cls(
                action=HistoryAction(data["action"]),
                resource_path=str(data["resourcePath"]),
                user=str(data.get("user") or ""),
                email=str(data.get("email") or ""),
                timestamp=str(data.get("timestamp") or ""),
                reason=str(data.get("reason") or ""),
                branch=str(data.get("branch") or ""),
            )
        except (KeyError, TypeError, ValueError):
            return None


@dataclass(frozen=True)
class LockDiagnostic:
    """Non-fatal condition observed while serving an operation."""

    kind: LockErrorKind
    message: str
    resource_path: str | None = None


@dataclass
class LockResult:
    """Outcome of a lock operation.

    Operations never raise for expected conditions; callers inspect
    ``success`` and ``error`` instead, which lets batches aggregate
    partial failures.
    """

    success: bool
    message: str
    resource_path: str | None = None
    record: LockRecord | None = None
    error: LockErrorKind | None = None
    owner_name: str | None = None
    diagnostics: list[LockDiagnostic] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.success

    @classmethod
    def ok(cls, message: str, resource_path: str, record: LockRecord | None = None) -> LockResult:
        return cls(success=True, message=message, resource_path=resource_path, record=record)

    @classmethod
    def fail(
        cls,
        error: LockErrorKind,
        message: str,
        resource_path: str | None,
        *,
        owner_name: str | None = None,
        record: LockRecord | None = None,
    ) -> LockResult:
        return cls(
            success=False,
            message=message,
            resource_path=resource_path,
            error=error,
            owner_name=owner_name,
            record=record,
        )
