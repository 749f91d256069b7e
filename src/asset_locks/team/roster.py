"""Team roster stored in ``.coordination/team.json``.

The roster is informational: the lock engine never consults it. Callers
that want to restrict force-unlocks to admins check :meth:`TeamRoster.is_admin`.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import random
import threading
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from asset_locks.locks.models import utcnow

if TYPE_CHECKING:
    from asset_locks.git.vcs import VersionControl

ROLE_ADMIN = "admin"
ROLE_MEMBER = "member"
ADMIN_COLOR = "#58a6ff"
MEMBER_COLORS = ("#FF6B6B", "#4ECDC4", "#45B7D1", "#96CEB4", "#FFEAA7", "#DDA0DD", "#98D8C8")


@dataclass
class TeamMember:
    name: str
    email: str
    role: str = ROLE_MEMBER
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    joined_at: str = ""
    last_seen: str = ""
    color: str = ""

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def to_dict(self) -> dict[str, str]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "joinedAt": self.joined_at,
            "lastSeen": self.last_seen,
            "color": self.color,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TeamMember:
        return cls(
            id=str(data.get("id") or uuid.uuid4()),
            name=str(data.get("name") or ""),
            email=str(data["email"]),
            role=str(data.get("role") or ROLE_MEMBER),
            joined_at=str(data.get("joinedAt") or ""),
            last_seen=str(data.get("lastSeen") or ""),
            color=str(data.get("color") or ""),
        )


@dataclass
class TeamData:
    project_name: str
    members: list[TeamMember] = field(default_factory=list)
    created: str = ""
    updated: str = ""
    version: int = 1

    def find(self, email: str) -> TeamMember | None:
        return next((member for member in self.members if member.email == email), None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "projectName": self.project_name,
            "created": self.created,
            "updated": self.updated,
            "members": [member.to_dict() for member in self.members],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TeamData:
        members = data.get("members") or []
        if not isinstance(members, list):
            raise ValueError("members must be a list")
        if not all(isinstance(member, dict) for member in members):
            raise ValueError("every member must be a JSON object")
        return cls(
            version=int(data.get("version", 1)),
            project_name=str(data.get("projectName") or ""),
            created=str(data.get("created") or ""),
            updated=str(data.get("updated") or ""),
            members=[TeamMember.from_dict(member) for member in members],
        )


class TeamRoster:
    """Cached access to the shared team file."""

    def __init__(
        self,
        team_file: Path,
        identity: VersionControl,
        *,
        project_name: str | None = None,
        clock: Callable[[], datetime] = utcnow,
        logger: logging.Logger | None = None,
    ):
        self.team_file = Path(team_file)
        self.identity = identity
        self.project_name = project_name or self.team_file.parent.parent.name
        self.clock = clock
        self.logger = logger or logging.getLogger(__name__)
        self._team: TeamData | None = None
        self._lock = threading.RLock()

    def get_team(self) -> TeamData:
        """Load the roster, creating it with the current user as admin if absent."""
        with self._lock:
            if self._team is not None:
                return self._team

            if not self.team_file.exists():
                team = self._default_team()
                self._save(team)
                return team

            try:
                with open(self.team_file, encoding="utf-8") as f:
                    data = json.load(f)
                if not isinstance(data, dict):
                    raise ValueError("team file must be a JSON object")
                self._team = TeamData.from_dict(data)
            except (OSError, UnicodeDecodeError, ValueError, KeyError, TypeError) as e:
                self.logger.warning(f"Failed to load team from {self.team_file}: {e}")
                return self._default_team()
            return self._team

    def add_member(self, name: str, email: str, role: str = ROLE_MEMBER) -> bool:
        """Add a member. Returns False when the email is already on the roster."""
        with self._lock:
            team = self.get_team()
            if team.find(email) is not None:
                self.logger.warning(f"Member already exists: {email}")
                return False
            now = self.clock().isoformat()
            team.members.append(
                TeamMember(
                    name=name,
                    email=email,
                    role=role,
                    joined_at=now,
                    last_seen=now,
                    color=random.choice(MEMBER_COLORS),
                )
            )
            self._save(team)
        self.logger.info(f"Added team member {name} <{email}> as {role}")
        return True

    def remove_member(self, email: str) -> bool:
        """Remove a member by email. Returns False when nobody matched."""
        with self._lock:
            team = self.get_team()
            remaining = [member for member in team.members if member.email != email]
            if len(remaining) == len(team.members):
                return False
            team.members = remaining
            self._save(team)
        self.logger.info(f"Removed team member {email}")
        return True

    def detect_from_history(self) -> list[TeamMember]:
        """Unique commit authors, in order of first appearance. Not added to the roster."""
        seen = set()
        detected = []
        for name, email in self.identity.commit_authors():
            if email in seen:
                continue
            seen.add(email)
            detected.append(TeamMember(name=name, email=email, color=random.choice(MEMBER_COLORS)))
        return detected

    def is_admin(self, email: str) -> bool:
        member = self.get_team().find(email)
        return member is not None and member.is_admin

    def is_current_user_admin(self) -> bool:
        return self.is_admin(self.identity.current_user_email())

    def invalidate_cache(self) -> None:
        with self._lock:
            self._team = None

    def _default_team(self) -> TeamData:
        now = self.clock().isoformat()
        admin = TeamMember(
            name=self.identity.current_user_name(),
            email=self.identity.current_user_email(),
            role=ROLE_ADMIN,
            joined_at=now,
            last_seen=now,
            color=ADMIN_COLOR,
        )
        return TeamData(project_name=self.project_name, members=[admin], created=now, updated=now)

    def _save(self, team: TeamData) -> None:
        team.updated = self.clock().isoformat()
        self._team = team
        tmp_path = self.team_file.with_name(f".{self.team_file.name}.{uuid.uuid4().hex}.tmp")
        try:
            self.team_file.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(team.to_dict(), f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.team_file)
        except OSError as e:
            self.logger.error(f"Failed to save team to {self.team_file}: {e}")
            with contextlib.suppress(OSError):
                tmp_path.unlink()
