"""Team roster shared through the coordination directory."""

from asset_locks.team.roster import TeamData, TeamMember, TeamRoster

__all__ = ["TeamData", "TeamMember", "TeamRoster"]
