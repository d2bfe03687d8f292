"""
Roster store: which members belong to which teams, and who captains them.

The coordination service only reads rosters. The SQL implementation
shares the caller's session so roster checks and the writes they guard
happen inside one transaction.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from subdesk.db.models import Member, Team, TeamMember


@dataclass(frozen=True)
class TeamRef:
    """Stable id plus the current display name of a team."""
    id: int
    name: str


@dataclass(frozen=True)
class RosterMember:
    """One entry of a team's roster."""
    id: str
    display_name: str
    is_captain: bool = False


class RosterStore(Protocol):
    def get_team(self, team_id: int) -> Optional[TeamRef]: ...

    def find_team_by_name(self, name: str) -> Optional[TeamRef]: ...

    def members_of(self, team_id: int) -> list[RosterMember]: ...

    def is_member(self, team_id: int, player_id: str) -> bool: ...

    def teams_of(self, player_id: str) -> list[TeamRef]: ...

    def captain_teams(self, user_id: str) -> frozenset[int]: ...


class SqlRosterStore:
    """RosterStore backed by the teams/members/team_members tables."""

    def __init__(self, db: Session):
        self.db = db

    def get_team(self, team_id: int) -> Optional[TeamRef]:
        team = self.db.get(Team, team_id)
        if team is None:
            return None
        return TeamRef(id=team.id, name=team.name)

    def find_team_by_name(self, name: str) -> Optional[TeamRef]:
        team = self.db.execute(
            select(Team).where(Team.name == name.strip())
        ).scalar_one_or_none()
        if team is None:
            return None
        return TeamRef(id=team.id, name=team.name)

    def members_of(self, team_id: int) -> list[RosterMember]:
        rows = self.db.execute(
            select(Member.id, Member.display_name, TeamMember.is_captain)
            .join(TeamMember, TeamMember.member_id == Member.id)
            .where(TeamMember.team_id == team_id)
            .order_by(Member.display_name, Member.id)
        ).all()
        return [
            RosterMember(id=row.id, display_name=row.display_name, is_captain=bool(row.is_captain))
            for row in rows
        ]

    def is_member(self, team_id: int, player_id: str) -> bool:
        return self.db.get(TeamMember, (team_id, player_id)) is not None

    def teams_of(self, player_id: str) -> list[TeamRef]:
        rows = self.db.execute(
            select(Team.id, Team.name)
            .join(TeamMember, TeamMember.team_id == Team.id)
            .where(TeamMember.member_id == player_id)
            .order_by(Team.name)
        ).all()
        return [TeamRef(id=row.id, name=row.name) for row in rows]

    def captain_teams(self, user_id: str) -> frozenset[int]:
        team_ids = self.db.execute(
            select(TeamMember.team_id).where(
                TeamMember.member_id == user_id,
                TeamMember.is_captain.is_(True),
            )
        ).scalars()
        return frozenset(team_ids)
