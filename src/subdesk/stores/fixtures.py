"""Fixture store: read access to scheduled matches."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, time
from typing import Optional, Protocol

from sqlalchemy.orm import Session

from subdesk.db.models import Fixture
from subdesk.stores.roster import TeamRef


@dataclass(frozen=True)
class FixtureRef:
    """A scheduled match and its two participating teams."""
    id: int
    home_team: TeamRef
    away_team: TeamRef
    match_date: date
    match_time: Optional[time] = None

    @property
    def team_ids(self) -> tuple[int, int]:
        return (self.home_team.id, self.away_team.id)

    def involves(self, team_id: int) -> bool:
        return team_id in self.team_ids


class FixtureStore(Protocol):
    def get_fixture(self, fixture_id: int) -> Optional[FixtureRef]: ...


class SqlFixtureStore:
    """FixtureStore backed by the fixtures table."""

    def __init__(self, db: Session):
        self.db = db

    def get_fixture(self, fixture_id: int) -> Optional[FixtureRef]:
        fixture = self.db.get(Fixture, fixture_id)
        if fixture is None:
            return None
        return FixtureRef(
            id=fixture.id,
            home_team=TeamRef(id=fixture.home_team.id, name=fixture.home_team.name),
            away_team=TeamRef(id=fixture.away_team.id, name=fixture.away_team.name),
            match_date=fixture.match_date,
            match_time=fixture.match_time,
        )
