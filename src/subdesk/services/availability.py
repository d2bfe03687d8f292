"""
Availability ledger: per (fixture, player) status records.

The ledger only stores and reads records. Permission checks and the
mirroring of 'substitute_needed' into the request register are done by
the coordination service, which calls into this class inside its own
transaction.
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from subdesk.db.models import AvailabilityRecord, utc_now
from subdesk.errors import InvalidStatus, NotAFixtureParticipant
from subdesk.statuses import normalize_availability_status
from subdesk.stores.fixtures import FixtureRef
from subdesk.stores.roster import RosterStore, TeamRef

logger = logging.getLogger(__name__)


def parse_status(raw: str) -> str:
    """Canonical availability status, or InvalidStatus."""
    try:
        return normalize_availability_status(raw)
    except ValueError as exc:
        raise InvalidStatus(str(exc), status=raw) from exc


class AvailabilityLedger:
    """
    Reads and writes AvailabilityRecord rows.

    Usage:
        ledger = AvailabilityLedger(db_session, roster_store)
        team = ledger.resolve_player_team(fixture, "p-17")
        record, previous = ledger.upsert(fixture.id, "p-17", team.id, "unavailable")
    """

    def __init__(self, db: Session, roster: RosterStore):
        self.db = db
        self.roster = roster

    def resolve_player_team(
        self,
        fixture: FixtureRef,
        player_id: str,
        team_id: Optional[int] = None,
    ) -> TeamRef:
        """
        Work out which of the fixture's two teams the player plays for.

        If the caller names a team it must be one of the fixture's teams
        and have the player on its roster. Otherwise the home team is
        tried first, then the away team.

        Raises:
            NotAFixtureParticipant: player is on neither roster
        """
        candidates = [fixture.home_team, fixture.away_team]
        if team_id is not None:
            candidates = [team for team in candidates if team.id == team_id]

        for team in candidates:
            if self.roster.is_member(team.id, player_id):
                return team

        raise NotAFixtureParticipant(
            f"Player {player_id} is not on the roster of a team playing fixture {fixture.id}",
            fixture_id=fixture.id,
            player_id=player_id,
        )

    def get(self, fixture_id: int, player_id: str, for_update: bool = False) -> Optional[AvailabilityRecord]:
        return self.db.get(
            AvailabilityRecord,
            (fixture_id, player_id),
            with_for_update=for_update,
        )

    def upsert(
        self,
        fixture_id: int,
        player_id: str,
        team_id: int,
        status: str,
        notes: Optional[str] = None,
        updated_by: Optional[str] = None,
    ) -> tuple[AvailabilityRecord, Optional[str]]:
        """
        Create or overwrite the record for (fixture_id, player_id).

        Returns:
            Tuple of (record, previous_status); previous_status is None
            when the record did not exist yet.
        """
        status = parse_status(status)
        record = self.get(fixture_id, player_id, for_update=True)

        if record is None:
            try:
                # Savepoint so a lost insert race only undoes this insert
                with self.db.begin_nested():
                    record = AvailabilityRecord(
                        fixture_id=fixture_id,
                        player_id=player_id,
                        team_id=team_id,
                        status=status,
                        notes=notes,
                        updated_by=updated_by,
                    )
                    self.db.add(record)
                return record, None
            except IntegrityError:
                logger.info(
                    "Concurrent availability insert for fixture=%s player=%s; updating instead",
                    fixture_id, player_id,
                )
                record = self.db.get(
                    AvailabilityRecord,
                    (fixture_id, player_id),
                    with_for_update=True,
                    populate_existing=True,
                )
                if record is None:
                    raise

        previous = record.status
        record.team_id = team_id
        record.status = status
        record.notes = notes
        record.updated_by = updated_by
        record.updated_at = utc_now()
        self.db.flush()
        return record, previous

    def list_for_fixture(
        self,
        fixture_id: int,
        team_id: Optional[int] = None,
    ) -> list[AvailabilityRecord]:
        query = select(AvailabilityRecord).where(AvailabilityRecord.fixture_id == fixture_id)
        if team_id is not None:
            query = query.where(AvailabilityRecord.team_id == team_id)
        query = query.order_by(AvailabilityRecord.team_id, AvailabilityRecord.player_id)
        return list(self.db.execute(query).scalars())
