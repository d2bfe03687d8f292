"""
Substitute assignment workflow.

An assignment proposes borrowing one player from a source team for a
requesting team. Its lifecycle:

    pending --approve--> approved
    pending --reject-->  rejected

approved and rejected are terminal. The archived flag is independent of
status and can be set from any of the three.

Deciding is the one race that matters: two eligible approvers may act on
the same pending assignment at once. The status change is a single
conditional UPDATE guarded by ``status = 'pending'``, so whichever
transaction commits first wins and the other sees zero affected rows and
reports AlreadyDecided.
"""

import logging
from typing import Iterable, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from subdesk.db.models import SubstituteAssignment, utc_now
from subdesk.errors import (
    AlreadyDecided,
    AlreadyOnTeam,
    InvalidStatus,
    NotArchived,
    NotFound,
    NotRosterMember,
    SameTeam,
)
from subdesk.statuses import APPROVED, PENDING, can_transition, decision_to_status
from subdesk.stores.roster import RosterMember, RosterStore, TeamRef

logger = logging.getLogger(__name__)


def parse_decision(raw: str) -> str:
    """Map an 'approve'/'reject' decision to its target status."""
    try:
        return decision_to_status(raw)
    except ValueError as exc:
        raise InvalidStatus(str(exc), decision=raw) from exc


def ensure_distinct_teams(requesting_team_id: int, source_team_id: int) -> None:
    """A team can never borrow from itself."""
    if requesting_team_id == source_team_id:
        raise SameTeam(
            "The substitute must come from a different team than the requesting team",
            team_id=requesting_team_id,
        )


class AssignmentWorkflow:
    """Creates, decides, archives and deletes SubstituteAssignment rows."""

    def __init__(self, db: Session, roster: RosterStore):
        self.db = db
        self.roster = roster

    # =========================================================================
    # Lookups
    # =========================================================================

    def get(self, assignment_id: int, for_update: bool = False) -> SubstituteAssignment:
        assignment = self.db.get(
            SubstituteAssignment,
            assignment_id,
            with_for_update=for_update,
        )
        if assignment is None:
            raise NotFound(
                f"Substitute assignment {assignment_id} not found",
                assignment_id=assignment_id,
            )
        return assignment

    def list_by_team(self, team_id: int, include_archived: bool = False) -> list[SubstituteAssignment]:
        query = select(SubstituteAssignment).where(SubstituteAssignment.team_id == team_id)
        if not include_archived:
            query = query.where(SubstituteAssignment.archived.is_(False))
        return self._all(query)

    def list_approved(self, include_archived: bool = False) -> list[SubstituteAssignment]:
        query = select(SubstituteAssignment).where(SubstituteAssignment.status == APPROVED)
        if not include_archived:
            query = query.where(SubstituteAssignment.archived.is_(False))
        return self._all(query)

    def list_archived(self) -> list[SubstituteAssignment]:
        return self._all(
            select(SubstituteAssignment).where(SubstituteAssignment.archived.is_(True))
        )

    def list_pending(
        self,
        source_team_ids: Optional[Iterable[int]] = None,
        include_archived: bool = False,
    ) -> list[SubstituteAssignment]:
        """Pending assignments, optionally limited to the given source teams."""
        query = select(SubstituteAssignment).where(SubstituteAssignment.status == PENDING)
        if source_team_ids is not None:
            query = query.where(SubstituteAssignment.substitute_team_id.in_(list(source_team_ids)))
        if not include_archived:
            query = query.where(SubstituteAssignment.archived.is_(False))
        return self._all(query)

    def _all(self, query) -> list[SubstituteAssignment]:
        query = query.order_by(SubstituteAssignment.created_at.desc(), SubstituteAssignment.id.desc())
        return list(self.db.execute(query).scalars())

    def candidates(self, requesting: TeamRef, source: TeamRef) -> list[RosterMember]:
        """
        Players of ``source`` who could be borrowed by ``requesting``.

        Members who also sit on the requesting team's roster are left out;
        they are not a borrowed replacement. propose() applies the same rule.
        """
        ensure_distinct_teams(requesting.id, source.id)
        own_players = {member.id for member in self.roster.members_of(requesting.id)}
        return [m for m in self.roster.members_of(source.id) if m.id not in own_players]

    def ensure_borrowable(self, requesting: TeamRef, source: TeamRef, player_id: str) -> None:
        """
        Raises:
            NotRosterMember: the player is not on the source team's roster
            AlreadyOnTeam: the player already plays for the requesting team
        """
        if not self.roster.is_member(source.id, player_id):
            raise NotRosterMember(
                f"Player {player_id} is not on the roster of {source.name}",
                player_id=player_id,
                team_id=source.id,
            )
        if self.roster.is_member(requesting.id, player_id):
            raise AlreadyOnTeam(
                f"Player {player_id} already plays for {requesting.name}",
                player_id=player_id,
                team_id=requesting.id,
            )

    # =========================================================================
    # Mutations
    # =========================================================================

    def propose(
        self,
        team: TeamRef,
        source: TeamRef,
        substitute_player_id: str,
        requested_by: str,
        notes: Optional[str] = None,
        request_id: Optional[int] = None,
    ) -> SubstituteAssignment:
        """
        Create a pending assignment.

        Raises:
            SameTeam: requesting and source team are the same
            NotRosterMember: the player is not on the source team's roster
            AlreadyOnTeam: the player is on the requesting team's roster too
        """
        ensure_distinct_teams(team.id, source.id)
        self.ensure_borrowable(team, source, substitute_player_id)

        assignment = SubstituteAssignment(
            request_id=request_id,
            team_id=team.id,
            team_name=team.name,
            substitute_team_id=source.id,
            substitute_team_name=source.name,
            substitute_player_id=substitute_player_id,
            requested_by=requested_by,
            status=PENDING,
            notes=notes,
            archived=False,
        )
        self.db.add(assignment)
        self.db.flush()
        return assignment

    def decide(self, assignment_id: int, decision: str, decided_by: str) -> SubstituteAssignment:
        """
        Move a pending assignment to approved or rejected.

        Raises:
            InvalidStatus: unknown decision
            NotFound: no such assignment
            AlreadyDecided: the assignment is no longer pending
        """
        target = parse_decision(decision)
        current = self.get(assignment_id, for_update=True)
        if not can_transition(current.status, target):
            raise self._already_decided(current)

        now = utc_now()
        result = self.db.execute(
            update(SubstituteAssignment)
            .where(
                SubstituteAssignment.id == assignment_id,
                SubstituteAssignment.status == PENDING,
            )
            .values(status=target, approved_by=decided_by, decided_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        refreshed = self.db.get(SubstituteAssignment, assignment_id, populate_existing=True)
        if result.rowcount != 1:
            # Lost the race: another decision committed between our read and write
            raise self._already_decided(refreshed or current)
        return refreshed

    @staticmethod
    def _already_decided(assignment: SubstituteAssignment) -> AlreadyDecided:
        return AlreadyDecided(
            f"Substitute assignment {assignment.id} is already {assignment.status}",
            assignment_id=assignment.id,
            status=assignment.status,
        )

    def archive(self, assignment: SubstituteAssignment) -> SubstituteAssignment:
        if not assignment.archived:
            assignment.archived = True
            assignment.updated_at = utc_now()
            self.db.flush()
        return assignment

    def delete_archived(self, assignment: SubstituteAssignment) -> None:
        """
        Permanently remove an archived assignment.

        Raises:
            NotArchived: archive the assignment first
        """
        if not assignment.archived:
            raise NotArchived(
                f"Substitute assignment {assignment.id} must be archived before it can be deleted",
                assignment_id=assignment.id,
            )
        self.db.delete(assignment)
        self.db.flush()
