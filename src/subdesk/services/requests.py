"""
Substitute request register.

A request records that one roster member needs a replacement, optionally
for a specific fixture. Requests are upserted by natural key
(team_id, player_id, fixture_id) so repeated client retries never create
duplicates.

Linkage to assignments:
    An assignment is attached to a request when its request_id points at
    the request. Team-wide, an assignment without a request_id also
    belongs to every open request of its requesting team. Archiving a
    request archives every team-wide linked assignment, and deleting a
    request is refused while any of them is still active.

    Withdrawing a request (the player is available again) only looks at
    attached assignments: an approved one keeps the request archived for
    the record, otherwise the request is discarded. Other players' needs
    are never touched.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from sqlalchemy import and_, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import ColumnElement

from subdesk.db.models import SubstituteAssignment, SubstituteRequest, utc_now
from subdesk.errors import HasActiveAssignments, NotFound
from subdesk.statuses import APPROVED
from subdesk.stores.roster import TeamRef

logger = logging.getLogger(__name__)


@dataclass
class RequestArchival:
    """Outcome of archiving a request and cascading to its assignments."""
    request: SubstituteRequest
    archived_assignment_ids: list[int] = field(default_factory=list)


def linked_assignments_clause(
    request: SubstituteRequest,
    team_wide: bool = True,
) -> ColumnElement[bool]:
    """SQL condition selecting the assignments linked to ``request``."""
    if not team_wide:
        return SubstituteAssignment.request_id == request.id
    return or_(
        SubstituteAssignment.request_id == request.id,
        and_(
            SubstituteAssignment.request_id.is_(None),
            SubstituteAssignment.team_id == request.team_id,
        ),
    )


class SubstituteRequestRegister:
    """Reads and writes SubstituteRequest rows."""

    def __init__(self, db: Session):
        self.db = db

    # =========================================================================
    # Lookups
    # =========================================================================

    def get(self, request_id: int, for_update: bool = False) -> SubstituteRequest:
        request = self.db.get(SubstituteRequest, request_id, with_for_update=for_update)
        if request is None:
            raise NotFound(f"Substitute request {request_id} not found", request_id=request_id)
        return request

    def find_open(
        self,
        team_id: int,
        player_id: str,
        fixture_id: Optional[int],
        for_update: bool = False,
    ) -> Optional[SubstituteRequest]:
        """Return the non-archived request for the natural key, if any."""
        fixture_clause = (
            SubstituteRequest.fixture_id.is_(None)
            if fixture_id is None
            else SubstituteRequest.fixture_id == fixture_id
        )
        query = (
            select(SubstituteRequest)
            .where(
                SubstituteRequest.team_id == team_id,
                SubstituteRequest.player_id == player_id,
                fixture_clause,
                SubstituteRequest.archived.is_(False),
            )
            .order_by(SubstituteRequest.id)
        )
        if for_update:
            query = query.with_for_update()
        return self.db.execute(query).scalars().first()

    def linked_assignments(
        self,
        request: SubstituteRequest,
        include_archived: bool = False,
        team_wide: bool = True,
    ) -> list[SubstituteAssignment]:
        query = select(SubstituteAssignment).where(linked_assignments_clause(request, team_wide))
        if not include_archived:
            query = query.where(SubstituteAssignment.archived.is_(False))
        return list(self.db.execute(query.order_by(SubstituteAssignment.id)).scalars())

    def has_active_assignments(self, request: SubstituteRequest) -> bool:
        return bool(self.linked_assignments(request))

    def has_approved_assignments(self, request: SubstituteRequest) -> bool:
        """True if an active assignment attached to ``request`` was approved."""
        return any(
            a.status == APPROVED
            for a in self.linked_assignments(request, team_wide=False)
        )

    def list_requests(
        self,
        team_id: Optional[int] = None,
        include_archived: bool = False,
        fixture_id: Optional[int] = None,
        player_id: Optional[str] = None,
    ) -> list[SubstituteRequest]:
        query = select(SubstituteRequest)
        if team_id is not None:
            query = query.where(SubstituteRequest.team_id == team_id)
        if fixture_id is not None:
            query = query.where(SubstituteRequest.fixture_id == fixture_id)
        if player_id is not None:
            query = query.where(SubstituteRequest.player_id == player_id)
        if not include_archived:
            query = query.where(SubstituteRequest.archived.is_(False))
        query = query.order_by(
            SubstituteRequest.valid_until,
            SubstituteRequest.team_name,
            SubstituteRequest.id,
        )
        return list(self.db.execute(query).scalars())

    def expired(self, before: date) -> list[SubstituteRequest]:
        """Open requests whose valid_until lies strictly before ``before``."""
        query = (
            select(SubstituteRequest)
            .where(
                SubstituteRequest.archived.is_(False),
                SubstituteRequest.valid_until < before,
            )
            .order_by(SubstituteRequest.valid_until, SubstituteRequest.id)
        )
        return list(self.db.execute(query).scalars())

    # =========================================================================
    # Mutations
    # =========================================================================

    def upsert(
        self,
        team: TeamRef,
        player_id: str,
        fixture_id: Optional[int],
        needs_substitute: bool,
        notes: Optional[str],
        valid_until: date,
        marked_by: str,
    ) -> tuple[SubstituteRequest, bool]:
        """
        Overwrite the open request for the natural key, or create one.

        Returns:
            Tuple of (request, created)
        """
        existing = self.find_open(team.id, player_id, fixture_id, for_update=True)
        if existing is not None:
            self._overwrite(existing, team, needs_substitute, notes, valid_until, marked_by)
            return existing, False

        try:
            with self.db.begin_nested():
                request = SubstituteRequest(
                    team_id=team.id,
                    team_name=team.name,
                    player_id=player_id,
                    fixture_id=fixture_id,
                    needs_substitute=needs_substitute,
                    notes=notes,
                    valid_until=valid_until,
                    archived=False,
                    marked_by=marked_by,
                )
                self.db.add(request)
            return request, True
        except IntegrityError:
            # Another caller created the same open request first
            existing = self.find_open(team.id, player_id, fixture_id, for_update=True)
            if existing is None:
                raise
            logger.info(
                "Concurrent request insert for team=%s player=%s fixture=%s; updating instead",
                team.id, player_id, fixture_id,
            )
            self._overwrite(existing, team, needs_substitute, notes, valid_until, marked_by)
            return existing, False

    def _overwrite(
        self,
        request: SubstituteRequest,
        team: TeamRef,
        needs_substitute: bool,
        notes: Optional[str],
        valid_until: date,
        marked_by: str,
    ) -> None:
        request.team_name = team.name
        request.needs_substitute = needs_substitute
        request.notes = notes
        request.valid_until = valid_until
        request.marked_by = marked_by
        request.updated_at = utc_now()
        self.db.flush()

    def delete(self, request: SubstituteRequest) -> None:
        """
        Hard-delete a request that has no active linked assignments.

        Raises:
            HasActiveAssignments: archive the request instead
        """
        active = self.linked_assignments(request)
        if active:
            raise HasActiveAssignments(
                f"Substitute request {request.id} has {len(active)} active assignment(s); archive it instead",
                request_id=request.id,
                assignment_ids=[a.id for a in active],
            )
        self.db.delete(request)
        self.db.flush()

    def discard(self, request: SubstituteRequest) -> list[int]:
        """
        Delete a withdrawn request.

        Open proposals attached to it lose their purpose and are archived;
        the foreign key then clears their request_id. Team-wide linked
        assignments stay as they are.

        Returns:
            Ids of the attached assignments that were archived
        """
        assignment_ids = self._archive_assignments(
            self.linked_assignments(request, team_wide=False)
        )
        self.db.delete(request)
        self.db.flush()
        return assignment_ids

    def archive(self, request: SubstituteRequest, team_wide: bool = True) -> RequestArchival:
        """
        Archive the request and its linked assignments that are not archived yet.

        team_wide=False limits the cascade to assignments attached by request_id.
        """
        request.archived = True
        request.updated_at = utc_now()
        assignment_ids = self._archive_assignments(
            self.linked_assignments(request, team_wide=team_wide)
        )
        self.db.flush()
        return RequestArchival(request=request, archived_assignment_ids=assignment_ids)

    def _archive_assignments(self, assignments: list[SubstituteAssignment]) -> list[int]:
        assignment_ids = [a.id for a in assignments]
        if assignment_ids:
            self.db.execute(
                update(SubstituteAssignment)
                .where(SubstituteAssignment.id.in_(assignment_ids))
                .values(archived=True, updated_at=utc_now())
                .execution_options(synchronize_session="fetch")
            )
        return assignment_ids
