"""
Coordination service: the single entry point for workflow operations.

Every public method runs as one unit of work: a fresh session, the
authorization gate consulted before any write, and one commit at the
end (reads never commit, nor take the write lock on SQLite). Any error
rolls the whole operation back, so multi-row effects
(availability -> request sync, request archival -> assignment cascade)
are never visible half-applied.

Store failures (lost connections, statement or pool timeouts) surface as
StoreUnavailable. Every other error kind propagates unchanged so callers
can tell them apart.

Usage:
    from subdesk.services import CoordinationService

    service = CoordinationService()
    user = service.resolve_acting_user("u-42", ["captain"])
    change = service.set_availability(fixture_id=7, player_id="p-3",
                                      status="substitute_needed", notes=None,
                                      acting_user=user)
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, Generator, Iterable, Optional
from zoneinfo import ZoneInfo

from sqlalchemy.exc import OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, sessionmaker

from subdesk.access import gate
from subdesk.access.roles import ActingUser
from subdesk.config import settings
from subdesk.db.models import AvailabilityRecord, SubstituteAssignment, SubstituteRequest
from subdesk.db.session import READ_ONLY_OPTION, get_session_factory
from subdesk.errors import (
    CoordinationError,
    Forbidden,
    InvalidDeadline,
    NotAFixtureParticipant,
    NotFound,
    NotRosterMember,
    StoreUnavailable,
)
from subdesk.services.assignments import AssignmentWorkflow, ensure_distinct_teams
from subdesk.services.audit import SYSTEM_ACTOR, record_action
from subdesk.services.availability import AvailabilityLedger, parse_status
from subdesk.services.requests import RequestArchival, SubstituteRequestRegister
from subdesk.statuses import SUBSTITUTE_NEEDED
from subdesk.stores.fixtures import FixtureRef, FixtureStore, SqlFixtureStore
from subdesk.stores.roster import RosterMember, RosterStore, SqlRosterStore, TeamRef

logger = logging.getLogger(__name__)

DEADLINE_PASSED = "the matchday has passed; only administrators and board members can still make changes"


def club_today(timezone_name: Optional[str] = None) -> date:
    """Today's date in the club's timezone."""
    return datetime.now(ZoneInfo(timezone_name or settings.club_timezone)).date()


@dataclass
class AvailabilityChange:
    """
    Result of set_availability().

    request_action tells what happened to the mirrored substitute request:
    'created', 'updated', 'archived', 'deleted', or None if untouched.
    """
    record: AvailabilityRecord
    previous_status: Optional[str]
    request: Optional[SubstituteRequest] = None
    request_id: Optional[int] = None
    request_action: Optional[str] = None


@dataclass
class _UnitOfWork:
    db: Session
    roster: RosterStore
    fixtures: FixtureStore
    ledger: AvailabilityLedger
    register: SubstituteRequestRegister
    workflow: AssignmentWorkflow


class CoordinationService:
    """
    Facade over the availability ledger, request register and assignment
    workflow. Holds no state besides its collaborators' factories, so one
    instance can serve concurrent callers.
    """

    def __init__(
        self,
        session_factory: Optional[sessionmaker] = None,
        roster_store_factory: Callable[[Session], RosterStore] = SqlRosterStore,
        fixture_store_factory: Callable[[Session], FixtureStore] = SqlFixtureStore,
        today_fn: Optional[Callable[[], date]] = None,
    ):
        self._session_factory = session_factory
        self._roster_store_factory = roster_store_factory
        self._fixture_store_factory = fixture_store_factory
        self._today_fn = today_fn or club_today

    def today(self) -> date:
        return self._today_fn()

    # =========================================================================
    # Transaction Handling
    # =========================================================================

    @contextmanager
    def _unit_of_work(
        self, operation: str, read_only: bool = False
    ) -> Generator[_UnitOfWork, None, None]:
        """
        One session per operation. Writes commit at the end. read_only
        work runs in a deferred transaction that is never committed;
        close() releases it and leaves the loaded rows readable.
        """
        factory = self._session_factory or get_session_factory()
        db = factory()
        roster = self._roster_store_factory(db)
        uow = _UnitOfWork(
            db=db,
            roster=roster,
            fixtures=self._fixture_store_factory(db),
            ledger=AvailabilityLedger(db, roster),
            register=SubstituteRequestRegister(db),
            workflow=AssignmentWorkflow(db, roster),
        )
        try:
            if read_only:
                db.connection(execution_options={READ_ONLY_OPTION: True})
            yield uow
            if not read_only:
                db.commit()
        except CoordinationError:
            db.rollback()
            raise
        except (OperationalError, PoolTimeoutError) as exc:
            db.rollback()
            logger.error("Store failure during %s: %s", operation, exc)
            raise StoreUnavailable(
                f"The store is unavailable, {operation} was not applied",
                operation=operation,
            ) from exc
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def _deny(self, operation: str, user: ActingUser, reason: str, **context) -> Forbidden:
        logger.info("Denied %s for user=%s: %s", operation, user.user_id, reason)
        return Forbidden(f"Not allowed to {operation}: {reason}", user_id=user.user_id, **context)

    # =========================================================================
    # Lookups shared by operations
    # =========================================================================

    @staticmethod
    def _team(uow: _UnitOfWork, team_id: int) -> TeamRef:
        team = uow.roster.get_team(team_id)
        if team is None:
            raise NotFound(f"Team {team_id} not found", team_id=team_id)
        return team

    @staticmethod
    def _fixture(uow: _UnitOfWork, fixture_id: int) -> FixtureRef:
        fixture = uow.fixtures.get_fixture(fixture_id)
        if fixture is None:
            raise NotFound(f"Fixture {fixture_id} not found", fixture_id=fixture_id)
        return fixture

    def resolve_acting_user(self, user_id: str, roles: Iterable[str] | None = None) -> ActingUser:
        """Combine identity-provider claims with captaincies from the roster."""
        with self._unit_of_work("resolve acting user", read_only=True) as uow:
            captain_of = uow.roster.captain_teams(user_id.strip())
        return ActingUser.from_claims(user_id, roles, captain_of)

    # =========================================================================
    # Availability Ledger
    # =========================================================================

    def set_availability(
        self,
        fixture_id: int,
        player_id: str,
        status: str,
        notes: Optional[str],
        acting_user: ActingUser,
        team_id: Optional[int] = None,
    ) -> AvailabilityChange:
        """
        Record a player's availability for a fixture and keep the
        substitute request for (team, player, fixture) in step with it.

        Raises:
            InvalidStatus, NotFound, NotAFixtureParticipant, Forbidden
        """
        status = parse_status(status)
        with self._unit_of_work("set availability") as uow:
            fixture = self._fixture(uow, fixture_id)
            team = uow.ledger.resolve_player_team(fixture, player_id, team_id)
            today = self.today()
            deadline = fixture.match_date

            allowed = gate.can_edit_availability_or_request(
                acting_user, team.id, deadline, today
            ) or gate.can_set_own_availability(acting_user, player_id, deadline, today)
            if not allowed:
                if acting_user.is_captain_of(team.id) or acting_user.user_id == player_id:
                    reason = DEADLINE_PASSED
                else:
                    reason = f"not a captain of {team.name}"
                raise self._deny("set availability", acting_user, reason, team_id=team.id)

            record, previous = uow.ledger.upsert(
                fixture.id, player_id, team.id, status, notes, acting_user.user_id
            )
            change = AvailabilityChange(record=record, previous_status=previous)
            self._sync_request(uow, change, team, fixture, player_id, status, notes, acting_user)

        logger.info(
            "Availability fixture=%s player=%s team=%s: %s -> %s (request %s)",
            fixture_id, player_id, team.id, previous, status, change.request_action or "unchanged",
        )
        return change

    def _sync_request(
        self,
        uow: _UnitOfWork,
        change: AvailabilityChange,
        team: TeamRef,
        fixture: FixtureRef,
        player_id: str,
        status: str,
        notes: Optional[str],
        acting_user: ActingUser,
    ) -> None:
        """
        Mirror the availability status into the request register.

        substitute_needed upserts the open request (valid until the
        fixture date). Any other status withdraws it: archived together
        with its attached assignments when one of them was approved,
        deleted otherwise.
        The caller has already passed the same gate check a direct
        request edit would need, so no second check happens here.
        """
        if status == SUBSTITUTE_NEEDED:
            request, created = uow.register.upsert(
                team=team,
                player_id=player_id,
                fixture_id=fixture.id,
                needs_substitute=True,
                notes=notes,
                valid_until=fixture.match_date,
                marked_by=acting_user.user_id,
            )
            change.request = request
            change.request_id = request.id
            change.request_action = "created" if created else "updated"
            return

        existing = uow.register.find_open(team.id, player_id, fixture.id, for_update=True)
        if existing is None:
            return

        change.request_id = existing.id
        if uow.register.has_approved_assignments(existing):
            archival = uow.register.archive(existing, team_wide=False)
            record_action(
                uow.db, "archive", "substitute_request", existing.id, acting_user.user_id,
                {"reason": "availability_changed", "assignment_ids": archival.archived_assignment_ids},
            )
            change.request = existing
            change.request_action = "archived"
        else:
            released = uow.register.discard(existing)
            record_action(
                uow.db, "delete", "substitute_request", existing.id, acting_user.user_id,
                {"reason": "availability_changed", "team_id": team.id,
                 "player_id": player_id, "fixture_id": fixture.id,
                 "assignment_ids": released},
            )
            change.request_action = "deleted"

    def get_availability(self, fixture_id: int, team_id: Optional[int] = None) -> list[AvailabilityRecord]:
        with self._unit_of_work("get availability", read_only=True) as uow:
            fixture = self._fixture(uow, fixture_id)
            if team_id is not None and not fixture.involves(team_id):
                raise NotAFixtureParticipant(
                    f"Team {team_id} does not play fixture {fixture_id}",
                    fixture_id=fixture_id,
                    team_id=team_id,
                )
            return uow.ledger.list_for_fixture(fixture_id, team_id)

    # =========================================================================
    # Substitute Request Register
    # =========================================================================

    def upsert_request(
        self,
        team_id: int,
        player_id: str,
        fixture_id: Optional[int],
        needs_substitute: bool,
        notes: Optional[str],
        valid_until: Optional[date],
        acting_user: ActingUser,
    ) -> SubstituteRequest:
        """
        Create or overwrite the open request for (team, player, fixture).

        With a fixture, valid_until defaults to the fixture date and must
        match it when given. Without one, valid_until is required.

        Raises:
            NotFound, NotRosterMember, NotAFixtureParticipant,
            Forbidden, InvalidDeadline
        """
        with self._unit_of_work("upsert substitute request") as uow:
            team = self._team(uow, team_id)
            if not uow.roster.is_member(team.id, player_id):
                raise NotRosterMember(
                    f"Player {player_id} is not on the roster of {team.name}",
                    player_id=player_id,
                    team_id=team.id,
                )

            if fixture_id is not None:
                fixture = self._fixture(uow, fixture_id)
                if not fixture.involves(team.id):
                    raise NotAFixtureParticipant(
                        f"{team.name} does not play fixture {fixture_id}",
                        fixture_id=fixture_id,
                        team_id=team.id,
                    )
                if valid_until is None:
                    valid_until = fixture.match_date
                elif valid_until != fixture.match_date:
                    raise InvalidDeadline(
                        f"valid_until must be the fixture date {fixture.match_date.isoformat()}",
                        valid_until=valid_until.isoformat(),
                        fixture_date=fixture.match_date.isoformat(),
                    )
            elif valid_until is None:
                raise InvalidDeadline(
                    "valid_until is required for a request without a fixture",
                    team_id=team.id,
                    player_id=player_id,
                )

            today = self.today()
            existing = uow.register.find_open(team.id, player_id, fixture_id, for_update=True)

            if not gate.can_edit_availability_or_request(acting_user, team.id):
                raise self._deny(
                    "edit substitute requests", acting_user,
                    f"not a captain of {team.name}", team_id=team.id,
                )
            if existing is not None and not gate.can_edit_availability_or_request(
                acting_user, team.id, existing.valid_until, today
            ):
                raise self._deny(
                    "edit substitute requests", acting_user, DEADLINE_PASSED,
                    request_id=existing.id,
                )
            if not gate.can_edit_availability_or_request(acting_user, team.id, valid_until, today):
                raise InvalidDeadline(
                    "Captains cannot set a deadline in the past",
                    valid_until=valid_until.isoformat(),
                    today=today.isoformat(),
                )

            request, created = uow.register.upsert(
                team=team,
                player_id=player_id,
                fixture_id=fixture_id,
                needs_substitute=needs_substitute,
                notes=notes,
                valid_until=valid_until,
                marked_by=acting_user.user_id,
            )

        logger.info(
            "%s substitute request %s for team=%s player=%s fixture=%s",
            "Created" if created else "Updated", request.id, team.id, player_id, fixture_id,
        )
        return request

    def delete_request(self, request_id: int, acting_user: ActingUser) -> None:
        """
        Raises:
            NotFound, Forbidden, HasActiveAssignments
        """
        with self._unit_of_work("delete substitute request") as uow:
            request = uow.register.get(request_id, for_update=True)
            if not gate.can_edit_availability_or_request(
                acting_user, request.team_id, request.valid_until, self.today()
            ):
                reason = (
                    DEADLINE_PASSED
                    if acting_user.is_captain_of(request.team_id)
                    else f"not a captain of {request.team_name}"
                )
                raise self._deny("delete substitute requests", acting_user, reason, request_id=request_id)
            uow.register.delete(request)
            record_action(
                uow.db, "delete", "substitute_request", request_id, acting_user.user_id,
                {"team_id": request.team_id, "player_id": request.player_id, "fixture_id": request.fixture_id},
            )
        logger.info("Deleted substitute request %s by user=%s", request_id, acting_user.user_id)

    def archive_request(self, request_id: int, acting_user: ActingUser) -> RequestArchival:
        """
        Archive a request and cascade archival to its linked assignments.

        Raises:
            Forbidden, NotFound
        """
        with self._unit_of_work("archive substitute request") as uow:
            if not gate.can_archive(acting_user):
                raise self._deny(
                    "archive substitute requests", acting_user,
                    "requires administrator or board member", request_id=request_id,
                )
            request = uow.register.get(request_id, for_update=True)
            archival = uow.register.archive(request)
            record_action(
                uow.db, "archive", "substitute_request", request_id, acting_user.user_id,
                {"assignment_ids": archival.archived_assignment_ids},
            )
        logger.info(
            "Archived substitute request %s and %d assignment(s) by user=%s",
            request_id, len(archival.archived_assignment_ids), acting_user.user_id,
        )
        return archival

    def list_open_requests(
        self,
        team_id: Optional[int] = None,
        include_archived: bool = False,
        fixture_id: Optional[int] = None,
    ) -> list[SubstituteRequest]:
        with self._unit_of_work("list substitute requests", read_only=True) as uow:
            return uow.register.list_requests(
                team_id=team_id,
                include_archived=include_archived,
                fixture_id=fixture_id,
            )

    def archive_expired_requests(
        self,
        today: Optional[date] = None,
        grace_days: Optional[int] = None,
    ) -> list[RequestArchival]:
        """Archive open requests whose deadline lies more than grace_days back."""
        today = today or self.today()
        grace = settings.request_archive_grace_days if grace_days is None else grace_days
        cutoff = today - timedelta(days=grace)

        with self._unit_of_work("archive expired requests") as uow:
            archivals = []
            for request in uow.register.expired(before=cutoff):
                archival = uow.register.archive(request)
                record_action(
                    uow.db, "archive", "substitute_request", request.id, SYSTEM_ACTOR,
                    {"reason": "expired", "cutoff": cutoff.isoformat(),
                     "assignment_ids": archival.archived_assignment_ids},
                )
                archivals.append(archival)

        logger.info("Archived %d expired substitute request(s) before %s", len(archivals), cutoff)
        return archivals

    # =========================================================================
    # Substitute Assignment Workflow
    # =========================================================================

    def propose_assignment(
        self,
        team_id: int,
        substitute_team_id: int,
        substitute_player_id: str,
        notes: Optional[str],
        acting_user: ActingUser,
        request_id: Optional[int] = None,
    ) -> SubstituteAssignment:
        """
        Propose borrowing a player from another team. Not idempotent:
        check list_by_team() before retrying after an ambiguous failure.

        Raises:
            SameTeam, NotFound, Forbidden, NotRosterMember, AlreadyOnTeam
        """
        ensure_distinct_teams(team_id, substitute_team_id)
        with self._unit_of_work("propose substitute assignment") as uow:
            team = self._team(uow, team_id)
            source = self._team(uow, substitute_team_id)

            deadline = None
            if request_id is not None:
                request = uow.register.get(request_id)
                if request.team_id != team.id or request.archived:
                    raise NotFound(
                        f"No open substitute request {request_id} for {team.name}",
                        request_id=request_id,
                        team_id=team.id,
                    )
                deadline = request.valid_until

            if not gate.can_propose_assignment(acting_user, team.id, deadline, self.today()):
                reason = (
                    DEADLINE_PASSED
                    if acting_user.is_captain_of(team.id)
                    else f"requires administrator, board member or captain of {team.name}"
                )
                raise self._deny("propose substitutes", acting_user, reason, team_id=team.id)

            assignment = uow.workflow.propose(
                team=team,
                source=source,
                substitute_player_id=substitute_player_id,
                requested_by=acting_user.user_id,
                notes=notes,
                request_id=request_id,
            )

        logger.info(
            "Proposed assignment %s: %s borrows %s from %s (by user=%s)",
            assignment.id, team.name, substitute_player_id, source.name, acting_user.user_id,
        )
        return assignment

    def decide(self, assignment_id: int, decision: str, acting_user: ActingUser) -> SubstituteAssignment:
        """
        Approve or reject a pending assignment. The first committed
        decision wins; later calls fail with AlreadyDecided. Not
        idempotent: re-read the assignment before retrying.

        Raises:
            InvalidStatus, NotFound, Forbidden, AlreadyDecided
        """
        with self._unit_of_work("decide substitute assignment") as uow:
            assignment = uow.workflow.get(assignment_id, for_update=True)

            deadline = None
            if assignment.request_id is not None:
                request = uow.db.get(SubstituteRequest, assignment.request_id)
                deadline = request.valid_until if request is not None else None

            if not gate.can_decide_assignment(
                acting_user, assignment.substitute_team_id, deadline, self.today()
            ):
                reason = (
                    DEADLINE_PASSED
                    if acting_user.is_captain_of(assignment.substitute_team_id)
                    else f"requires administrator, board member or captain of {assignment.substitute_team_name}"
                )
                raise self._deny(
                    "decide substitute assignments", acting_user, reason,
                    assignment_id=assignment_id,
                )

            decided = uow.workflow.decide(assignment_id, decision, acting_user.user_id)
            record_action(
                uow.db, "decide", "substitute_assignment", assignment_id, acting_user.user_id,
                {"status": decided.status},
            )

        logger.info(
            "Assignment %s %s by user=%s", assignment_id, decided.status, acting_user.user_id
        )
        return decided

    def archive_assignment(self, assignment_id: int, acting_user: ActingUser) -> SubstituteAssignment:
        with self._unit_of_work("archive substitute assignment") as uow:
            if not gate.can_archive(acting_user):
                raise self._deny(
                    "archive substitute assignments", acting_user,
                    "requires administrator or board member", assignment_id=assignment_id,
                )
            assignment = uow.workflow.archive(uow.workflow.get(assignment_id, for_update=True))
            record_action(uow.db, "archive", "substitute_assignment", assignment_id, acting_user.user_id)
        logger.info("Archived assignment %s by user=%s", assignment_id, acting_user.user_id)
        return assignment

    def delete_archived(self, assignment_id: int, acting_user: ActingUser) -> None:
        """
        Permanently delete an archived assignment (administrators only).

        Raises:
            Forbidden, NotFound, NotArchived
        """
        with self._unit_of_work("delete substitute assignment") as uow:
            if not gate.can_hard_delete(acting_user):
                raise self._deny(
                    "delete substitute assignments", acting_user,
                    "requires administrator", assignment_id=assignment_id,
                )
            assignment = uow.workflow.get(assignment_id, for_update=True)
            snapshot = {
                "team_id": assignment.team_id,
                "substitute_team_id": assignment.substitute_team_id,
                "substitute_player_id": assignment.substitute_player_id,
                "status": assignment.status,
            }
            uow.workflow.delete_archived(assignment)
            record_action(
                uow.db, "hard_delete", "substitute_assignment", assignment_id,
                acting_user.user_id, snapshot,
            )
        logger.warning(
            "Hard-deleted assignment %s (%s) by user=%s", assignment_id, snapshot, acting_user.user_id
        )

    def list_by_team(self, team_id: int, include_archived: bool = False) -> list[SubstituteAssignment]:
        with self._unit_of_work("list assignments by team", read_only=True) as uow:
            return uow.workflow.list_by_team(team_id, include_archived)

    def list_approved(self, include_archived: bool = False) -> list[SubstituteAssignment]:
        with self._unit_of_work("list approved assignments", read_only=True) as uow:
            return uow.workflow.list_approved(include_archived)

    def list_archived(self) -> list[SubstituteAssignment]:
        with self._unit_of_work("list archived assignments", read_only=True) as uow:
            return uow.workflow.list_archived()

    def list_decidable(self, acting_user: ActingUser, include_archived: bool = False) -> list[SubstituteAssignment]:
        """Pending assignments the acting user is allowed to approve or reject."""
        with self._unit_of_work("list decidable assignments", read_only=True) as uow:
            today = self.today()
            source_teams = None if acting_user.is_club_official else acting_user.captain_of
            pending = uow.workflow.list_pending(source_teams, include_archived)

            decidable = []
            for assignment in pending:
                deadline = None
                if assignment.request_id is not None:
                    request = uow.db.get(SubstituteRequest, assignment.request_id)
                    deadline = request.valid_until if request is not None else None
                if gate.can_decide_assignment(acting_user, assignment.substitute_team_id, deadline, today):
                    decidable.append(assignment)
            return decidable

    def list_candidates(self, team_id: int, substitute_team_id: int) -> list[RosterMember]:
        """Roster of the source team, minus players already on the requesting team."""
        ensure_distinct_teams(team_id, substitute_team_id)
        with self._unit_of_work("list substitute candidates", read_only=True) as uow:
            return uow.workflow.candidates(self._team(uow, team_id), self._team(uow, substitute_team_id))
