"""Unit tests for AssignmentWorkflow."""

import pytest

from subdesk.errors import AlreadyDecided, InvalidStatus, NotArchived, NotFound, NotRosterMember, SameTeam
from subdesk.services.assignments import AssignmentWorkflow
from subdesk.stores.roster import SqlRosterStore, TeamRef


@pytest.fixture
def db(session_factory, club):
    session = session_factory()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def teams(club):
    return {
        "herren1": TeamRef(id=club.herren1, name="Herren I"),
        "herren2": TeamRef(id=club.herren2, name="Herren II"),
    }


@pytest.fixture
def workflow(db):
    return AssignmentWorkflow(db, SqlRosterStore(db))


def test_propose_creates_pending_assignment(workflow, teams):
    assignment = workflow.propose(teams["herren1"], teams["herren2"], "p2", "board-1", notes="Sunday")
    assert assignment.id is not None
    assert assignment.status == "pending"
    assert assignment.team_name == "Herren I"
    assert assignment.substitute_team_name == "Herren II"
    assert assignment.requested_by == "board-1"
    assert assignment.approved_by is None
    assert not assignment.archived


def test_propose_same_team_fails(workflow, teams):
    with pytest.raises(SameTeam):
        workflow.propose(teams["herren1"], teams["herren1"], "p1", "board-1")


def test_propose_requires_source_roster_member(workflow, teams):
    with pytest.raises(NotRosterMember):
        workflow.propose(teams["herren1"], teams["herren2"], "p3", "board-1")


def test_decide_approve_then_second_decision_fails(workflow, teams):
    assignment = workflow.propose(teams["herren1"], teams["herren2"], "p2", "board-1")

    decided = workflow.decide(assignment.id, "approve", "cap2")
    assert decided.status == "approved"
    assert decided.approved_by == "cap2"
    assert decided.decided_at is not None

    with pytest.raises(AlreadyDecided) as excinfo:
        workflow.decide(assignment.id, "reject", "board-1")
    assert excinfo.value.context["status"] == "approved"
    assert workflow.get(assignment.id).status == "approved"


def test_decide_rejects_unknown_decision(workflow, teams):
    assignment = workflow.propose(teams["herren1"], teams["herren2"], "p2", "board-1")
    with pytest.raises(InvalidStatus):
        workflow.decide(assignment.id, "maybe", "cap2")


def test_decide_unknown_assignment(workflow):
    with pytest.raises(NotFound):
        workflow.decide(4711, "approve", "cap2")


def test_archive_is_orthogonal_to_status(workflow, teams):
    assignment = workflow.propose(teams["herren1"], teams["herren2"], "p2", "board-1")
    workflow.archive(assignment)
    assert assignment.archived
    assert assignment.status == "pending"

    # Archived pending assignments can still be decided
    assert workflow.decide(assignment.id, "reject", "cap2").status == "rejected"


def test_delete_archived_requires_archive_first(workflow, teams):
    assignment = workflow.propose(teams["herren1"], teams["herren2"], "p2", "board-1")
    with pytest.raises(NotArchived):
        workflow.delete_archived(assignment)

    workflow.archive(assignment)
    workflow.delete_archived(assignment)
    with pytest.raises(NotFound):
        workflow.get(assignment.id)


def test_listings(workflow, teams):
    a1 = workflow.propose(teams["herren1"], teams["herren2"], "p2", "board-1")
    a2 = workflow.propose(teams["herren2"], teams["herren1"], "p1", "board-1")
    workflow.decide(a1.id, "approve", "cap2")
    workflow.archive(a2)

    assert [a.id for a in workflow.list_by_team(teams["herren1"].id)] == [a1.id]
    assert workflow.list_by_team(teams["herren2"].id) == []
    assert [a.id for a in workflow.list_by_team(teams["herren2"].id, include_archived=True)] == [a2.id]
    assert [a.id for a in workflow.list_approved()] == [a1.id]
    assert [a.id for a in workflow.list_archived()] == [a2.id]
    assert workflow.list_pending() == []
    assert [a.id for a in workflow.list_pending([teams["herren1"].id], include_archived=True)] == [a2.id]


def test_candidates_exclude_own_players(workflow, teams):
    candidates = workflow.candidates(teams["herren1"], teams["herren2"])
    # 'dual' plays for both teams and is no borrowed replacement
    assert [c.id for c in candidates] == ["cap2", "p2"]

    with pytest.raises(SameTeam):
        workflow.candidates(teams["herren1"], teams["herren1"])
