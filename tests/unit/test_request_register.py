"""Unit tests for SubstituteRequestRegister."""

from datetime import date

import pytest

from subdesk.db.models import SubstituteAssignment
from subdesk.errors import HasActiveAssignments, NotFound
from subdesk.services.requests import SubstituteRequestRegister
from subdesk.stores.roster import TeamRef


@pytest.fixture
def db(session_factory, club):
    session = session_factory()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def herren1(club):
    return TeamRef(id=club.herren1, name="Herren I")


def _assignment(club, request_id=None, archived=False, status="pending"):
    return SubstituteAssignment(
        request_id=request_id,
        team_id=club.herren1,
        team_name="Herren I",
        substitute_team_id=club.herren2,
        substitute_team_name="Herren II",
        substitute_player_id="p2",
        requested_by="board-1",
        status=status,
        archived=archived,
    )


def test_upsert_is_keyed_by_team_player_fixture(db, club, herren1):
    register = SubstituteRequestRegister(db)

    first, created = register.upsert(herren1, "p1", club.f1, True, None, date(2026, 10, 21), "cap1")
    assert created
    second, created = register.upsert(herren1, "p1", club.f1, True, "late", date(2026, 10, 21), "board-1")
    assert not created
    assert second.id == first.id
    assert second.notes == "late"
    assert second.marked_by == "board-1"

    other, created = register.upsert(herren1, "p1", None, True, None, date(2026, 10, 25), "cap1")
    assert created
    assert other.id != first.id

    assert len(register.list_requests(team_id=club.herren1)) == 2


def test_get_unknown_request_raises(db, club):
    with pytest.raises(NotFound):
        SubstituteRequestRegister(db).get(4711)


def test_linked_assignments_by_id_or_team(db, club, herren1):
    register = SubstituteRequestRegister(db)
    request, _ = register.upsert(herren1, "p1", club.f1, True, None, date(2026, 10, 21), "cap1")
    other, _ = register.upsert(herren1, "p3", club.f1, True, None, date(2026, 10, 21), "cap1")

    by_id = _assignment(club, request_id=request.id)
    by_team = _assignment(club)
    for_other = _assignment(club, request_id=other.id)
    archived = _assignment(club, request_id=request.id, archived=True)
    db.add_all([by_id, by_team, for_other, archived])
    db.flush()

    linked = {a.id for a in register.linked_assignments(request)}
    assert linked == {by_id.id, by_team.id}
    with_archived = {a.id for a in register.linked_assignments(request, include_archived=True)}
    assert with_archived == {by_id.id, by_team.id, archived.id}


def test_delete_refused_with_active_assignments(db, club, herren1):
    register = SubstituteRequestRegister(db)
    request, _ = register.upsert(herren1, "p1", club.f1, True, None, date(2026, 10, 21), "cap1")
    db.add(_assignment(club, request_id=request.id))
    db.flush()

    with pytest.raises(HasActiveAssignments):
        register.delete(request)


def test_delete_without_assignments(db, club, herren1):
    register = SubstituteRequestRegister(db)
    request, _ = register.upsert(herren1, "p1", club.f1, True, None, date(2026, 10, 21), "cap1")
    register.delete(request)
    assert register.find_open(club.herren1, "p1", club.f1) is None


def test_archive_cascades_to_linked_assignments(db, club, herren1):
    register = SubstituteRequestRegister(db)
    request, _ = register.upsert(herren1, "p1", club.f1, True, None, date(2026, 10, 21), "cap1")
    a1 = _assignment(club, request_id=request.id)
    a2 = _assignment(club, status="approved")
    db.add_all([a1, a2])
    db.flush()

    archival = register.archive(request)

    assert request.archived
    assert sorted(archival.archived_assignment_ids) == sorted([a1.id, a2.id])
    assert a1.archived and a2.archived
    assert register.find_open(club.herren1, "p1", club.f1) is None
    assert register.list_requests(team_id=club.herren1) == []
    assert len(register.list_requests(team_id=club.herren1, include_archived=True)) == 1


def test_new_open_request_after_archive(db, club, herren1):
    register = SubstituteRequestRegister(db)
    request, _ = register.upsert(herren1, "p1", club.f1, True, None, date(2026, 10, 21), "cap1")
    register.archive(request)

    again, created = register.upsert(herren1, "p1", club.f1, True, None, date(2026, 10, 21), "cap1")
    assert created
    assert again.id != request.id


def test_expired_only_returns_open_requests_before_cutoff(db, club, herren1):
    register = SubstituteRequestRegister(db)
    old, _ = register.upsert(herren1, "p1", club.f_past, True, None, date(2026, 10, 1), "cap1")
    register.upsert(herren1, "p3", club.f1, True, None, date(2026, 10, 21), "cap1")
    register.upsert(herren1, "dual", None, True, None, date(2026, 10, 25), "cap1")

    assert [r.id for r in register.expired(before=date(2026, 10, 11))] == [old.id]


def test_attached_assignments_exclude_team_wide_ones(db, club, herren1):
    register = SubstituteRequestRegister(db)
    request, _ = register.upsert(herren1, "p1", club.f1, True, None, date(2026, 10, 21), "cap1")
    attached = _assignment(club, request_id=request.id)
    team_wide = _assignment(club, status="approved")
    db.add_all([attached, team_wide])
    db.flush()

    assert [a.id for a in register.linked_assignments(request, team_wide=False)] == [attached.id]
    assert not register.has_approved_assignments(request)

    attached.status = "approved"
    db.flush()
    assert register.has_approved_assignments(request)


def test_discard_archives_only_attached_assignments(db, club, herren1):
    register = SubstituteRequestRegister(db)
    request, _ = register.upsert(herren1, "p1", club.f1, True, None, date(2026, 10, 21), "cap1")
    attached = _assignment(club, request_id=request.id)
    team_wide = _assignment(club)
    db.add_all([attached, team_wide])
    db.flush()

    assert register.discard(request) == [attached.id]

    assert register.find_open(club.herren1, "p1", club.f1) is None
    assert attached.archived
    assert not team_wide.archived


def test_archive_limited_to_attached_assignments(db, club, herren1):
    register = SubstituteRequestRegister(db)
    request, _ = register.upsert(herren1, "p1", club.f1, True, None, date(2026, 10, 21), "cap1")
    attached = _assignment(club, request_id=request.id, status="approved")
    team_wide = _assignment(club)
    db.add_all([attached, team_wide])
    db.flush()

    archival = register.archive(request, team_wide=False)

    assert archival.archived_assignment_ids == [attached.id]
    assert not team_wide.archived
