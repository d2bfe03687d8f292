"""Unit tests for the authorization gate predicates."""

from datetime import date, timedelta

import pytest

from subdesk.access import gate
from subdesk.access.roles import ActingUser

TODAY = date(2026, 10, 18)
YESTERDAY = TODAY - timedelta(days=1)
TOMORROW = TODAY + timedelta(days=1)

HERREN_1 = 1
HERREN_2 = 2


@pytest.fixture
def users():
    return {
        "admin": ActingUser.from_claims("a", ["administrator"]),
        "board": ActingUser.from_claims("b", ["board_member"]),
        "captain1": ActingUser.from_claims("c1", ["captain"], [HERREN_1]),
        "captain2": ActingUser.from_claims("c2", ["captain"], [HERREN_2]),
        "member": ActingUser.from_claims("m", ["member"]),
    }


def test_deadline_open_is_inclusive_of_today():
    assert gate.deadline_open(TODAY, TODAY)
    assert gate.deadline_open(TOMORROW, TODAY)
    assert not gate.deadline_open(YESTERDAY, TODAY)


def test_deadline_open_without_deadline_never_blocks():
    assert gate.deadline_open(None, None)
    assert gate.deadline_open(None, TODAY)


def test_deadline_open_requires_today_when_deadline_given():
    with pytest.raises(ValueError):
        gate.deadline_open(TODAY, None)


@pytest.mark.parametrize("who", ["admin", "board"])
def test_club_officials_edit_any_team_even_after_deadline(users, who):
    user = users[who]
    assert gate.can_edit_availability_or_request(user, HERREN_1, YESTERDAY, TODAY)
    assert gate.can_edit_availability_or_request(user, HERREN_2, None, TODAY)


def test_captain_edits_own_team_until_deadline(users):
    captain = users["captain1"]
    assert gate.can_edit_availability_or_request(captain, HERREN_1, TODAY, TODAY)
    assert gate.can_edit_availability_or_request(captain, HERREN_1, None, TODAY)
    assert not gate.can_edit_availability_or_request(captain, HERREN_1, YESTERDAY, TODAY)


def test_captain_cannot_edit_other_team(users):
    assert not gate.can_edit_availability_or_request(users["captain1"], HERREN_2, TOMORROW, TODAY)


def test_member_cannot_edit_team(users):
    assert not gate.can_edit_availability_or_request(users["member"], HERREN_1, TOMORROW, TODAY)


def test_player_sets_own_availability_until_fixture_date(users):
    member = users["member"]
    assert gate.can_set_own_availability(member, "m", TODAY, TODAY)
    assert not gate.can_set_own_availability(member, "m", YESTERDAY, TODAY)
    assert not gate.can_set_own_availability(member, "someone-else", TOMORROW, TODAY)


def test_propose_requires_captaincy_of_requesting_team(users):
    assert gate.can_propose_assignment(users["captain1"], HERREN_1)
    assert not gate.can_propose_assignment(users["captain2"], HERREN_1)
    assert not gate.can_propose_assignment(users["member"], HERREN_1)
    assert gate.can_propose_assignment(users["board"], HERREN_1)


def test_propose_respects_linked_request_deadline(users):
    assert not gate.can_propose_assignment(users["captain1"], HERREN_1, YESTERDAY, TODAY)
    assert gate.can_propose_assignment(users["admin"], HERREN_1, YESTERDAY, TODAY)


@pytest.mark.parametrize(
    "who, expected",
    [
        ("admin", True),
        ("board", True),
        ("captain2", True),   # captain of the source team
        ("captain1", False),  # captain of the requesting team only
        ("member", False),
    ],
)
def test_decide_allowed_for_officials_and_source_captain(users, who, expected):
    assert gate.can_decide_assignment(users[who], HERREN_2) is expected


def test_decide_respects_deadline_for_captains(users):
    assert not gate.can_decide_assignment(users["captain2"], HERREN_2, YESTERDAY, TODAY)
    assert gate.can_decide_assignment(users["board"], HERREN_2, YESTERDAY, TODAY)


def test_archive_and_hard_delete(users):
    assert gate.can_archive(users["board"])
    assert gate.can_archive(users["admin"])
    assert not gate.can_archive(users["captain1"])

    assert gate.can_hard_delete(users["admin"])
    assert not gate.can_hard_delete(users["board"])

    assert gate.can_archive_or_hard_delete(users["board"])
    assert not gate.can_archive_or_hard_delete(users["board"], hard_delete=True)
    assert gate.can_archive_or_hard_delete(users["admin"], hard_delete=True)
