"""Unit tests for role normalization, ActingUser and status helpers."""

import pytest

from subdesk.access.roles import (
    ADMINISTRATOR,
    BOARD_MEMBER,
    CAPTAIN,
    MEMBER,
    ActingUser,
    normalize_roles,
)
from subdesk.statuses import (
    APPROVED,
    PENDING,
    REJECTED,
    SUBSTITUTE_NEEDED,
    can_transition,
    decision_to_status,
    is_terminal,
    normalize_availability_status,
)


def test_normalize_roles_accepts_club_aliases():
    roles = normalize_roles(["admin", "Vorstand", "mannschaftsfuehrer", "mitglied"])
    assert roles == {ADMINISTRATOR, BOARD_MEMBER, CAPTAIN, MEMBER}


def test_normalize_roles_drops_unknown_names():
    assert normalize_roles(["entwickler", "board-member", " "]) == {BOARD_MEMBER}
    assert normalize_roles(None) == frozenset()


def test_acting_user_from_claims():
    user = ActingUser.from_claims("  u-1 ", ["vorstand"], [3, 3, 4])
    assert user.user_id == "u-1"
    assert user.is_club_official
    assert not user.is_administrator
    assert user.captain_of == frozenset({3, 4})
    assert user.is_captain_of(3)
    assert not user.is_captain_of(5)


def test_acting_user_requires_id():
    with pytest.raises(ValueError):
        ActingUser.from_claims("   ", ["admin"])


def test_acting_user_is_immutable():
    user = ActingUser.from_claims("u-1")
    with pytest.raises(AttributeError):
        user.user_id = "u-2"


@pytest.mark.parametrize("raw", ["substitute_needed", "Substitute-Needed", "substitute needed"])
def test_normalize_availability_status_spellings(raw):
    assert normalize_availability_status(raw) == SUBSTITUTE_NEEDED


def test_normalize_availability_status_rejects_unknown():
    with pytest.raises(ValueError):
        normalize_availability_status("maybe")


def test_decision_to_status():
    assert decision_to_status("approve") == APPROVED
    assert decision_to_status(" Reject ") == REJECTED
    with pytest.raises(ValueError):
        decision_to_status("postpone")


def test_assignment_transitions_are_one_way():
    assert can_transition(PENDING, APPROVED)
    assert can_transition(PENDING, REJECTED)
    assert not can_transition(APPROVED, REJECTED)
    assert not can_transition(REJECTED, APPROVED)
    assert not can_transition(APPROVED, PENDING)
    assert is_terminal(APPROVED)
    assert is_terminal(REJECTED)
    assert not is_terminal(PENDING)
