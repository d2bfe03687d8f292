"""
Authorization gate for the substitute workflow.

Every permission decision lives here as a pure predicate over the acting
user, the team involved and (where captains are concerned) a deadline.
Nothing in this module touches the database or the clock: callers pass
``today`` in, which keeps the rules unit-testable in isolation.

Deadline rule (applied uniformly):
    Administrators and board members are never deadline-gated.
    Captains, and players editing their own availability, may write
    only while ``deadline >= today`` (dates only, no time of day).
    A missing deadline never blocks them.
"""

from __future__ import annotations

from datetime import date
from typing import Optional

from subdesk.access.roles import ActingUser


def deadline_open(deadline: Optional[date], today: Optional[date]) -> bool:
    """True while a captain-level write is still inside its window."""
    if deadline is None:
        return True
    if today is None:
        raise ValueError("today is required when a deadline is given")
    return deadline >= today


def can_edit_availability_or_request(
    user: ActingUser,
    target_team_id: int,
    deadline: Optional[date] = None,
    today: Optional[date] = None,
) -> bool:
    """Club officials always; the team's captain until the deadline passes."""
    if user.is_club_official:
        return True
    if user.is_captain_of(target_team_id):
        return deadline_open(deadline, today)
    return False


def can_set_own_availability(
    user: ActingUser,
    player_id: str,
    deadline: Optional[date] = None,
    today: Optional[date] = None,
) -> bool:
    """A player may report their own status until the fixture date."""
    return user.user_id == player_id and deadline_open(deadline, today)


def can_propose_assignment(
    user: ActingUser,
    requesting_team_id: int,
    deadline: Optional[date] = None,
    today: Optional[date] = None,
) -> bool:
    """Club officials, or the captain of the team asking for help."""
    if user.is_club_official:
        return True
    if user.is_captain_of(requesting_team_id):
        return deadline_open(deadline, today)
    return False


def can_decide_assignment(
    user: ActingUser,
    source_team_id: int,
    deadline: Optional[date] = None,
    today: Optional[date] = None,
) -> bool:
    """
    Club officials, or the captain of the team lending the player.

    Captaincy of the requesting team is deliberately not enough: the
    source team's player is the resource being committed.
    """
    if user.is_club_official:
        return True
    if user.is_captain_of(source_team_id):
        return deadline_open(deadline, today)
    return False


def can_archive(user: ActingUser) -> bool:
    return user.is_club_official


def can_hard_delete(user: ActingUser) -> bool:
    return user.is_administrator


def can_archive_or_hard_delete(user: ActingUser, hard_delete: bool = False) -> bool:
    """Archival needs a club official; hard delete needs an administrator."""
    if hard_delete:
        return can_hard_delete(user)
    return can_archive(user)
