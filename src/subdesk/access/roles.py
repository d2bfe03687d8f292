"""Role names and the acting-user context passed into every mutation."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

ADMINISTRATOR = "administrator"
BOARD_MEMBER = "board_member"
CAPTAIN = "captain"
MEMBER = "member"

ALL_ROLES: tuple[str, ...] = (ADMINISTRATOR, BOARD_MEMBER, CAPTAIN, MEMBER)

# Club-wide roles with unrestricted authority over the workflow.
CLUB_OFFICIAL_ROLES: frozenset[str] = frozenset({ADMINISTRATOR, BOARD_MEMBER})

# Spellings used by the identity provider and the club's older tooling.
ROLE_ALIASES: dict[str, str] = {
    "admin": ADMINISTRATOR,
    "administrator": ADMINISTRATOR,
    "board": BOARD_MEMBER,
    "board_member": BOARD_MEMBER,
    "vorstand": BOARD_MEMBER,
    "captain": CAPTAIN,
    "team_captain": CAPTAIN,
    "mannschaftsfuehrer": CAPTAIN,
    "mannschaftsführer": CAPTAIN,
    "member": MEMBER,
    "mitglied": MEMBER,
}


def normalize_roles(raw_roles: Iterable[str] | None) -> frozenset[str]:
    """Map raw role names onto canonical roles.

    Unknown names are dropped rather than rejected: the identity provider
    may hand out roles this service has no use for.
    """
    if raw_roles is None:
        return frozenset()

    roles: set[str] = set()
    for raw in raw_roles:
        key = raw.strip().lower().replace("-", "_").replace(" ", "_")
        role = ROLE_ALIASES.get(key)
        if role is not None:
            roles.add(role)
    return frozenset(roles)


@dataclass(frozen=True)
class ActingUser:
    """
    Who is performing an operation.

    Produced from the identity provider's claims plus the roster store's
    captaincy data. Immutable so it can be shared across threads.
    """

    user_id: str
    roles: frozenset[str] = field(default_factory=frozenset)
    captain_of: frozenset[int] = field(default_factory=frozenset)

    @classmethod
    def from_claims(
        cls,
        user_id: str,
        roles: Iterable[str] | None = None,
        captain_of: Iterable[int] | None = None,
    ) -> "ActingUser":
        if not user_id or not user_id.strip():
            raise ValueError("user_id cannot be empty")
        return cls(
            user_id=user_id.strip(),
            roles=normalize_roles(roles),
            captain_of=frozenset(captain_of or ()),
        )

    @property
    def is_administrator(self) -> bool:
        return ADMINISTRATOR in self.roles

    @property
    def is_club_official(self) -> bool:
        return bool(self.roles & CLUB_OFFICIAL_ROLES)

    def is_captain_of(self, team_id: int) -> bool:
        return team_id in self.captain_of

    def __repr__(self) -> str:
        return (
            f"<ActingUser(id='{self.user_id}', roles={sorted(self.roles)}, "
            f"captain_of={sorted(self.captain_of)})>"
        )
