"""
Access control for the substitute workflow.

Key components:
- ActingUser: the caller's id, canonical roles and captaincies
- gate: pure permission predicates, the single source of truth for
  who may edit, propose, decide, archive and delete
"""

from subdesk.access.gate import (
    can_archive,
    can_archive_or_hard_delete,
    can_decide_assignment,
    can_edit_availability_or_request,
    can_hard_delete,
    can_propose_assignment,
    can_set_own_availability,
    deadline_open,
)
from subdesk.access.roles import (
    ADMINISTRATOR,
    BOARD_MEMBER,
    CAPTAIN,
    MEMBER,
    ActingUser,
    normalize_roles,
)

__all__ = [
    "ActingUser",
    "normalize_roles",
    "ADMINISTRATOR",
    "BOARD_MEMBER",
    "CAPTAIN",
    "MEMBER",
    "can_archive",
    "can_archive_or_hard_delete",
    "can_decide_assignment",
    "can_edit_availability_or_request",
    "can_hard_delete",
    "can_propose_assignment",
    "can_set_own_availability",
    "deadline_open",
]
