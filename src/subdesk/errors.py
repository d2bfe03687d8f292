"""Error kinds raised by the coordination workflow.

Every error carries a stable ``kind`` string (what callers switch on) and a
``category`` that tells API layers how to present it:

- authorization: caller lacks the role or captaincy required
- validation: caller-correctable input, rejected before any write
- state: the caller's view is stale; refresh before retrying
- not_found: a referenced row does not exist
- infrastructure: the store failed or timed out; safe to retry with backoff
"""

from __future__ import annotations

from typing import Any


class CoordinationError(Exception):
    """Base class for all workflow errors."""

    kind = "coordination_error"
    category = "state"

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.kind, "detail": self.message}
        if self.context:
            payload["context"] = self.context
        return payload


class Forbidden(CoordinationError):
    kind = "forbidden"
    category = "authorization"


class InvalidDeadline(CoordinationError):
    kind = "invalid_deadline"
    category = "validation"


class SameTeam(CoordinationError):
    kind = "same_team"
    category = "validation"


class NotRosterMember(CoordinationError):
    kind = "not_roster_member"
    category = "validation"


class AlreadyOnTeam(CoordinationError):
    kind = "already_on_team"
    category = "validation"


class NotAFixtureParticipant(CoordinationError):
    kind = "not_a_fixture_participant"
    category = "validation"


class InvalidStatus(CoordinationError):
    kind = "invalid_status"
    category = "validation"


class AlreadyDecided(CoordinationError):
    kind = "already_decided"
    category = "state"


class HasActiveAssignments(CoordinationError):
    kind = "has_active_assignments"
    category = "state"


class NotArchived(CoordinationError):
    kind = "not_archived"
    category = "state"


class NotFound(CoordinationError):
    kind = "not_found"
    category = "not_found"


class StoreUnavailable(CoordinationError):
    kind = "store_unavailable"
    category = "infrastructure"
