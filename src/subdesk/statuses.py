"""Shared status definitions for availability and substitute assignments.

This module is the single source of truth for status values and the
assignment state machine. Web handlers, services and housekeeping all
validate against it.
"""

from __future__ import annotations

# Availability statuses a player can hold for one fixture.
AVAILABLE = "available"
UNAVAILABLE = "unavailable"
SUBSTITUTE_NEEDED = "substitute_needed"

AVAILABILITY_STATUSES: tuple[str, ...] = (
    AVAILABLE,
    UNAVAILABLE,
    SUBSTITUTE_NEEDED,
)

# Assignment workflow statuses.
PENDING = "pending"
APPROVED = "approved"
REJECTED = "rejected"

ASSIGNMENT_STATUSES: tuple[str, ...] = (PENDING, APPROVED, REJECTED)

# Decisions map onto the terminal status they produce.
DECISIONS: dict[str, str] = {
    "approve": APPROVED,
    "reject": REJECTED,
}

# Allowed transitions. Terminal statuses have no outgoing edges; the
# archived flag is orthogonal and not part of this graph.
ASSIGNMENT_TRANSITIONS: dict[str, tuple[str, ...]] = {
    PENDING: (APPROVED, REJECTED),
    APPROVED: (),
    REJECTED: (),
}


def normalize_availability_status(raw: str) -> str:
    """Return the canonical availability status, raising ValueError if unknown.

    Accepts the spellings the old club UI sent ("substitute-needed",
    "Substitute Needed") alongside the canonical values.
    """
    status = raw.strip().lower().replace("-", "_").replace(" ", "_")
    if status not in AVAILABILITY_STATUSES:
        raise ValueError(f"Unknown availability status: {raw!r}")
    return status


def decision_to_status(decision: str) -> str:
    """Map 'approve'/'reject' to the resulting assignment status."""
    try:
        return DECISIONS[decision.strip().lower()]
    except KeyError as exc:
        raise ValueError(f"Unknown decision: {decision!r}") from exc


def can_transition(current: str, target: str) -> bool:
    return target in ASSIGNMENT_TRANSITIONS.get(current, ())


def is_terminal(status: str) -> bool:
    return not ASSIGNMENT_TRANSITIONS.get(status, ())

