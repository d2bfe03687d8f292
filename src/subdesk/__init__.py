"""
Subdesk - Substitute coordination for multi-team clubs

Tracks per-fixture player availability, substitute requests raised by
team captains, and the approval workflow for borrowing players from
other teams of the same club.

Main components:
- access: roles, acting-user context and the authorization gate
- stores: read-only roster and fixture lookups
- services: availability ledger, request register, assignment workflow
  and the coordination service tying them together
- tasks: scheduled housekeeping
- web: FastAPI JSON API
"""

__version__ = "1.0.0"
