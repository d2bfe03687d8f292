"""
Database module for Subdesk.

Provides SQLAlchemy ORM models and session management.

Usage:
    from subdesk.db import get_session_factory, SubstituteRequest

    with get_session_factory()() as session:
        open_requests = session.query(SubstituteRequest).filter_by(archived=False).all()
"""

from subdesk.db.models import (
    Base,
    Team,
    Member,
    TeamMember,
    Fixture,
    AvailabilityRecord,
    SubstituteRequest,
    SubstituteAssignment,
    AuditLog,
)
from subdesk.db.session import get_default_engine, get_engine, get_session_factory

__all__ = [
    # Base
    "Base",
    # Roster and fixtures
    "Team",
    "Member",
    "TeamMember",
    "Fixture",
    # Coordination
    "AvailabilityRecord",
    "SubstituteRequest",
    "SubstituteAssignment",
    "AuditLog",
    # Session
    "get_default_engine",
    "get_engine",
    "get_session_factory",
]
