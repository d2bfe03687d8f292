"""
SQLAlchemy ORM models for Subdesk.

This module defines all database tables and their relationships.
The schema is built around stable integer team ids: requests and
assignments reference teams by foreign key and keep the team name only
as a display copy taken at write time, so renaming a team never breaks
the link between a request and its candidate assignments.

Tables:
- teams: Club teams (read by the roster store)
- members: Club members who can appear on rosters
- team_members: Roster membership, including captaincy
- fixtures: Scheduled matches between two teams
- availability: Per (fixture, player) availability ledger
- substitute_requests: Flagged needs for a replacement player
- substitute_assignments: Proposed borrowed replacements and their decisions
- audit_log: Trail of decisions, archivals and hard deletes
"""

from datetime import date, datetime, time, timezone
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    Time,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from subdesk.statuses import (
    ASSIGNMENT_STATUSES,
    AVAILABILITY_STATUSES,
    PENDING,
)


def utc_now() -> datetime:
    """Naive UTC timestamp, matching the DateTime columns below."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _in_clause(values: tuple[str, ...]) -> str:
    return ", ".join(f"'{v}'" for v in values)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


# =============================================================================
# Roster and Fixture Models
# =============================================================================

class Team(Base):
    """A club team. Names may change; ids never do."""

    __tablename__ = "teams"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False, unique=True)
    league: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)

    memberships: Mapped[list["TeamMember"]] = relationship(
        back_populates="team",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Team(id={self.id}, name='{self.name}')>"


class Member(Base):
    """
    A club member as known to the identity provider.

    The id is the provider's stable user id, so the same value is used
    for player_id, marked_by, requested_by and approved_by columns.
    """

    __tablename__ = "members"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    display_name: Mapped[str] = mapped_column(String(200), nullable=False)

    def __repr__(self) -> str:
        return f"<Member(id='{self.id}', name='{self.display_name}')>"


class TeamMember(Base):
    """Roster entry linking a member to a team."""

    __tablename__ = "team_members"

    team_id: Mapped[int] = mapped_column(
        ForeignKey("teams.id", ondelete="CASCADE"), primary_key=True
    )
    member_id: Mapped[str] = mapped_column(
        ForeignKey("members.id", ondelete="CASCADE"), primary_key=True
    )
    is_captain: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )

    team: Mapped["Team"] = relationship(back_populates="memberships")
    member: Mapped["Member"] = relationship()

    __table_args__ = (
        Index("idx_team_members_member", "member_id"),
    )

    def __repr__(self) -> str:
        return f"<TeamMember(team_id={self.team_id}, member_id='{self.member_id}', captain={self.is_captain})>"


class Fixture(Base):
    """A scheduled match between two teams."""

    __tablename__ = "fixtures"

    id: Mapped[int] = mapped_column(primary_key=True)
    home_team_id: Mapped[int] = mapped_column(ForeignKey("teams.id"), nullable=False)
    away_team_id: Mapped[int] = mapped_column(ForeignKey("teams.id"), nullable=False)
    match_date: Mapped[date] = mapped_column(Date, nullable=False)
    match_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    location: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    home_team: Mapped["Team"] = relationship(foreign_keys=[home_team_id])
    away_team: Mapped["Team"] = relationship(foreign_keys=[away_team_id])

    __table_args__ = (
        Index("idx_fixtures_date", "match_date"),
        CheckConstraint("home_team_id <> away_team_id", name="ck_fixture_distinct_teams"),
    )

    def __repr__(self) -> str:
        return f"<Fixture(id={self.id}, date={self.match_date})>"


# =============================================================================
# Coordination Models
# =============================================================================

class AvailabilityRecord(Base):
    """
    Whether a player can play a given fixture.

    Keyed by (fixture_id, player_id); later writes overwrite earlier ones.
    A status of 'substitute_needed' is mirrored into substitute_requests
    by the coordination service.
    """

    __tablename__ = "availability"

    fixture_id: Mapped[int] = mapped_column(
        ForeignKey("fixtures.id", ondelete="CASCADE"), primary_key=True
    )
    player_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    team_id: Mapped[int] = mapped_column(ForeignKey("teams.id"), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    updated_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        CheckConstraint(
            f"status IN ({_in_clause(AVAILABILITY_STATUSES)})",
            name="ck_availability_status",
        ),
        Index("idx_availability_team", "fixture_id", "team_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<AvailabilityRecord(fixture_id={self.fixture_id}, "
            f"player_id='{self.player_id}', status='{self.status}')>"
        )


class SubstituteRequest(Base):
    """
    A flagged need for a replacement for one roster member.

    At most one open (non-archived) request exists per
    (team_id, player_id, fixture_id); the partial unique index below lets
    the store enforce that for fixture-scoped requests while archived
    rows are kept for audit. Every request carries a deadline: the
    fixture date, or an explicit date for requests without a fixture.
    """

    __tablename__ = "substitute_requests"

    id: Mapped[int] = mapped_column(primary_key=True)
    team_id: Mapped[int] = mapped_column(ForeignKey("teams.id"), nullable=False)
    team_name: Mapped[str] = mapped_column(String(120), nullable=False)
    player_id: Mapped[str] = mapped_column(String(64), nullable=False)
    fixture_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("fixtures.id", ondelete="SET NULL"), nullable=True
    )
    needs_substitute: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    valid_until: Mapped[date] = mapped_column(Date, nullable=False)
    archived: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    marked_by: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        Index(
            "uq_substitute_requests_open",
            "team_id",
            "player_id",
            "fixture_id",
            unique=True,
            postgresql_where=text("archived = false"),
            sqlite_where=text("archived = 0"),
        ),
        Index("idx_substitute_requests_team_archived", "team_id", "archived"),
        Index("idx_substitute_requests_valid_until", "valid_until"),
    )

    def __repr__(self) -> str:
        return (
            f"<SubstituteRequest(id={self.id}, team_id={self.team_id}, "
            f"player_id='{self.player_id}', archived={self.archived})>"
        )


class SubstituteAssignment(Base):
    """
    A proposal to borrow a specific player from another team.

    Status moves pending -> approved or pending -> rejected and then stays
    put; archived is an independent flag. request_id is optional: when it
    is empty the assignment belongs to every open request of its team.
    """

    __tablename__ = "substitute_assignments"

    id: Mapped[int] = mapped_column(primary_key=True)
    request_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("substitute_requests.id", ondelete="SET NULL"), nullable=True
    )

    # Requesting team
    team_id: Mapped[int] = mapped_column(ForeignKey("teams.id"), nullable=False)
    team_name: Mapped[str] = mapped_column(String(120), nullable=False)

    # Source team the replacement is borrowed from
    substitute_team_id: Mapped[int] = mapped_column(ForeignKey("teams.id"), nullable=False)
    substitute_team_name: Mapped[str] = mapped_column(String(120), nullable=False)
    substitute_player_id: Mapped[str] = mapped_column(String(64), nullable=False)

    requested_by: Mapped[str] = mapped_column(String(64), nullable=False)
    approved_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    decided_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=PENDING)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    archived: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        CheckConstraint(
            f"status IN ({_in_clause(ASSIGNMENT_STATUSES)})",
            name="ck_substitute_assignment_status",
        ),
        CheckConstraint(
            "team_id <> substitute_team_id",
            name="ck_substitute_assignment_distinct_teams",
        ),
        Index("idx_substitute_assignments_team", "team_id", "archived"),
        Index("idx_substitute_assignments_source", "substitute_team_id", "status"),
        Index("idx_substitute_assignments_request", "request_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<SubstituteAssignment(id={self.id}, team_id={self.team_id}, "
            f"source={self.substitute_team_id}, status='{self.status}', "
            f"archived={self.archived})>"
        )


# =============================================================================
# Operations Models
# =============================================================================

class AuditLog(Base):
    """
    Audit trail for workflow actions.

    Written in the same transaction as the action it records, so a rolled
    back operation leaves no audit row behind.
    """

    __tablename__ = "audit_log"

    id: Mapped[int] = mapped_column(primary_key=True)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    entity: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(64), nullable=False)
    actor_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    details: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)

    __table_args__ = (
        Index("idx_audit_log_entity", "entity", "entity_id"),
        Index("idx_audit_log_created", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<AuditLog(action='{self.action}', entity='{self.entity}:{self.entity_id}')>"
