"""Create roster, fixture and substitute coordination tables

Revision ID: 5a1d3c7e9b20
Revises:
Create Date: 2026-10-18 12:00:00.000000+00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# Revision identifiers, used by Alembic.
revision: str = "5a1d3c7e9b20"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "teams",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("league", sa.String(length=120), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )
    op.create_table(
        "members",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("display_name", sa.String(length=200), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "team_members",
        sa.Column("team_id", sa.Integer(), nullable=False),
        sa.Column("member_id", sa.String(length=64), nullable=False),
        sa.Column("is_captain", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.ForeignKeyConstraint(["team_id"], ["teams.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["member_id"], ["members.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("team_id", "member_id"),
    )
    op.create_index("idx_team_members_member", "team_members", ["member_id"], unique=False)

    op.create_table(
        "fixtures",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("home_team_id", sa.Integer(), nullable=False),
        sa.Column("away_team_id", sa.Integer(), nullable=False),
        sa.Column("match_date", sa.Date(), nullable=False),
        sa.Column("match_time", sa.Time(), nullable=True),
        sa.Column("location", sa.String(length=200), nullable=True),
        sa.CheckConstraint("home_team_id <> away_team_id", name="ck_fixture_distinct_teams"),
        sa.ForeignKeyConstraint(["home_team_id"], ["teams.id"]),
        sa.ForeignKeyConstraint(["away_team_id"], ["teams.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_fixtures_date", "fixtures", ["match_date"], unique=False)

    op.create_table(
        "availability",
        sa.Column("fixture_id", sa.Integer(), nullable=False),
        sa.Column("player_id", sa.String(length=64), nullable=False),
        sa.Column("team_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("updated_by", sa.String(length=64), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.CheckConstraint(
            "status IN ('available', 'unavailable', 'substitute_needed')",
            name="ck_availability_status",
        ),
        sa.ForeignKeyConstraint(["fixture_id"], ["fixtures.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["team_id"], ["teams.id"]),
        sa.PrimaryKeyConstraint("fixture_id", "player_id"),
    )
    op.create_index("idx_availability_team", "availability", ["fixture_id", "team_id"], unique=False)

    op.create_table(
        "substitute_requests",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("team_id", sa.Integer(), nullable=False),
        sa.Column("team_name", sa.String(length=120), nullable=False),
        sa.Column("player_id", sa.String(length=64), nullable=False),
        sa.Column("fixture_id", sa.Integer(), nullable=True),
        sa.Column("needs_substitute", sa.Boolean(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("valid_until", sa.Date(), nullable=False),
        sa.Column("archived", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("marked_by", sa.String(length=64), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["team_id"], ["teams.id"]),
        sa.ForeignKeyConstraint(["fixture_id"], ["fixtures.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    # One open request per (team, player, fixture); archived rows are history
    op.create_index(
        "uq_substitute_requests_open",
        "substitute_requests",
        ["team_id", "player_id", "fixture_id"],
        unique=True,
        postgresql_where=sa.text("archived = false"),
        sqlite_where=sa.text("archived = 0"),
    )
    op.create_index(
        "idx_substitute_requests_team_archived",
        "substitute_requests",
        ["team_id", "archived"],
        unique=False,
    )
    op.create_index(
        "idx_substitute_requests_valid_until",
        "substitute_requests",
        ["valid_until"],
        unique=False,
    )

    op.create_table(
        "substitute_assignments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("request_id", sa.Integer(), nullable=True),
        sa.Column("team_id", sa.Integer(), nullable=False),
        sa.Column("team_name", sa.String(length=120), nullable=False),
        sa.Column("substitute_team_id", sa.Integer(), nullable=False),
        sa.Column("substitute_team_name", sa.String(length=120), nullable=False),
        sa.Column("substitute_player_id", sa.String(length=64), nullable=False),
        sa.Column("requested_by", sa.String(length=64), nullable=False),
        sa.Column("approved_by", sa.String(length=64), nullable=True),
        sa.Column("decided_at", sa.DateTime(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("archived", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="ck_substitute_assignment_status",
        ),
        sa.CheckConstraint(
            "team_id <> substitute_team_id",
            name="ck_substitute_assignment_distinct_teams",
        ),
        sa.ForeignKeyConstraint(["request_id"], ["substitute_requests.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["team_id"], ["teams.id"]),
        sa.ForeignKeyConstraint(["substitute_team_id"], ["teams.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_substitute_assignments_team",
        "substitute_assignments",
        ["team_id", "archived"],
        unique=False,
    )
    op.create_index(
        "idx_substitute_assignments_source",
        "substitute_assignments",
        ["substitute_team_id", "status"],
        unique=False,
    )
    op.create_index(
        "idx_substitute_assignments_request",
        "substitute_assignments",
        ["request_id"],
        unique=False,
    )

    op.create_table(
        "audit_log",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("entity", sa.String(length=50), nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=False),
        sa.Column("actor_id", sa.String(length=64), nullable=True),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_audit_log_entity", "audit_log", ["entity", "entity_id"], unique=False)
    op.create_index("idx_audit_log_created", "audit_log", ["created_at"], unique=False)


def downgrade() -> None:
    op.drop_index("idx_audit_log_created", table_name="audit_log")
    op.drop_index("idx_audit_log_entity", table_name="audit_log")
    op.drop_table("audit_log")

    op.drop_index("idx_substitute_assignments_request", table_name="substitute_assignments")
    op.drop_index("idx_substitute_assignments_source", table_name="substitute_assignments")
    op.drop_index("idx_substitute_assignments_team", table_name="substitute_assignments")
    op.drop_table("substitute_assignments")

    op.drop_index("idx_substitute_requests_valid_until", table_name="substitute_requests")
    op.drop_index("idx_substitute_requests_team_archived", table_name="substitute_requests")
    op.drop_index("uq_substitute_requests_open", table_name="substitute_requests")
    op.drop_table("substitute_requests")

    op.drop_index("idx_availability_team", table_name="availability")
    op.drop_table("availability")

    op.drop_index("idx_fixtures_date", table_name="fixtures")
    op.drop_table("fixtures")

    op.drop_index("idx_team_members_member", table_name="team_members")
    op.drop_table("team_members")
    op.drop_table("members")
    op.drop_table("teams")
