"""
Pytest configuration and fixtures.

This file is automatically loaded by pytest and provides
shared fixtures for all tests.

The club used throughout:

    Herren I   (captain: cap1)   roster: cap1, p1, p3, dual
    Herren II  (captain: cap2)   roster: cap2, p2, dual
    TC Nord I  (captain: nordcap) roster: nordcap, nord1

    f1:     Herren I  vs TC Nord I, three days after TODAY
    f2:     Herren II vs TC Nord I, three days after TODAY
    f_past: Herren I  vs TC Nord I, two days before TODAY
"""

from datetime import date, timedelta
from types import SimpleNamespace

import pytest
from sqlalchemy.orm import sessionmaker

from subdesk.access.roles import ActingUser
from subdesk.config import Settings
from subdesk.db.models import Base, Fixture, Member, Team, TeamMember
from subdesk.db.session import get_engine
from subdesk.services import CoordinationService

TODAY = date(2026, 10, 18)


@pytest.fixture
def test_engine():
    """
    Create a test database engine.

    SQLite in-memory with a single shared connection, so every session
    (and the TestClient's worker threads) sees the same database.
    """
    engine = get_engine(Settings(database_url="sqlite:///:memory:", log_level="WARNING"))
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return sessionmaker(
        bind=test_engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


def seed_club(session_factory) -> SimpleNamespace:
    """Insert the teams, rosters and fixtures described in the module docstring."""
    with session_factory() as db:
        herren1 = Team(name="Herren I", league="Bezirksliga")
        herren2 = Team(name="Herren II", league="Kreisliga")
        nord = Team(name="TC Nord I", league="Bezirksliga")
        db.add_all([herren1, herren2, nord])

        for member_id, name in [
            ("cap1", "Anna Kapitän"),
            ("p1", "Paul Eins"),
            ("p3", "Peter Drei"),
            ("dual", "Dana Doppel"),
            ("cap2", "Carl Zwei"),
            ("p2", "Pia Zwei"),
            ("nordcap", "Nora Nord"),
            ("nord1", "Niklas Nord"),
        ]:
            db.add(Member(id=member_id, display_name=name))
        db.flush()

        roster = [
            (herren1, "cap1", True),
            (herren1, "p1", False),
            (herren1, "p3", False),
            (herren1, "dual", False),
            (herren2, "cap2", True),
            (herren2, "p2", False),
            (herren2, "dual", False),
            (nord, "nordcap", True),
            (nord, "nord1", False),
        ]
        for team, member_id, is_captain in roster:
            db.add(TeamMember(team_id=team.id, member_id=member_id, is_captain=is_captain))

        f1 = Fixture(home_team_id=herren1.id, away_team_id=nord.id, match_date=TODAY + timedelta(days=3))
        f2 = Fixture(home_team_id=herren2.id, away_team_id=nord.id, match_date=TODAY + timedelta(days=3))
        f_past = Fixture(home_team_id=herren1.id, away_team_id=nord.id, match_date=TODAY - timedelta(days=2))
        db.add_all([f1, f2, f_past])
        db.commit()

        return SimpleNamespace(
            herren1=herren1.id,
            herren2=herren2.id,
            nord=nord.id,
            f1=f1.id,
            f2=f2.id,
            f_past=f_past.id,
        )


@pytest.fixture
def club(session_factory):
    return seed_club(session_factory)


@pytest.fixture
def club_seeder():
    """seed_club itself, for tests that build their own engine."""
    return seed_club


@pytest.fixture
def service(session_factory, club):
    """Coordination service pinned to TODAY."""
    return CoordinationService(session_factory=session_factory, today_fn=lambda: TODAY)


@pytest.fixture
def fetch(session_factory):
    """Load one row in a short-lived session (never hold a transaction open across calls)."""
    def _fetch(model, ident):
        with session_factory() as db:
            return db.get(model, ident)
    return _fetch


@pytest.fixture
def admin():
    return ActingUser.from_claims("admin-1", ["admin"])


@pytest.fixture
def board():
    return ActingUser.from_claims("board-1", ["vorstand"])


@pytest.fixture
def captain1(club):
    return ActingUser.from_claims("cap1", ["mannschaftsfuehrer"], [club.herren1])


@pytest.fixture
def captain2(club):
    return ActingUser.from_claims("cap2", ["captain"], [club.herren2])


@pytest.fixture
def player1():
    return ActingUser.from_claims("p1", ["mitglied"])
