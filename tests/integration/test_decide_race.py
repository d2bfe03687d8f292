"""
Concurrent Decide calls against a file-backed SQLite database.

Each thread gets its own connection, so the two decisions really compete
for the write lock. Exactly one may commit; the other must observe
AlreadyDecided and the stored status must be the winner's.
"""

import threading
from datetime import date

import pytest
from sqlalchemy.orm import sessionmaker

from subdesk.access.roles import ActingUser
from subdesk.config import Settings
from subdesk.db.models import Base, SubstituteAssignment
from subdesk.db.session import get_engine
from subdesk.errors import AlreadyDecided
from subdesk.services import CoordinationService

pytestmark = pytest.mark.integration

ROUNDS = 5


@pytest.fixture
def file_service(tmp_path, club_seeder):
    engine = get_engine(Settings(database_url=f"sqlite:///{tmp_path / 'race.db'}", log_level="WARNING"))
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
    club = club_seeder(factory)
    service = CoordinationService(session_factory=factory, today_fn=lambda: date(2026, 10, 18))
    yield service, club, factory
    engine.dispose()


def _race(service, assignment_id, deciders):
    barrier = threading.Barrier(len(deciders))
    outcomes = {}

    def decide(name, decision, user):
        barrier.wait()
        try:
            outcomes[name] = service.decide(assignment_id, decision, user).status
        except AlreadyDecided as exc:
            outcomes[name] = exc

    threads = [
        threading.Thread(target=decide, args=(name, decision, user))
        for name, (decision, user) in deciders.items()
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
    return outcomes


@pytest.mark.parametrize("round_no", range(ROUNDS))
def test_concurrent_approve_and_reject_have_one_winner(file_service, round_no):
    service, club, factory = file_service
    board = ActingUser.from_claims("board-1", ["vorstand"])
    captain2 = ActingUser.from_claims("cap2", ["captain"], [club.herren2])

    assignment = service.propose_assignment(club.herren1, club.herren2, "p2", None, board)

    outcomes = _race(
        service,
        assignment.id,
        {"approver": ("approve", captain2), "rejecter": ("reject", board)},
    )

    winners = {name: status for name, status in outcomes.items() if isinstance(status, str)}
    losers = [name for name, outcome in outcomes.items() if isinstance(outcome, AlreadyDecided)]
    assert len(outcomes) == 2
    assert len(winners) == 1
    assert len(losers) == 1

    with factory() as db:
        stored = db.get(SubstituteAssignment, assignment.id)
    assert stored.status == next(iter(winners.values()))
    expected_decider = "cap2" if "approver" in winners else "board-1"
    assert stored.approved_by == expected_decider
