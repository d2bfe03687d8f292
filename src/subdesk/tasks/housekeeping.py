"""
Housekeeping: archive substitute requests whose deadline has passed.

Run daily from cron via scripts/archive_expired_requests.py. Requests
stay visible for a grace period after their deadline so captains can
still see who played, then they are archived together with their
linked assignments.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Optional

from sqlalchemy.engine import Engine

from subdesk.db.session import get_default_engine
from subdesk.services.coordination import CoordinationService
from subdesk.tasks.locks import job_lock

logger = logging.getLogger(__name__)

LOCK_NAME = "subdesk_archive_expired_requests"


@dataclass
class HousekeepingResult:
    """Summary of one archive run."""

    started_at: datetime
    ended_at: datetime
    today: date
    grace_days: Optional[int]
    request_ids: list[int] = field(default_factory=list)
    assignment_ids: list[int] = field(default_factory=list)

    @property
    def duration_s(self) -> float:
        return (self.ended_at - self.started_at).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat(),
            "duration_s": self.duration_s,
            "today": self.today.isoformat(),
            "grace_days": self.grace_days,
            "archived_requests": len(self.request_ids),
            "archived_assignments": len(self.assignment_ids),
            "request_ids": self.request_ids,
        }


def run_archive_expired(
    service: CoordinationService,
    *,
    today: Optional[date] = None,
    grace_days: Optional[int] = None,
    engine: Optional[Engine] = None,
    lock_timeout_seconds: float = 0.0,
) -> HousekeepingResult:
    """
    Archive expired requests under the housekeeping advisory lock.

    Raises:
        TimeoutError: another run holds the lock
    """
    started_at = datetime.now(timezone.utc)
    today = today or service.today()

    with job_lock(engine or get_default_engine(), LOCK_NAME, wait_seconds=lock_timeout_seconds):
        archivals = service.archive_expired_requests(today=today, grace_days=grace_days)

    result = HousekeepingResult(
        started_at=started_at,
        ended_at=datetime.now(timezone.utc),
        today=today,
        grace_days=grace_days,
        request_ids=[a.request.id for a in archivals],
        assignment_ids=[i for a in archivals for i in a.archived_assignment_ids],
    )
    logger.info(
        "Housekeeping archived %d request(s), %d assignment(s) in %.2fs",
        len(result.request_ids), len(result.assignment_ids), result.duration_s,
    )
    return result
