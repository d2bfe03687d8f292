"""Scheduled maintenance jobs."""

from subdesk.tasks.housekeeping import HousekeepingResult, run_archive_expired
from subdesk.tasks.locks import advisory_lock_key, job_lock

__all__ = [
    "HousekeepingResult",
    "advisory_lock_key",
    "job_lock",
    "run_archive_expired",
]
