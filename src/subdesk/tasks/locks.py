"""
Single-run guard for housekeeping jobs.

Each job name maps to a PostgreSQL session-level advisory lock. A second
run of the same job (another cron host, a manual run from the API) waits
up to ``wait_seconds`` for the first one to finish and then gives up with
TimeoutError, so expired requests are never archived by two runs at once.

SQLite has no advisory locks. Its writers already queue behind
BEGIN IMMEDIATE, so the guard is skipped there and yields False.

Usage:
    with job_lock(engine, "subdesk_archive_expired_requests", wait_seconds=30):
        service.archive_expired_requests()
"""

from __future__ import annotations

import hashlib
import logging
import time
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine

logger = logging.getLogger(__name__)


def advisory_lock_key(name: str) -> int:
    """Return a deterministic signed 64-bit lock key from a job name."""
    digest = hashlib.sha256(name.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], byteorder="big", signed=True)


def _try_acquire(connection: Connection, key: int) -> bool:
    return bool(
        connection.execute(text("SELECT pg_try_advisory_lock(:key)"), {"key": key}).scalar()
    )


@contextmanager
def job_lock(
    engine: Engine,
    job_name: str,
    *,
    wait_seconds: float = 0.0,
    retry_every_seconds: float = 1.0,
) -> Generator[bool, None, None]:
    """
    Hold the job's lock for the life of this context.

    Yields:
        True once the lock is held, False on backends without advisory locks.

    Raises:
        TimeoutError: another run still holds the lock after wait_seconds.
    """
    if engine.dialect.name != "postgresql":
        logger.debug("No advisory locks on %s; running %s unguarded", engine.dialect.name, job_name)
        yield False
        return

    key = advisory_lock_key(job_name)
    give_up_at = time.monotonic() + max(wait_seconds, 0.0)
    with engine.connect() as connection:
        while not _try_acquire(connection, key):
            if time.monotonic() >= give_up_at:
                raise TimeoutError(f"Job {job_name} is already running (lock key={key})")
            logger.info("Job %s is held by another run; retrying in %.1fs", job_name, retry_every_seconds)
            time.sleep(retry_every_seconds)

        logger.debug("Acquired lock for job %s", job_name)
        try:
            yield True
        finally:
            connection.execute(text("SELECT pg_advisory_unlock(:key)"), {"key": key})
