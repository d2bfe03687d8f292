#!/usr/bin/env python3
"""
Archive substitute requests whose deadline lies past the grace period.

Meant to run once a day from cron:

    python scripts/archive_expired_requests.py
    python scripts/archive_expired_requests.py --grace-days 3 --today 2026-10-18
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import date
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from subdesk.config import settings
from subdesk.db.session import get_default_engine
from subdesk.errors import CoordinationError
from subdesk.logging_config import configure_logging
from subdesk.services import CoordinationService
from subdesk.tasks import run_archive_expired

logger = logging.getLogger("archive_expired_requests")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Archive expired substitute requests.")
    parser.add_argument(
        "--today",
        type=date.fromisoformat,
        default=None,
        help="Reference date (YYYY-MM-DD). Defaults to today in the club timezone.",
    )
    parser.add_argument(
        "--grace-days",
        type=int,
        default=None,
        help=f"Days to keep expired requests open (default: {settings.request_archive_grace_days}).",
    )
    parser.add_argument(
        "--lock-timeout-seconds",
        type=float,
        default=0.0,
        help="Wait this long for a concurrent run to finish before giving up.",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    configure_logging()

    if args.grace_days is not None and args.grace_days < 0:
        logger.error("--grace-days must be >= 0")
        return 2

    try:
        result = run_archive_expired(
            CoordinationService(),
            today=args.today,
            grace_days=args.grace_days,
            engine=get_default_engine(),
            lock_timeout_seconds=args.lock_timeout_seconds,
        )
    except TimeoutError as exc:
        logger.warning("Skipped: %s", exc)
        return 1
    except CoordinationError as exc:
        logger.error("Archive run failed: %s", exc)
        return 1

    print(json.dumps(result.to_dict(), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
