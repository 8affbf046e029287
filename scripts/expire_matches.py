#!/usr/bin/env python3
"""
Lensmatch Discover: Match Expiry Sweep CLI

Flips every ``matched`` row whose ``expires_at`` has passed to ``expired``.
Safe to run as often as the scheduler likes: a sweep with nothing due
changes nothing.

Usage examples
--------------
  # Sweep against the current time
  python scripts/expire_matches.py

  # Sweep as of a fixed instant, machine-readable output
  python scripts/expire_matches.py --now 2026-01-01T00:00:00+00:00 --json
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from datetime import datetime, timezone

# Ensure the project root is importable
sys.path.insert(0, ".")

import structlog

from lensmatch.config import get_settings
from lensmatch.database import dispose_engine, get_session_factory
from lensmatch.logging_config import configure_logging
from lensmatch.services.lifecycle_service import LifecycleService

logger = structlog.get_logger("lensmatch.scripts.expire_matches")


def _parse_now(value: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an ISO-8601 timestamp: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


async def run_sweep(now: datetime | None) -> dict:
    service = LifecycleService()
    try:
        async with get_session_factory()() as session:
            return await service.sweep(session, now=now)
    finally:
        await dispose_engine()


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Expire Lensmatch matches whose window has passed.",
    )
    parser.add_argument(
        "--now",
        type=_parse_now,
        default=None,
        help="Sweep as of this ISO-8601 instant instead of the current time.",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        default=False,
        help="Print the result as JSON.",
    )
    args = parser.parse_args()

    configure_logging(get_settings().LOG_LEVEL)
    result = asyncio.run(run_sweep(args.now))

    if args.json:
        print(json.dumps(result))
    else:
        print(f"Expired matches: {result['expired_count']}")


if __name__ == "__main__":
    main()
