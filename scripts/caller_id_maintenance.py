"""Caller-ID maintenance tasks, meant to be run from cron or a scheduler.

    python scripts/caller_id_maintenance.py reset-counters            # daily
    python scripts/caller_id_maintenance.py reset-counters --pool-id <uuid>
    python scripts/caller_id_maintenance.py process-cooldowns         # every few minutes

Both tasks are idempotent; re-running them is harmless.
"""
import argparse
import asyncio
import logging
import sys
import uuid
from pathlib import Path
from typing import Optional

# Resolve project root so imports work when run from any cwd
_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(_ROOT))

import caller_id.service as caller_id_service
import settings
from db.connection import dispose_engine, get_db

logging.basicConfig(level=settings.LOG_LEVEL, format="%(levelname)s %(name)s %(message)s")
logger = logging.getLogger(__name__)


async def run_reset_counters(pool_id: Optional[uuid.UUID] = None) -> int:
    try:
        async with get_db() as session:
            count = await caller_id_service.reset_daily_counters(session, pool_id)
    finally:
        await dispose_engine()
    return count


async def run_process_cooldowns() -> int:
    try:
        async with get_db() as session:
            count = await caller_id_service.process_cooldowns(session)
    finally:
        await dispose_engine()
    return count


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Caller ID maintenance tasks")
    sub = parser.add_subparsers(dest="command")

    reset = sub.add_parser("reset-counters", help="Zero calls_today on caller ID numbers")
    reset.add_argument(
        "--pool-id", type=uuid.UUID, default=None, help="Only reset numbers of this pool"
    )

    sub.add_parser(
        "process-cooldowns", help="Return numbers whose cooldown has expired to active"
    )
    return parser


if __name__ == "__main__":
    parser = _build_arg_parser()
    args = parser.parse_args()

    if args.command == "reset-counters":
        reset = asyncio.run(run_reset_counters(pool_id=args.pool_id))
        logger.info("Done. %d numbers reset", reset)

    elif args.command == "process-cooldowns":
        released = asyncio.run(run_process_cooldowns())
        logger.info("Done. %d numbers released from cooldown", released)

    else:
        parser.print_help()
        sys.exit(1)
