#!/usr/bin/env python3
"""
CricFantasy CLI
Operator entry point for finalization, reconciliation and prize tables
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from uuid import UUID

from cricfantasy.core.config import settings
from cricfantasy.core.exceptions import CricFantasyError
from cricfantasy.core.redis_client import redis_client
from cricfantasy.db.session import AsyncSessionLocal, async_engine
from cricfantasy.services.finalization import finalize_contest, finalize_match_contests
from cricfantasy.services.prize_table import generate_prize_table
from cricfantasy.services.reconciliation import build_prize_monitor_report
from cricfantasy.services.reconciliation_scheduler import ReconciliationScheduler

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def print_json(data):
    print(json.dumps(data, indent=2, default=str))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cli.py", description="CricFantasy operations")
    commands = parser.add_subparsers(dest="command", required=True)

    finalize = commands.add_parser("finalize", help="Finalize a contest and pay its winners")
    finalize.add_argument("contest_id", type=UUID)

    finalize_match = commands.add_parser("finalize-match", help="Finalize every contest of a match")
    finalize_match.add_argument("match_id", type=UUID)

    reconcile = commands.add_parser("reconcile", help="Repair missing contest_win transactions")
    reconcile.add_argument("--dry-run", action="store_true", help="Report gaps without writing")
    reconcile.add_argument("--no-lock", action="store_true", help="Skip the redis lock (single-process use)")

    monitor = commands.add_parser("monitor", help="Report missed prizes and unpaid gaps")
    monitor.add_argument("--days", type=int, default=settings.prize_monitor_days)

    preview = commands.add_parser("preview", help="Print a generated prize table")
    preview.add_argument("--total", required=True, help="Total prize")
    preview.add_argument("--winners", type=int, required=True, help="Winner count")
    preview.add_argument("--first", required=True, help="First prize")
    preview.add_argument("--entry-fee", default="0")
    preview.add_argument("--shape", default="balanced",
                         choices=["balanced", "topHeavy", "distributed", "winnerTakesAll"])

    app = commands.add_parser("app", help="Run the API server")
    app.add_argument("--dev", action="store_true", help="Reload on code changes")

    commands.add_parser("migrate", help="Apply database migrations")
    return parser


async def run_command(args) -> bool:
    if args.command == "finalize":
        summary = await finalize_contest(AsyncSessionLocal, args.contest_id, actor="cli")
        print_json(summary)
        return summary["success"]

    if args.command == "finalize-match":
        summary = await finalize_match_contests(AsyncSessionLocal, args.match_id, actor="cli")
        print_json(summary)
        return summary["failed"] == 0

    if args.command == "reconcile":
        scheduler = ReconciliationScheduler(
            AsyncSessionLocal,
            redis_client=None if args.no_lock else redis_client
        )
        result = await scheduler.run_now(dry_run=args.dry_run, actor="cli")
        print_json(result)
        return bool(result.get("success"))

    if args.command == "monitor":
        async with AsyncSessionLocal() as session:
            report = await build_prize_monitor_report(session, args.days)
        print_json(report)
        return not (report["unpaid_gap_count"] or report["missed_prize_count"] or report["pending_failed_payouts"])

    if args.command == "preview":
        rows = generate_prize_table(
            total_prize=args.total,
            winner_count=args.winners,
            first_prize=args.first,
            entry_fee=args.entry_fee,
            shape=args.shape
        )
        print_json([row.to_dict() for row in rows])
        return True

    if args.command == "app":
        logger.info("Starting FastAPI application...")
        reload_flag = " --reload" if args.dev else ""
        os.system(f"uvicorn cricfantasy.main:app --host 0.0.0.0 --port 8000{reload_flag}")
        return True

    if args.command == "migrate":
        logger.info("Running database migrations...")
        os.system("alembic upgrade head")
        return True

    return False


async def main(argv=None) -> bool:
    """Main CLI function"""
    args = build_parser().parse_args(argv)
    try:
        return await run_command(args)
    except CricFantasyError as e:
        logger.error(f"{args.command} failed: {e}")
        return False
    finally:
        await async_engine.dispose()


if __name__ == "__main__":
    success = asyncio.run(main())
    sys.exit(0 if success else 1)
