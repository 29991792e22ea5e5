"""
Wallet/transaction reconciliation.

An entry with a positive win_amount must own exactly one contest_win
transaction keyed by (user_id, entry_id). The sweep finds entries where that
transaction is missing and credits them through the same atomic path the
payout processor uses, then replays pending dead-letter records.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import and_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cricfantasy.core.exceptions import CricFantasyError
from cricfantasy.core.metrics import reconciliation_gaps_fixed_total
from cricfantasy.models.contest import Contest
from cricfantasy.models.contest_entry import ContestEntry
from cricfantasy.models.enums import FailedPayoutStatus, TransactionType
from cricfantasy.models.transaction import Transaction
from cricfantasy.repos.contest_entry_repo import get_entries_for_contest, get_entry_by_id
from cricfantasy.repos.contest_repo import get_finalized_contests_since
from cricfantasy.repos.failed_payout_repo import (
    count_pending_failed_payouts,
    get_failed_payout_by_id,
    get_pending_failed_payouts,
    mark_replayed,
)
from cricfantasy.repos.prize_breakup_repo import get_prize_breakup
from cricfantasy.repos.transaction_repo import get_contest_win_for_entry
from cricfantasy.repos.wallet_repo import credit_contest_win
from cricfantasy.services.prize_table import match_prize

# Configure logging
logger = logging.getLogger(__name__)

SWEEP_ERRORS = (CricFantasyError, SQLAlchemyError)


async def find_payout_gaps(session: AsyncSession, contest_id=None) -> List[Dict]:
    """
    Find winning entries without a contest_win transaction.

    Args:
        session: Database session
        contest_id: Restrict the search to one contest

    Returns:
        One dict per gap with entry_id, user_id, contest_id, contest_name, rank and win_amount
    """
    query = (
        select(ContestEntry, Contest.name)
        .join(Contest, Contest.id == ContestEntry.contest_id)
        .outerjoin(
            Transaction,
            and_(
                Transaction.user_id == ContestEntry.user_id,
                Transaction.entry_id == ContestEntry.id,
                Transaction.tx_type == TransactionType.CONTEST_WIN.value,
            ),
        )
        .where(ContestEntry.win_amount > 0)
        .where(Transaction.id.is_(None))
        .order_by(ContestEntry.contest_id, ContestEntry.rank, ContestEntry.id)
    )
    if contest_id is not None:
        query = query.where(ContestEntry.contest_id == contest_id)

    result = await session.execute(query)
    return [
        {
            "entry_id": entry.id,
            "user_id": entry.user_id,
            "contest_id": entry.contest_id,
            "contest_name": contest_name,
            "rank": entry.rank,
            "win_amount": Decimal(str(entry.win_amount)),
        }
        for entry, contest_name in result.all()
    ]


def _describe_gap(gap: Dict) -> Dict:
    return {
        "entry_id": str(gap["entry_id"]),
        "user_id": str(gap["user_id"]),
        "contest_id": str(gap["contest_id"]),
        "contest_name": gap["contest_name"],
        "rank": gap["rank"],
        "win_amount": str(gap["win_amount"]),
    }


async def _credit_gap(session_factory: async_sessionmaker, gap: Dict) -> bool:
    """Credit one gap. Returns False when another writer paid it first."""
    try:
        async with session_factory() as session:
            async with session.begin():
                existing = await get_contest_win_for_entry(session, gap["user_id"], gap["entry_id"])
                if existing is not None:
                    return False
                await credit_contest_win(
                    session,
                    gap["entry_id"],
                    gap["win_amount"],
                    gap["contest_name"],
                    gap["rank"],
                )
    except IntegrityError:
        logger.info(f"Entry {gap['entry_id']} was paid concurrently, nothing to fix")
        return False
    return True


async def _replay_failed_payout(session_factory: async_sessionmaker, record_id) -> str:
    """
    Replay one dead-letter record.

    Returns "replayed" when a transaction was created, "already_paid" when
    one existed already. The record is marked replayed in both cases.
    """
    async with session_factory() as session:
        async with session.begin():
            record = await get_failed_payout_by_id(session, record_id)
            if record is None or record.status != FailedPayoutStatus.PENDING.value:
                return "skipped"
            existing = await get_contest_win_for_entry(session, record.user_id, record.entry_id)
            if existing is not None:
                entry = await get_entry_by_id(session, record.entry_id)
                if entry is not None and entry.win_amount is None:
                    entry.win_amount = existing.amount
                mark_replayed(record)
                return "already_paid"

            contest_result = await session.execute(select(Contest.name).where(Contest.id == record.contest_id))
            contest_name = contest_result.scalar_one_or_none() or ""
            await credit_contest_win(
                session,
                record.entry_id,
                Decimal(str(record.win_amount)),
                contest_name,
                record.rank,
            )
            mark_replayed(record)
    return "replayed"


async def run_wallet_transaction_fix(
    session_factory: async_sessionmaker,
    dry_run: bool = False,
    concurrency: int = 4,
    stop_event: Optional[asyncio.Event] = None
) -> Dict:
    """
    Run one reconciliation sweep.

    Gaps are credited with at most `concurrency` units in flight. Setting
    `stop_event` stops the sweep before its next unit of work; units already
    running complete. A dry run reports what it would fix and writes nothing.

    Args:
        session_factory: Session factory for the database
        dry_run: Report gaps and pending records without writing
        concurrency: Maximum concurrent units of work
        stop_event: Cooperative cancellation flag

    Returns:
        Dict with success_count, error_count, replayed_count,
        replay_error_count, gaps_found, pending_failed, cancelled, dry_run
        and gaps (dry-run detail)
    """
    stop_event = stop_event or asyncio.Event()
    started = datetime.now(timezone.utc)

    async with session_factory() as session:
        gaps = await find_payout_gaps(session)
        pending = await get_pending_failed_payouts(session)
        pending_ids = [record.id for record in pending]

    result = {
        "success_count": 0,
        "error_count": 0,
        "replayed_count": 0,
        "replay_error_count": 0,
        "gaps_found": len(gaps),
        "pending_failed": len(pending_ids),
        "cancelled": False,
        "dry_run": dry_run,
        "gaps": [],
    }
    logger.info(f"Reconciliation found {len(gaps)} payout gaps and {len(pending_ids)} pending failed payouts")

    if dry_run:
        result["gaps"] = [_describe_gap(gap) for gap in gaps]
        result["failed_payouts"] = [record.to_dict() for record in pending]
        return result

    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def fix_gap(gap: Dict) -> None:
        async with semaphore:
            if stop_event.is_set():
                result["cancelled"] = True
                return
            try:
                if await _credit_gap(session_factory, gap):
                    result["success_count"] += 1
                    reconciliation_gaps_fixed_total.inc()
            except SWEEP_ERRORS as e:
                result["error_count"] += 1
                logger.error(f"Failed to fix payout gap for entry {gap['entry_id']}: {e}")

    async def replay(record_id) -> None:
        async with semaphore:
            if stop_event.is_set():
                result["cancelled"] = True
                return
            try:
                outcome = await _replay_failed_payout(session_factory, record_id)
                if outcome != "skipped":
                    result["replayed_count"] += 1
                logger.info(f"Failed payout {record_id} {outcome}")
            except SWEEP_ERRORS as e:
                result["replay_error_count"] += 1
                logger.error(f"Failed to replay failed payout {record_id}: {e}")

    await asyncio.gather(*(fix_gap(gap) for gap in gaps))
    # Gap fixes run first so a replay never races a gap fix for the same entry
    await asyncio.gather(*(replay(record_id) for record_id in pending_ids))

    elapsed = (datetime.now(timezone.utc) - started).total_seconds()
    logger.info(
        f"Reconciliation finished in {elapsed:.2f}s: fixed {result['success_count']}, "
        f"errors {result['error_count']}, replayed {result['replayed_count']}, "
        f"replay errors {result['replay_error_count']}, cancelled {result['cancelled']}"
    )
    return result


async def build_prize_monitor_report(session: AsyncSession, days: int = 7) -> Dict:
    """
    Build a read-only report of payout problems.

    Lists payout gaps, and entries of contests finalized in the last `days`
    days whose rank falls in a prize row but whose win_amount is unset. Also
    counts dead-letter records still waiting for replay.
    """
    since = datetime.now(timezone.utc) - timedelta(days=days)
    contests = await get_finalized_contests_since(session, since)

    report_contests = []
    total_missed = 0
    for contest in contests:
        prize_rows = await get_prize_breakup(session, contest.id)
        missed = []
        for entry in await get_entries_for_contest(session, contest.id):
            if entry.rank is None or entry.win_amount is not None:
                continue
            row = match_prize(entry.rank, prize_rows)
            if row is None:
                continue
            missed.append({
                "entry_id": str(entry.id),
                "user_id": str(entry.user_id),
                "rank": entry.rank,
                "expected_amount": str(row.amount),
            })

        gaps = [_describe_gap(gap) for gap in await find_payout_gaps(session, contest_id=contest.id)]
        if missed or gaps:
            total_missed += len(missed)
            report_contests.append({
                "contest_id": str(contest.id),
                "contest_name": contest.name,
                "finalized_at": contest.finalized_at.isoformat() if contest.finalized_at else None,
                "missed_prizes": missed,
                "unpaid_gaps": gaps,
            })

    all_gaps = await find_payout_gaps(session)
    pending_failed = await count_pending_failed_payouts(session)
    return {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "days": days,
        "contests_checked": len(contests),
        "missed_prize_count": total_missed,
        "unpaid_gap_count": len(all_gaps),
        "pending_failed_payouts": pending_failed,
        "contests": report_contests,
    }
