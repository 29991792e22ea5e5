"""
Contest finalization: score, rank and pay out a contest once its match completes
"""

import logging
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from cricfantasy.core.exceptions import (
    ContestNotFoundError,
    CricFantasyError,
    MatchNotCompletedError,
    PrizeTableError,
    ValidationError,
)
from cricfantasy.models.enums import ContestStatus, MatchStatus
from cricfantasy.repos.audit_log_repo import create_audit_log
from cricfantasy.repos.contest_entry_repo import get_entries_for_contest
from cricfantasy.repos.contest_repo import (
    get_contest_for_update,
    get_contests_for_match,
    mark_contest_finalized,
)
from cricfantasy.repos.fantasy_team_repo import get_players_for_teams
from cricfantasy.repos.match_repo import get_match_by_id
from cricfantasy.repos.prize_breakup_repo import get_prize_breakup
from cricfantasy.services.payouts import FAILED, PayoutProcessor, PayoutResult
from cricfantasy.services.points import compute_entry_points, load_player_points
from cricfantasy.services.prize_table import match_prize, prize_table_total
from cricfantasy.services.ranking import rank_entries

# Configure logging
logger = logging.getLogger(__name__)


async def _rank_contest(session, contest, match_id: UUID, entries) -> None:
    player_points = await load_player_points(session, match_id)
    team_players = await get_players_for_teams(session, {entry.fantasy_team_id for entry in entries})

    scored = [
        {
            "id": entry.id,
            "points": compute_entry_points(team_players.get(entry.fantasy_team_id, []), player_points),
            "created_at": entry.created_at,
        }
        for entry in entries
    ]
    by_id = {entry.id: entry for entry in entries}
    for ranked in rank_entries(scored):
        entry = by_id[ranked.entry_id]
        entry.rank = ranked.rank
        entry.points = ranked.points

    logger.info(f"Ranked {len(entries)} entries for contest {contest.id}")


async def finalize_contest(
    session_factory: async_sessionmaker,
    contest_id: UUID,
    processor: Optional[PayoutProcessor] = None,
    actor: Optional[str] = None
) -> Dict:
    """
    Finalize a contest: score and rank its entries, then pay every winner.

    The first run ranks entries, stores rank and points, and flags the contest
    finalized in one commit. Later runs reuse the stored ranks and only drive
    the payouts again, which the payout processor makes idempotent, so a
    re-run repairs a partially paid contest without moving any amounts.

    Args:
        session_factory: Session factory for the database
        contest_id: Contest UUID
        processor: Payout processor (a default one is built from settings)
        actor: Who triggered finalization, recorded in the audit log

    Returns:
        Dict with the finalization summary

    Raises:
        ContestNotFoundError: If the contest does not exist
        MatchNotCompletedError: If the contest's match has not completed
        ValidationError: If the contest was cancelled
        PrizeTableError: If the contest has no prize table
    """
    processor = processor or PayoutProcessor(session_factory)
    logger.info(f"Starting finalization for contest {contest_id}")

    async with session_factory() as session:
        contest = await get_contest_for_update(session, contest_id)
        if not contest:
            raise ContestNotFoundError(f"Contest {contest_id} not found")
        if contest.status == ContestStatus.CANCELLED.value:
            raise ValidationError(f"Contest {contest_id} was cancelled and cannot be finalized")

        match = await get_match_by_id(session, contest.match_id)
        if not match or match.status != MatchStatus.COMPLETED.value:
            status = match.status if match else "missing"
            raise MatchNotCompletedError(f"Match {contest.match_id} for contest {contest_id} is {status}")

        prize_rows = await get_prize_breakup(session, contest_id)
        if not prize_rows:
            raise PrizeTableError(f"Contest {contest_id} has no prize table")

        entries = await get_entries_for_contest(session, contest_id)
        already_finalized = contest.status == ContestStatus.FINALIZED.value

        if already_finalized:
            logger.info(f"Contest {contest_id} already finalized, reusing stored ranks")
        else:
            await _rank_contest(session, contest, match.id, entries)
            mark_contest_finalized(contest)
            await session.commit()

        ranked_entries = sorted(
            (entry for entry in entries if entry.rank is not None),
            key=lambda entry: entry.rank
        )
        planned = []
        for entry in ranked_entries:
            row = match_prize(entry.rank, prize_rows)
            if row is not None and row.amount > 0:
                planned.append((entry, row.amount))

        planned_total = sum((amount for _, amount in planned), Decimal("0"))
        table_total = prize_table_total(prize_rows)
        if planned_total > table_total:
            raise PrizeTableError(
                f"Planned payouts {planned_total} exceed prize table total {table_total} for contest {contest_id}"
            )

    winners: List[Dict] = []
    failed_payouts = 0
    distributed = Decimal("0")
    for entry, amount in planned:
        try:
            result = await processor.pay_winner(entry.id, contest, amount, entry.rank)
        except (CricFantasyError, SQLAlchemyError) as e:
            # One winner's failure must not stop the remaining payouts
            logger.error(f"Payout for entry {entry.id} in contest {contest_id} raised: {e}")
            result = PayoutResult(
                entry_id=entry.id,
                user_id=entry.user_id,
                amount=amount,
                status=FAILED,
                error=f"{type(e).__name__}: {e}",
            )
        if result.succeeded:
            distributed += result.amount
        else:
            failed_payouts += 1
        winners.append({
            "entry_id": str(entry.id),
            "user_id": str(entry.user_id),
            "rank": entry.rank,
            "points": str(entry.points) if entry.points is not None else None,
            "amount": str(result.amount),
            "status": result.status,
            "transaction_id": str(result.transaction_id) if result.transaction_id else None,
            "error": result.error,
        })

    summary = {
        "success": failed_payouts == 0,
        "contest_id": str(contest_id),
        "total_entries": len(entries),
        "total_prizes_distributed": str(distributed),
        "winners": winners,
        "failed_payouts": failed_payouts,
        "already_finalized": already_finalized,
    }

    async with session_factory() as session:
        await create_audit_log(
            session,
            action="contest_finalized" if not already_finalized else "contest_finalize_rerun",
            details={
                "contest_id": str(contest_id),
                "total_entries": len(entries),
                "winners": len(winners),
                "total_prizes_distributed": str(distributed),
                "failed_payouts": failed_payouts,
            },
            actor=actor,
        )
        await session.commit()

    if failed_payouts:
        logger.warning(f"Contest {contest_id} finalized with {failed_payouts} failed payouts awaiting replay")
    logger.info(
        f"Finalized contest {contest_id}: {len(winners)} winners, {distributed} distributed"
    )
    return summary


async def finalize_match_contests(
    session_factory: async_sessionmaker,
    match_id: UUID,
    processor: Optional[PayoutProcessor] = None,
    actor: Optional[str] = None
) -> Dict:
    """
    Finalize every non-cancelled contest of a completed match.

    A contest that fails to finalize is reported in its own result and does
    not stop the others.
    """
    async with session_factory() as session:
        match = await get_match_by_id(session, match_id)
        if not match:
            raise ValidationError(f"Match {match_id} not found")
        if match.status != MatchStatus.COMPLETED.value:
            raise MatchNotCompletedError(f"Match {match_id} is {match.status}")
        contest_ids = [contest.id for contest in await get_contests_for_match(session, match_id)]

    processor = processor or PayoutProcessor(session_factory)
    results = []
    for contest_id in contest_ids:
        try:
            summary = await finalize_contest(session_factory, contest_id, processor=processor, actor=actor)
            results.append(summary)
        except CricFantasyError as e:
            logger.warning(f"Skipping contest {contest_id} of match {match_id}: {e}")
            results.append({"success": False, "contest_id": str(contest_id), "error": str(e)})

    return {
        "match_id": str(match_id),
        "contests": results,
        "finalized": sum(1 for result in results if result.get("success")),
        "failed": sum(1 for result in results if not result.get("success")),
    }
