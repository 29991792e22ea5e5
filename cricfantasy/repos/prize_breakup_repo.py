"""
Prize breakup repository - stored prize tables
"""

from typing import List, Sequence
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete

from cricfantasy.core.exceptions import PrizeTableLockedError
from cricfantasy.models.contest import Contest
from cricfantasy.models.prize_breakup import PrizeBreakup
from cricfantasy.repos.contest_entry_repo import count_entries_for_contest
from cricfantasy.services.prize_table import PrizeRow


async def create_prize_breakup(
    session: AsyncSession,
    contest: Contest,
    rows: Sequence[PrizeRow]
) -> List[PrizeBreakup]:
    """
    Store a contest's prize table, replacing any previous one.

    Args:
        session: Database session
        contest: Contest the table belongs to
        rows: Generated prize rows

    Returns:
        Created PrizeBreakup instances

    Raises:
        PrizeTableLockedError: If entries have already joined the contest
    """
    entry_count = await count_entries_for_contest(session, contest.id)
    if entry_count > 0:
        raise PrizeTableLockedError(
            f"Contest {contest.id} already has {entry_count} entries; its prize table is locked"
        )

    await session.execute(
        delete(PrizeBreakup).where(PrizeBreakup.contest_id == contest.id)
    )
    breakups = [
        PrizeBreakup(
            contest_id=contest.id,
            rank=row.rank,
            rank_start=row.start,
            rank_end=row.end,
            prize_amount=row.amount,
            percentage=row.percentage
        )
        for row in rows
    ]
    session.add_all(breakups)
    await session.commit()
    return breakups


async def get_prize_breakup(session: AsyncSession, contest_id: UUID) -> List[PrizeRow]:
    """Get a contest's stored prize table as PrizeRows ordered by rank."""
    result = await session.execute(
        select(PrizeBreakup)
        .where(PrizeBreakup.contest_id == contest_id)
        .order_by(PrizeBreakup.rank_start)
    )
    return [
        PrizeRow(
            start=breakup.rank_start,
            end=breakup.rank_end,
            amount=breakup.prize_amount,
            percentage=breakup.percentage
        )
        for breakup in result.scalars().all()
    ]
