"""
Contest entry repository for ranking and payout bookkeeping
"""

from typing import List, Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from cricfantasy.models.contest_entry import ContestEntry


async def get_entry_by_id(session: AsyncSession, entry_id: UUID) -> Optional[ContestEntry]:
    """
    Get contest entry by ID.

    Args:
        session: Database session
        entry_id: ContestEntry UUID

    Returns:
        ContestEntry instance or None if not found
    """
    result = await session.execute(
        select(ContestEntry).where(ContestEntry.id == entry_id)
    )
    return result.scalar_one_or_none()


async def get_entry_for_update(session: AsyncSession, entry_id: UUID) -> Optional[ContestEntry]:
    """
    Get contest entry by ID with a row lock.

    Every writer of an entry's payout (processor, sweep, replay) takes this
    lock before crediting, so two of them cannot pay the same entry at once.
    """
    result = await session.execute(
        select(ContestEntry)
        .where(ContestEntry.id == entry_id)
        .with_for_update()
    )
    return result.scalar_one_or_none()


async def get_entries_for_contest(session: AsyncSession, contest_id: UUID) -> List[ContestEntry]:
    """
    Get all entries of a contest.

    Entries with a stored rank come first in rank order, the rest in
    creation order.
    """
    result = await session.execute(
        select(ContestEntry)
        .where(ContestEntry.contest_id == contest_id)
        .order_by(ContestEntry.rank.asc().nulls_last(), ContestEntry.created_at, ContestEntry.id)
    )
    return result.scalars().all()


async def count_entries_for_contest(session: AsyncSession, contest_id: UUID) -> int:
    """Count entries of a contest."""
    result = await session.execute(
        select(func.count(ContestEntry.id)).where(ContestEntry.contest_id == contest_id)
    )
    return result.scalar_one()

