"""
Contest repository for contest lookup and finalization state
"""

from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from cricfantasy.models.contest import Contest
from cricfantasy.models.enums import ContestStatus


async def get_contest_by_id(session: AsyncSession, contest_id: UUID) -> Optional[Contest]:
    """
    Get contest by ID.

    Args:
        session: Database session
        contest_id: Contest UUID

    Returns:
        Contest instance or None if not found
    """
    result = await session.execute(
        select(Contest).where(Contest.id == contest_id)
    )
    return result.scalar_one_or_none()


async def get_contest_for_update(session: AsyncSession, contest_id: UUID) -> Optional[Contest]:
    """
    Get contest by ID with a row lock.

    Concurrent finalizations of the same contest serialize on this lock.
    """
    result = await session.execute(
        select(Contest)
        .where(Contest.id == contest_id)
        .with_for_update()
    )
    return result.scalar_one_or_none()


async def get_contests_for_match(
    session: AsyncSession,
    match_id: UUID,
    include_cancelled: bool = False
) -> List[Contest]:
    """
    Get contests of a match.

    Args:
        session: Database session
        match_id: Match UUID
        include_cancelled: Whether cancelled contests are returned

    Returns:
        List of Contest instances ordered by creation time
    """
    query = select(Contest).where(Contest.match_id == match_id)
    if not include_cancelled:
        query = query.where(Contest.status != ContestStatus.CANCELLED.value)
    query = query.order_by(Contest.created_at, Contest.id)

    result = await session.execute(query)
    return result.scalars().all()


async def get_finalized_contests_since(session: AsyncSession, since: datetime) -> List[Contest]:
    """Get contests finalized at or after `since`."""
    result = await session.execute(
        select(Contest)
        .where(Contest.status == ContestStatus.FINALIZED.value)
        .where(Contest.finalized_at >= since)
        .order_by(Contest.finalized_at.desc())
    )
    return result.scalars().all()


def mark_contest_finalized(contest: Contest) -> Contest:
    """Flag a contest finalized; the caller commits."""
    contest.status = ContestStatus.FINALIZED.value
    contest.finalized_at = datetime.now(timezone.utc)
    return contest
