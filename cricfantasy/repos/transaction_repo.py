"""
Transaction repository for contest win lookups
"""

from typing import List, Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from cricfantasy.models.transaction import Transaction
from cricfantasy.models.enums import TransactionStatus, TransactionType


async def get_contest_win_for_entry(
    session: AsyncSession,
    user_id: UUID,
    entry_id: UUID,
    status: Optional[str] = TransactionStatus.COMPLETED.value
) -> Optional[Transaction]:
    """
    Get the completed contest_win transaction of an entry.

    (user_id, entry_id, tx_type) is unique, so there is at most one.

    Args:
        session: Database session
        user_id: User UUID
        entry_id: ContestEntry UUID
        status: Required transaction status; None matches any status

    Returns:
        Transaction instance or None if the entry was never paid
    """
    query = (
        select(Transaction)
        .where(Transaction.user_id == user_id)
        .where(Transaction.entry_id == entry_id)
        .where(Transaction.tx_type == TransactionType.CONTEST_WIN.value)
    )
    if status is not None:
        query = query.where(Transaction.status == status)
    result = await session.execute(query)
    return result.scalar_one_or_none()


async def get_contest_wins_for_contest(session: AsyncSession, contest_id: UUID) -> List[Transaction]:
    """Get every contest_win transaction recorded for a contest."""
    result = await session.execute(
        select(Transaction)
        .where(Transaction.contest_id == contest_id)
        .where(Transaction.tx_type == TransactionType.CONTEST_WIN.value)
        .order_by(Transaction.created_at)
    )
    return result.scalars().all()
