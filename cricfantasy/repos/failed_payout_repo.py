"""
Dead-letter repository for payouts that exhausted their retries
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from cricfantasy.models.enums import FailedPayoutStatus
from cricfantasy.models.failed_payout import FailedPayoutRecord


def failed_payout_key(entry_id: UUID, now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"failed_contest_win_{entry_id}_{int(now.timestamp() * 1000)}"


async def create_failed_payout(
    session: AsyncSession,
    entry_id: UUID,
    user_id: UUID,
    contest_id: UUID,
    win_amount: Decimal,
    rank: Optional[int],
    error: str,
    attempts: int
) -> FailedPayoutRecord:
    """
    Create a pending dead-letter record and commit.

    Args:
        session: Database session
        entry_id: ContestEntry UUID
        user_id: Entry owner UUID
        contest_id: Contest UUID
        win_amount: Amount that could not be paid
        rank: Entry rank
        error: Last error message
        attempts: Number of attempts made

    Returns:
        Created FailedPayoutRecord
    """
    record = FailedPayoutRecord(
        key=failed_payout_key(entry_id),
        entry_id=entry_id,
        user_id=user_id,
        contest_id=contest_id,
        rank=rank,
        win_amount=win_amount,
        error=error,
        attempts=attempts,
        status=FailedPayoutStatus.PENDING.value
    )
    session.add(record)
    await session.commit()
    await session.refresh(record)
    return record


async def get_pending_failed_payouts(session: AsyncSession, limit: Optional[int] = None) -> List[FailedPayoutRecord]:
    """Get pending dead-letter records, oldest first."""
    query = (
        select(FailedPayoutRecord)
        .where(FailedPayoutRecord.status == FailedPayoutStatus.PENDING.value)
        .order_by(FailedPayoutRecord.created_at, FailedPayoutRecord.key)
    )
    if limit:
        query = query.limit(limit)
    result = await session.execute(query)
    return result.scalars().all()


async def get_failed_payout_by_id(session: AsyncSession, record_id: UUID) -> Optional[FailedPayoutRecord]:
    result = await session.execute(
        select(FailedPayoutRecord).where(FailedPayoutRecord.id == record_id)
    )
    return result.scalar_one_or_none()


async def count_pending_failed_payouts(session: AsyncSession) -> int:
    result = await session.execute(
        select(func.count(FailedPayoutRecord.id))
        .where(FailedPayoutRecord.status == FailedPayoutStatus.PENDING.value)
    )
    return result.scalar_one()


def mark_replayed(record: FailedPayoutRecord) -> FailedPayoutRecord:
    """Flag a record replayed; the caller commits."""
    record.status = FailedPayoutStatus.REPLAYED.value
    record.replayed_at = datetime.now(timezone.utc)
    return record
