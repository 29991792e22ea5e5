"""
Wallet repository with atomic balance operations
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID
import logging
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update

from cricfantasy.core.config import settings
from cricfantasy.core.exceptions import PayoutError
from cricfantasy.models.contest_entry import ContestEntry
from cricfantasy.models.enums import TransactionStatus, TransactionType
from cricfantasy.models.transaction import Transaction
from cricfantasy.models.user import User
from cricfantasy.repos.contest_entry_repo import get_entry_for_update

# Configure logging
logger = logging.getLogger(__name__)


async def get_wallet_balance(session: AsyncSession, user_id: UUID) -> Optional[Decimal]:
    """
    Get a user's wallet balance.

    Args:
        session: Database session
        user_id: User UUID

    Returns:
        Balance or None if the user does not exist
    """
    result = await session.execute(
        select(User.wallet_balance).where(User.id == user_id)
    )
    return result.scalar_one_or_none()


def contest_win_reference(contest_name: str, rank: Optional[int]) -> str:
    """Human-readable reference shown in the user's ledger. Never used for lookups."""
    if rank is None:
        return f"Contest Win: {contest_name}"
    return f"Contest Win: {contest_name} - Rank {rank}"


async def credit_contest_win(
    session: AsyncSession,
    entry_id: UUID,
    amount: Decimal,
    contest_name: str = "",
    rank: Optional[int] = None
) -> Transaction:
    """
    Credit a contest win to the entry owner's wallet.

    Runs inside the caller's database transaction: the entry row is locked,
    the balance is incremented in SQL and the contest_win transaction is
    inserted, so either both effects commit or neither does. An entry whose
    win_amount is still unset gets it recorded in the same unit.

    A second writer for the same entry violates the
    (user_id, entry_id, tx_type) unique key and gets IntegrityError at flush.

    Args:
        session: Database session with an open transaction
        entry_id: ContestEntry UUID
        amount: Amount to credit (must be positive)
        contest_name: Contest name for the display reference
        rank: Entry rank for the display reference and metadata

    Returns:
        The flushed Transaction

    Raises:
        PayoutError: If the amount is not positive, or the entry or user is missing
        IntegrityError: If the entry was already paid
    """
    if amount <= 0:
        raise PayoutError(f"Payout amount must be positive, got {amount}")

    entry: Optional[ContestEntry] = await get_entry_for_update(session, entry_id)
    if not entry:
        raise PayoutError(f"Contest entry {entry_id} not found")

    result = await session.execute(
        update(User)
        .where(User.id == entry.user_id)
        .values(wallet_balance=User.wallet_balance + amount)
    )
    if result.rowcount != 1:
        raise PayoutError(f"User {entry.user_id} not found for entry {entry_id}")

    transaction = Transaction(
        user_id=entry.user_id,
        amount=amount,
        tx_type=TransactionType.CONTEST_WIN.value,
        status=TransactionStatus.COMPLETED.value,
        reference=contest_win_reference(contest_name, rank),
        contest_id=entry.contest_id,
        entry_id=entry.id,
        tx_metadata={
            "contestId": str(entry.contest_id),
            "entryId": str(entry.id),
            "rank": rank,
            "currency": settings.currency
        }
    )
    session.add(transaction)

    if entry.win_amount is None:
        entry.win_amount = amount

    await session.flush()
    logger.info(f"Credited {amount} to user {entry.user_id} for entry {entry_id} (rank {rank})")
    return transaction
