"""
Winner payout processor.

Each payout moves through Checking -> Paying -> Verifying -> Paid. A payout
whose attempts are exhausted ends in Failed and leaves a dead-letter record
for the reconciliation sweep to replay.
"""

import logging
from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from cricfantasy.core.config import settings
from cricfantasy.core.exceptions import PayoutError, PayoutVerificationError, ValidationError
from cricfantasy.core.metrics import payout_attempts_total, payouts_total
from cricfantasy.models.enums import TransactionStatus
from cricfantasy.repos.contest_entry_repo import get_entry_by_id
from cricfantasy.repos.failed_payout_repo import create_failed_payout
from cricfantasy.repos.transaction_repo import get_contest_win_for_entry
from cricfantasy.repos.wallet_repo import credit_contest_win

logger = logging.getLogger(__name__)

# Failures worth another attempt; anything else propagates
RETRYABLE_ERRORS = (PayoutError, DBAPIError)

AMOUNT_PRECISION = Decimal("0.00000001")

PAID = "paid"
ALREADY_PAID = "already_paid"
BACKFILLED = "backfilled"
FAILED = "failed"


@dataclass
class PayoutResult:
    entry_id: UUID
    user_id: Optional[UUID]
    amount: Decimal
    status: str
    transaction_id: Optional[UUID] = None
    attempts: int = 0
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status != FAILED

    def to_dict(self):
        data = asdict(self)
        for key in ("entry_id", "user_id", "transaction_id"):
            if data[key] is not None:
                data[key] = str(data[key])
        data["amount"] = str(self.amount)
        return data


def _same_amount(left, right) -> bool:
    return Decimal(str(left)).quantize(AMOUNT_PRECISION) == Decimal(str(right)).quantize(AMOUNT_PRECISION)


class PayoutProcessor:
    """
    Pays contest winners exactly once.

    The processor opens its own sessions from `session_factory`, one per
    phase, so a failed phase never leaves a half-finished unit of work
    behind. pay_winner never raises for payout failures; it returns a
    PayoutResult with status "failed" after trying to write the dead-letter
    record; a failed dead-letter write is logged, not raised.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        max_attempts: Optional[int] = None,
        base_delay: Optional[float] = None,
        max_delay: Optional[float] = None,
    ):
        self.session_factory = session_factory
        self.max_attempts = max_attempts or settings.payout_max_attempts
        self.base_delay = settings.payout_retry_base_delay if base_delay is None else base_delay
        self.max_delay = settings.payout_retry_max_delay if max_delay is None else max_delay

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential_jitter(initial=self.base_delay, max=self.max_delay, jitter=self.base_delay),
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            reraise=True,
        )

    async def pay_winner(self, entry_id: UUID, contest, win_amount, rank: Optional[int] = None) -> PayoutResult:
        """
        Pay one winning entry.

        Args:
            entry_id: ContestEntry UUID
            contest: Contest the entry belongs to (id and name are used)
            win_amount: Prize amount for the entry
            rank: Entry rank, recorded in the ledger metadata

        Returns:
            PayoutResult with status paid, already_paid, backfilled or failed

        Raises:
            ValidationError: If the amount is not positive or the entry does not exist
        """
        amount = Decimal(str(win_amount))
        if amount <= 0:
            raise ValidationError(f"Win amount must be positive, got {amount}")

        attempts = 0
        user_id = None
        result = None
        try:
            async for attempt in self._retrying():
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    payout_attempts_total.inc()
                    if attempts > 1:
                        logger.warning(f"Retrying payout for entry {entry_id} (attempt {attempts}/{self.max_attempts})")
                    user_id, result = await self._attempt(entry_id, contest, amount, rank)
        except RETRYABLE_ERRORS as e:
            result = await self._fail(entry_id, user_id, contest, amount, rank, attempts, e)

        result.attempts = attempts
        payouts_total.labels(status=result.status).inc()
        return result

    async def _attempt(self, entry_id: UUID, contest, amount: Decimal, rank: Optional[int]):
        # Checking
        async with self.session_factory() as session:
            entry = await get_entry_by_id(session, entry_id)
            if not entry:
                raise ValidationError(f"Contest entry {entry_id} not found")
            user_id = entry.user_id

            existing = await get_contest_win_for_entry(session, user_id, entry_id)
            if existing is not None:
                if entry.win_amount is None:
                    entry.win_amount = existing.amount
                    await session.commit()
                    logger.info(f"Entry {entry_id} was paid earlier; backfilled win amount {existing.amount}")
                    status = BACKFILLED
                else:
                    logger.info(f"Entry {entry_id} already paid by transaction {existing.id}")
                    status = ALREADY_PAID
                return user_id, PayoutResult(
                    entry_id=entry_id,
                    user_id=user_id,
                    amount=Decimal(str(existing.amount)),
                    status=status,
                    transaction_id=existing.id,
                )

            # Paying
            if entry.win_amount is None or not _same_amount(entry.win_amount, amount):
                entry.win_amount = amount
                await session.commit()

        async with self.session_factory() as session:
            async with session.begin():
                transaction = await credit_contest_win(session, entry_id, amount, contest.name, rank)
            transaction_id = transaction.id

        # Verifying
        async with self.session_factory() as session:
            stored = await get_contest_win_for_entry(session, user_id, entry_id, status=None)
            if stored is None:
                raise PayoutVerificationError(f"contest_win transaction for entry {entry_id} not found after credit")
            if stored.status != TransactionStatus.COMPLETED.value or not _same_amount(stored.amount, amount):
                raise PayoutVerificationError(
                    f"contest_win transaction {stored.id} for entry {entry_id} "
                    f"has status {stored.status} and amount {stored.amount}, expected {amount}"
                )

        logger.info(f"Paid {amount} to user {user_id} for entry {entry_id} (rank {rank})")
        return user_id, PayoutResult(
            entry_id=entry_id,
            user_id=user_id,
            amount=amount,
            status=PAID,
            transaction_id=transaction_id,
        )

    async def _fail(self, entry_id, user_id, contest, amount, rank, attempts, error) -> PayoutResult:
        message = f"{type(error).__name__}: {error}"
        logger.error(f"Payout for entry {entry_id} failed after {attempts} attempts: {message}")

        # A dead-letter write that fails is logged; the result is still FAILED
        try:
            if user_id is None:
                async with self.session_factory() as session:
                    entry = await get_entry_by_id(session, entry_id)
                    user_id = entry.user_id if entry else None

            if user_id is not None:
                async with self.session_factory() as session:
                    record = await create_failed_payout(
                        session,
                        entry_id=entry_id,
                        user_id=user_id,
                        contest_id=contest.id,
                        win_amount=amount,
                        rank=rank,
                        error=message,
                        attempts=attempts,
                    )
                logger.error(f"Recorded failed payout {record.key} for replay")
            else:
                logger.error(f"No dead-letter record written for entry {entry_id}: owner unknown")
        except SQLAlchemyError as e:
            logger.error(f"Could not record failed payout for entry {entry_id}: {e}")

        return PayoutResult(
            entry_id=entry_id,
            user_id=user_id,
            amount=amount,
            status=FAILED,
            attempts=attempts,
            error=message,
        )
