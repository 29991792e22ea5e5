"""
Integration tests for the winner payout processor
"""

import asyncio
import pytest
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

from sqlalchemy import select, update
from sqlalchemy.exc import OperationalError

from cricfantasy.core.exceptions import PayoutError, ValidationError
from cricfantasy.models.contest_entry import ContestEntry
from cricfantasy.models.enums import FailedPayoutStatus, TransactionStatus
from cricfantasy.models.transaction import Transaction
from cricfantasy.models.failed_payout import FailedPayoutRecord
from cricfantasy.repos import wallet_repo
from cricfantasy.repos.transaction_repo import get_contest_win_for_entry
from cricfantasy.repos.wallet_repo import credit_contest_win
from cricfantasy.services.payouts import PayoutProcessor
from cricfantasy.services.reconciliation import run_wallet_transaction_fix

CREDIT = "cricfantasy.services.payouts.credit_contest_win"
DEAD_LETTER = "cricfantasy.services.payouts.create_failed_payout"


@pytest.fixture
async def winner(factory):
    """A completed contest with one entry ranked first."""
    match = await factory.match()
    contest = await factory.contest(match)
    user = await factory.user()
    entry = await factory.entry(contest, user, rank=1)
    return contest, user, entry


@pytest.mark.integration
class TestPayWinner:
    """Checking -> Paying -> Verifying -> Paid"""

    async def test_pays_winner(self, factory, processor, winner):
        """Test a first payout credits the wallet and records the win"""
        contest, user, entry = winner

        result = await processor.pay_winner(entry.id, contest, Decimal("600"), rank=1)

        assert result.status == "paid"
        assert result.attempts == 1
        assert result.transaction_id is not None
        assert await factory.balance(user) == Decimal("600")

        wins = await factory.contest_wins(contest)
        assert len(wins) == 1
        assert wins[0].id == result.transaction_id
        assert wins[0].tx_metadata["entryId"] == str(entry.id)
        assert wins[0].tx_metadata["rank"] == 1
        assert wins[0].reference == "Contest Win: Mega Contest - Rank 1"

        stored = await factory.reload_entry(entry)
        assert stored.win_amount == Decimal("600")

    async def test_second_call_is_a_no_op(self, factory, processor, winner):
        """Test paying the same entry twice credits it once"""
        contest, user, entry = winner

        first = await processor.pay_winner(entry.id, contest, Decimal("600"), rank=1)
        second = await processor.pay_winner(entry.id, contest, Decimal("600"), rank=1)

        assert first.status == "paid"
        assert second.status == "already_paid"
        assert second.transaction_id == first.transaction_id
        assert await factory.balance(user) == Decimal("600")
        assert len(await factory.contest_wins(contest)) == 1

    async def test_backfills_missing_win_amount(self, factory, session_factory, processor, winner):
        """Test an entry paid without its win_amount gets it back"""
        contest, user, entry = winner

        async with session_factory() as session:
            async with session.begin():
                await credit_contest_win(session, entry.id, Decimal("600"), contest.name, 1)
            await session.execute(
                update(ContestEntry).where(ContestEntry.id == entry.id).values(win_amount=None)
            )
            await session.commit()

        result = await processor.pay_winner(entry.id, contest, Decimal("600"), rank=1)

        assert result.status == "backfilled"
        assert (await factory.reload_entry(entry)).win_amount == Decimal("600")
        assert await factory.balance(user) == Decimal("600")

    async def test_transient_failure_is_retried(self, factory, processor, winner):
        """Test a credit that fails once succeeds on the next attempt"""
        contest, user, entry = winner
        calls = []

        async def flaky_credit(session, *args, **kwargs):
            calls.append(args)
            if len(calls) == 1:
                raise PayoutError("wallet write timed out")
            return await wallet_repo.credit_contest_win(session, *args, **kwargs)

        with patch(CREDIT, side_effect=flaky_credit):
            result = await processor.pay_winner(entry.id, contest, Decimal("600"), rank=1)

        assert result.status == "paid"
        assert result.attempts == 2
        assert len(calls) == 2
        assert await factory.balance(user) == Decimal("600")

    async def test_exhausted_retries_write_dead_letter(self, factory, session_factory, processor, winner):
        """Test a payout that keeps failing is recorded for replay"""
        contest, user, entry = winner

        with patch(CREDIT, AsyncMock(side_effect=PayoutError("wallet unavailable"))) as credit:
            result = await processor.pay_winner(entry.id, contest, Decimal("600"), rank=1)

        assert credit.await_count == 3
        assert result.status == "failed"
        assert result.attempts == 3
        assert "wallet unavailable" in result.error
        assert await factory.balance(user) == Decimal("0")

        async with session_factory() as session:
            records = (await session.execute(select(FailedPayoutRecord))).scalars().all()
        assert len(records) == 1
        record = records[0]
        assert record.entry_id == entry.id
        assert record.user_id == user.id
        assert record.contest_id == contest.id
        assert record.win_amount == Decimal("600")
        assert record.attempts == 3
        assert record.status == FailedPayoutStatus.PENDING.value
        assert record.key.startswith(f"failed_contest_win_{entry.id}_")

    async def test_dead_letter_write_failure_still_returns_failed(self, factory, session_factory, processor, winner):
        """Test a payout whose dead-letter write also fails is reported, not raised"""
        contest, user, entry = winner
        db_down = OperationalError("INSERT INTO failed_payouts", {}, Exception("disk I/O error"))

        with patch(CREDIT, AsyncMock(side_effect=PayoutError("wallet unavailable"))), \
                patch(DEAD_LETTER, AsyncMock(side_effect=db_down)):
            result = await processor.pay_winner(entry.id, contest, Decimal("600"), rank=1)

        assert result.status == "failed"
        assert result.user_id == user.id
        assert "wallet unavailable" in result.error
        assert await factory.balance(user) == Decimal("0")
        # the recorded win amount leaves a gap the sweep can repair
        assert (await factory.reload_entry(entry)).win_amount == Decimal("600")

        async with session_factory() as session:
            assert (await session.execute(select(FailedPayoutRecord))).scalars().all() == []

    async def test_unverifiable_credit_fails(self, factory, processor, winner):
        """Test a credit that leaves no ledger row fails verification"""
        contest, user, entry = winner

        with patch(CREDIT, AsyncMock(return_value=MagicMock(id=uuid4()))):
            result = await processor.pay_winner(entry.id, contest, Decimal("600"), rank=1)

        assert result.status == "failed"
        assert result.error.startswith("PayoutVerificationError")

    async def test_rejects_non_positive_amount(self, processor, winner):
        """Test zero and negative amounts are rejected before any write"""
        contest, _, entry = winner

        with pytest.raises(ValidationError):
            await processor.pay_winner(entry.id, contest, Decimal("0"))
        with pytest.raises(ValidationError):
            await processor.pay_winner(entry.id, contest, Decimal("-5"))

    async def test_rejects_unknown_entry(self, processor, winner):
        """Test paying an entry that does not exist"""
        contest, _, _ = winner

        with pytest.raises(ValidationError):
            await processor.pay_winner(uuid4(), contest, Decimal("100"))


@pytest.mark.integration
class TestConcurrentPayouts:
    """Several writers paying the same entry at once"""

    @pytest.fixture
    def patient_processor(self, session_factory):
        """Processor with room to retry lock and unique-key conflicts."""
        return PayoutProcessor(session_factory, max_attempts=5, base_delay=0, max_delay=0)

    async def test_parallel_calls_credit_once(self, factory, patient_processor, winner):
        """Test racing pay_winner calls for one entry create one transaction"""
        contest, user, entry = winner

        results = await asyncio.gather(*(
            patient_processor.pay_winner(entry.id, contest, Decimal("600"), rank=1)
            for _ in range(3)
        ))

        assert all(result.succeeded for result in results)
        assert [result.status for result in results].count("paid") == 1
        assert len({result.transaction_id for result in results}) == 1
        assert await factory.balance(user) == Decimal("600")
        assert len(await factory.contest_wins(contest)) == 1

    async def test_payout_racing_sweep_credits_once(self, factory, session_factory, patient_processor):
        """Test the processor and the reconciliation sweep never both pay an entry"""
        match = await factory.match()
        contest = await factory.contest(match)
        user = await factory.user()
        entry = await factory.entry(contest, user, rank=1, win_amount="600")

        result, sweep = await asyncio.gather(
            patient_processor.pay_winner(entry.id, contest, Decimal("600"), rank=1),
            run_wallet_transaction_fix(session_factory, concurrency=1),
        )

        assert result.succeeded
        assert sweep["success_count"] + (1 if result.status == "paid" else 0) == 1
        assert await factory.balance(user) == Decimal("600")
        assert len(await factory.contest_wins(contest)) == 1


@pytest.mark.integration
class TestContestWinLookup:
    """Finding the ledger row of an entry"""

    async def test_only_completed_wins_count_as_paid(self, session_factory, winner):
        contest, user, entry = winner

        async with session_factory() as session:
            async with session.begin():
                await credit_contest_win(session, entry.id, Decimal("600"), contest.name, 1)
            await session.execute(
                update(Transaction)
                .where(Transaction.entry_id == entry.id)
                .values(status=TransactionStatus.PENDING.value)
            )
            await session.commit()

            assert await get_contest_win_for_entry(session, user.id, entry.id) is None
            pending = await get_contest_win_for_entry(session, user.id, entry.id, status=None)

        assert pending is not None
        assert pending.status == TransactionStatus.PENDING.value
