"""
Integration tests for the wallet/transaction reconciliation sweep

Sweeps run with concurrency=1: SQLite serializes writers, so parallel
units would only wait on each other.
"""

import asyncio
import pytest
from decimal import Decimal
from unittest.mock import AsyncMock, patch

from sqlalchemy import delete, select, update

from cricfantasy.core.exceptions import PayoutError
from cricfantasy.models.contest_entry import ContestEntry
from cricfantasy.models.enums import FailedPayoutStatus
from cricfantasy.models.failed_payout import FailedPayoutRecord
from cricfantasy.models.transaction import Transaction
from cricfantasy.repos.failed_payout_repo import create_failed_payout
from cricfantasy.repos.wallet_repo import credit_contest_win
from cricfantasy.services.finalization import finalize_contest
from cricfantasy.services.prize_table import generate_prize_table
from cricfantasy.services.reconciliation import (
    build_prize_monitor_report,
    find_payout_gaps,
    run_wallet_transaction_fix,
)

AMOUNTS = [Decimal("500"), Decimal("400"), Decimal("300"), Decimal("200"), Decimal("100")]


@pytest.fixture
async def partly_paid(factory, session_factory):
    """Five winning entries of which only the first three were credited."""
    match = await factory.match()
    contest = await factory.contest(match, total_prize="1500", winner_count=5, first_prize="500")
    users = [await factory.user() for _ in AMOUNTS]
    entries = [
        await factory.entry(contest, user, rank=rank, win_amount=amount)
        for rank, (user, amount) in enumerate(zip(users, AMOUNTS), start=1)
    ]

    async with session_factory() as session:
        async with session.begin():
            for entry in entries[:3]:
                await credit_contest_win(session, entry.id, entry.win_amount, contest.name, entry.rank)

    return contest, users, entries


@pytest.mark.integration
class TestWalletTransactionFix:
    """Repairing entries whose win was never credited"""

    async def test_finds_only_unpaid_winners(self, session_factory, partly_paid):
        _, _, entries = partly_paid

        async with session_factory() as session:
            gaps = await find_payout_gaps(session)

        assert [gap["entry_id"] for gap in gaps] == [entries[3].id, entries[4].id]
        assert [gap["win_amount"] for gap in gaps] == AMOUNTS[3:]

    async def test_sweep_credits_missing_wins(self, factory, session_factory, partly_paid):
        """Test two of five winners are repaired and nobody is paid twice"""
        contest, users, _ = partly_paid

        result = await run_wallet_transaction_fix(session_factory, concurrency=1)

        assert result["gaps_found"] == 2
        assert result["success_count"] == 2
        assert result["error_count"] == 0
        assert result["cancelled"] is False
        assert [await factory.balance(user) for user in users] == AMOUNTS
        assert len(await factory.contest_wins(contest)) == 5

        async with session_factory() as session:
            assert await find_payout_gaps(session) == []

        again = await run_wallet_transaction_fix(session_factory, concurrency=1)
        assert again["gaps_found"] == 0
        assert again["success_count"] == 0
        assert [await factory.balance(user) for user in users] == AMOUNTS

    async def test_dry_run_writes_nothing(self, factory, session_factory, partly_paid):
        contest, users, entries = partly_paid

        result = await run_wallet_transaction_fix(session_factory, dry_run=True)

        assert result["dry_run"] is True
        assert result["success_count"] == 0
        assert [gap["entry_id"] for gap in result["gaps"]] == [str(entries[3].id), str(entries[4].id)]
        assert Decimal(result["gaps"][0]["win_amount"]) == Decimal("200")
        assert result["failed_payouts"] == []
        assert await factory.balance(users[3]) == Decimal("0")
        assert len(await factory.contest_wins(contest)) == 3

    async def test_stop_requested_before_start(self, factory, session_factory, partly_paid):
        _, users, _ = partly_paid
        stop_event = asyncio.Event()
        stop_event.set()

        result = await run_wallet_transaction_fix(session_factory, concurrency=1, stop_event=stop_event)

        assert result["cancelled"] is True
        assert result["success_count"] == 0
        assert await factory.balance(users[4]) == Decimal("0")


@pytest.mark.integration
class TestFailedPayoutReplay:
    """Dead-letter records left by exhausted payouts"""

    async def test_failed_finalization_is_repaired(self, factory, session_factory, processor):
        """Test a payout that failed during finalization is paid by the next sweep"""
        match = await factory.match()
        contest = await factory.contest(match)
        await factory.prize_table(
            contest,
            generate_prize_table(total_prize=900, winner_count=2, first_prize=600, entry_fee=500)
        )
        user = await factory.user()
        await factory.entry(contest, user)

        with patch("cricfantasy.services.payouts.credit_contest_win",
                   AsyncMock(side_effect=PayoutError("wallet unavailable"))):
            summary = await finalize_contest(session_factory, contest.id, processor=processor)

        assert summary["success"] is False
        assert summary["failed_payouts"] == 1
        assert await factory.balance(user) == Decimal("0")

        result = await run_wallet_transaction_fix(session_factory, concurrency=1)

        # the gap fix pays the entry, the replay then finds it paid
        assert result["success_count"] == 1
        assert result["pending_failed"] == 1
        assert result["replayed_count"] == 1
        assert await factory.balance(user) == Decimal("600")
        assert len(await factory.contest_wins(contest)) == 1

        async with session_factory() as session:
            record = (await session.execute(select(FailedPayoutRecord))).scalar_one()
        assert record.status == FailedPayoutStatus.REPLAYED.value
        assert record.replayed_at is not None

    async def test_replay_credits_record_without_win_amount(self, factory, session_factory):
        match = await factory.match()
        contest = await factory.contest(match)
        user = await factory.user()
        entry = await factory.entry(contest, user, rank=1)

        async with session_factory() as session:
            await create_failed_payout(
                session,
                entry_id=entry.id,
                user_id=user.id,
                contest_id=contest.id,
                win_amount=Decimal("600"),
                rank=1,
                error="PayoutError: wallet unavailable",
                attempts=3,
            )

        result = await run_wallet_transaction_fix(session_factory, concurrency=1)

        assert result["gaps_found"] == 0
        assert result["replayed_count"] == 1
        assert await factory.balance(user) == Decimal("600")
        assert (await factory.reload_entry(entry)).win_amount == Decimal("600")

        again = await run_wallet_transaction_fix(session_factory, concurrency=1)
        assert again["pending_failed"] == 0
        assert await factory.balance(user) == Decimal("600")


@pytest.mark.integration
class TestPrizeMonitor:
    """Read-only payout health report"""

    async def test_reports_missed_prizes_and_gaps(self, factory, session_factory, processor):
        match = await factory.match()
        contest = await factory.contest(match)
        await factory.prize_table(
            contest,
            generate_prize_table(total_prize=900, winner_count=2, first_prize=600, entry_fee=500)
        )
        first = await factory.entry(contest, await factory.user())
        second = await factory.entry(contest, await factory.user())
        await finalize_contest(session_factory, contest.id, processor=processor)

        async with session_factory() as session:
            # first place loses its ledger row, second place loses its win amount
            await session.execute(delete(Transaction).where(Transaction.entry_id == first.id))
            await session.execute(
                update(ContestEntry).where(ContestEntry.id == second.id).values(win_amount=None)
            )
            await session.commit()

            report = await build_prize_monitor_report(session, days=7)

        assert report["contests_checked"] == 1
        assert report["missed_prize_count"] == 1
        assert report["unpaid_gap_count"] == 1
        contest_report = report["contests"][0]
        assert contest_report["contest_id"] == str(contest.id)
        assert contest_report["missed_prizes"][0]["entry_id"] == str(second.id)
        assert Decimal(contest_report["missed_prizes"][0]["expected_amount"]) == Decimal("300")
        assert contest_report["unpaid_gaps"][0]["entry_id"] == str(first.id)

    async def test_healthy_contests_are_not_listed(self, factory, session_factory, processor):
        match = await factory.match()
        contest = await factory.contest(match)
        await factory.prize_table(
            contest,
            generate_prize_table(total_prize=900, winner_count=2, first_prize=600, entry_fee=500)
        )
        await factory.entry(contest, await factory.user())
        await finalize_contest(session_factory, contest.id, processor=processor)

        async with session_factory() as session:
            report = await build_prize_monitor_report(session)

        assert report["contests_checked"] == 1
        assert report["contests"] == []
        assert report["missed_prize_count"] == 0
        assert report["pending_failed_payouts"] == 0
