"""
Unit tests for the reconciliation scheduler

The sweep itself is replaced with a mock; these tests cover overlap
handling, the redis lock and the start/stop lifecycle.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from cricfantasy.services.reconciliation_scheduler import JOB_ID, ReconciliationScheduler

SWEEP = "cricfantasy.services.reconciliation_scheduler.run_wallet_transaction_fix"

SWEEP_RESULT = {
    "success_count": 2,
    "error_count": 0,
    "replayed_count": 0,
    "replay_error_count": 0,
    "gaps_found": 2,
    "pending_failed": 0,
    "cancelled": False,
    "dry_run": False,
    "gaps": [],
}


@pytest.fixture
def scheduler():
    return ReconciliationScheduler(MagicMock(), interval_minutes=15, concurrency=1)


def fake_redis(acquired=True, error=None):
    lock = MagicMock()
    lock.acquire = AsyncMock(return_value=acquired, side_effect=error)
    lock.release = AsyncMock()
    client = MagicMock()
    client.lock.return_value = lock
    return client, lock


class TestRunNow:
    """Single sweep execution"""

    async def test_successful_run_records_result(self, scheduler):
        with patch(SWEEP, AsyncMock(return_value=dict(SWEEP_RESULT))) as sweep:
            result = await scheduler.run_now()

        assert result["success"] is True
        assert result["success_count"] == 2
        assert sweep.await_args.kwargs["concurrency"] == 1
        assert scheduler.last_result["gaps_found"] == 2
        assert "gaps" not in scheduler.last_result
        assert scheduler.last_error is None
        assert scheduler.status()["last_run"] is not None

    async def test_overlapping_run_is_skipped(self, scheduler):
        release = asyncio.Event()
        entered = asyncio.Event()

        async def slow_sweep(*args, **kwargs):
            entered.set()
            await release.wait()
            return dict(SWEEP_RESULT)

        with patch(SWEEP, side_effect=slow_sweep) as sweep:
            first = asyncio.create_task(scheduler.run_now())
            await entered.wait()
            assert scheduler.in_flight is True

            second = await scheduler.run_now()

            release.set()
            first_result = await first

        assert second == {"skipped": True, "reason": "reconciliation already in progress"}
        assert first_result["success"] is True
        assert sweep.await_count == 1
        assert scheduler.in_flight is False

    async def test_failure_is_returned_and_kept(self, scheduler):
        with patch(SWEEP, AsyncMock(side_effect=RuntimeError("database went away"))):
            result = await scheduler.run_now()

        assert result == {"success": False, "error": "database went away"}
        assert scheduler.status()["last_error"] == "database went away"
        assert scheduler.in_flight is False

    async def test_stop_signals_in_flight_sweep(self, scheduler):
        seen = {}
        entered = asyncio.Event()

        async def sweep(*args, stop_event=None, **kwargs):
            seen["stop_event"] = stop_event
            entered.set()
            while not stop_event.is_set():
                await asyncio.sleep(0)
            return dict(SWEEP_RESULT, cancelled=True)

        with patch(SWEEP, side_effect=sweep):
            task = asyncio.create_task(scheduler.run_now())
            await entered.wait()
            await scheduler.stop()
            result = await asyncio.wait_for(task, timeout=5)

        assert seen["stop_event"].is_set()
        assert result["cancelled"] is True


class TestDistributedLock:
    """Cross-process exclusion through redis"""

    async def test_lock_held_elsewhere_skips(self):
        client, lock = fake_redis(acquired=False)
        scheduler = ReconciliationScheduler(MagicMock(), redis_client=client, lock_timeout=60)

        with patch(SWEEP, AsyncMock()) as sweep:
            result = await scheduler.run_now()

        assert result["skipped"] is True
        assert result["reason"] == "reconciliation running in another process"
        sweep.assert_not_awaited()
        lock.release.assert_not_awaited()

    async def test_lock_is_released_after_run(self):
        client, lock = fake_redis(acquired=True)
        scheduler = ReconciliationScheduler(MagicMock(), redis_client=client, lock_timeout=60)

        with patch(SWEEP, AsyncMock(return_value=dict(SWEEP_RESULT))):
            result = await scheduler.run_now()

        assert result["success"] is True
        client.lock.assert_called_once()
        assert client.lock.call_args.kwargs["timeout"] == 60
        lock.release.assert_awaited_once()

    async def test_redis_unavailable_reports_error(self):
        client, _ = fake_redis(error=RedisConnectionError("connection refused"))
        scheduler = ReconciliationScheduler(MagicMock(), redis_client=client)

        with patch(SWEEP, AsyncMock()) as sweep:
            result = await scheduler.run_now()

        assert result["success"] is False
        assert "redis unavailable" in result["error"]
        sweep.assert_not_awaited()


class TestLifecycle:
    """Timer start and stop"""

    async def test_start_and_stop(self, scheduler):
        await scheduler.start(run_immediately=False)
        try:
            status = scheduler.status()
            assert status["running"] is True
            assert status["interval_minutes"] == 15
            assert status["next_run"] is not None
            assert scheduler.scheduler.get_job(JOB_ID) is not None
        finally:
            await scheduler.stop()

        status = scheduler.status()
        assert status["running"] is False
        assert status["next_run"] is None

    async def test_second_start_is_ignored(self, scheduler):
        await scheduler.start(run_immediately=False)
        timer = scheduler.scheduler
        try:
            await scheduler.start(run_immediately=False)
            assert scheduler.scheduler is timer
        finally:
            await scheduler.stop()
