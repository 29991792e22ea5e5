"""
Test configuration and fixtures for CricFantasy

Every test gets its own SQLite database file, so code that opens several
sessions from a session factory (payout processor, reconciliation sweep)
sees committed data exactly as it would against PostgreSQL.

Usage:
    pytest tests/
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator, Iterable, Optional
from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from cricfantasy.db.base import Base
from cricfantasy.db.session import create_session_factory, get_db, get_session_factory
from cricfantasy.main import app
from cricfantasy.models import (
    Contest,
    ContestEntry,
    FantasyTeam,
    FantasyTeamPlayer,
    Match,
    PlayerStatistic,
    User,
)
from cricfantasy.models.enums import ContestStatus, MatchStatus
from cricfantasy.repos.contest_entry_repo import get_entry_by_id
from cricfantasy.repos.prize_breakup_repo import create_prize_breakup
from cricfantasy.repos.transaction_repo import get_contest_wins_for_contest
from cricfantasy.repos.wallet_repo import get_wallet_balance
from cricfantasy.services.payouts import PayoutProcessor
from cricfantasy.services.prize_table import PrizeRow
from cricfantasy.services.reconciliation_scheduler import ReconciliationScheduler


@pytest.fixture
async def db_engine(tmp_path):
    """Create a file-backed SQLite engine with all tables."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'cricfantasy.db'}",
        echo=False,
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker:
    return create_session_factory(db_engine)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def processor(session_factory) -> PayoutProcessor:
    """Payout processor that retries without sleeping."""
    return PayoutProcessor(session_factory, max_attempts=3, base_delay=0, max_delay=0)


class Factory:
    """Builds contest fixtures row by row, committing each one."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory
        self._clock = datetime(2026, 1, 1, tzinfo=timezone.utc)

    def tick(self) -> datetime:
        self._clock += timedelta(seconds=1)
        return self._clock

    async def _save(self, obj):
        async with self.session_factory() as session:
            session.add(obj)
            await session.commit()
            await session.refresh(obj)
        return obj

    async def user(self, username: Optional[str] = None, balance: Decimal = Decimal("0")) -> User:
        return await self._save(User(username=username or f"user_{uuid4().hex[:8]}", wallet_balance=balance))

    async def match(self, status: str = MatchStatus.COMPLETED.value) -> Match:
        return await self._save(Match(name="IND vs AUS", status=status))

    async def stats(self, match: Match, points_by_player: dict) -> None:
        async with self.session_factory() as session:
            for player_id, points in points_by_player.items():
                session.add(PlayerStatistic(match_id=match.id, player_id=player_id, points=Decimal(str(points))))
            await session.commit()

    async def contest(
        self,
        match: Match,
        total_prize="900",
        winner_count: int = 2,
        first_prize="600",
        entry_fee="500",
        status: str = ContestStatus.COMPLETED.value,
        name: str = "Mega Contest",
    ) -> Contest:
        return await self._save(Contest(
            match_id=match.id,
            name=name,
            entry_fee=Decimal(str(entry_fee)),
            total_spots=max(winner_count * 2, 2),
            total_prize=Decimal(str(total_prize)),
            first_prize=Decimal(str(first_prize)),
            winner_count=winner_count,
            status=status,
        ))

    async def prize_table(self, contest: Contest, rows: Iterable[PrizeRow]) -> None:
        async with self.session_factory() as session:
            await create_prize_breakup(session, contest, list(rows))

    async def team(self, user: User, match_id, players: Iterable = (), captain=None, vice_captain=None) -> FantasyTeam:
        team = FantasyTeam(user_id=user.id, match_id=match_id, name=f"{user.username} XI")
        team.players = [
            FantasyTeamPlayer(
                player_id=player_id,
                is_captain=player_id == captain,
                is_vice_captain=player_id == vice_captain,
            )
            for player_id in players
        ]
        return await self._save(team)

    async def entry(
        self,
        contest: Contest,
        user: User,
        team: Optional[FantasyTeam] = None,
        rank: Optional[int] = None,
        win_amount=None,
        points=None,
    ) -> ContestEntry:
        if team is None:
            team = await self.team(user, contest.match_id)
        return await self._save(ContestEntry(
            contest_id=contest.id,
            user_id=user.id,
            fantasy_team_id=team.id,
            rank=rank,
            points=Decimal(str(points)) if points is not None else None,
            win_amount=Decimal(str(win_amount)) if win_amount is not None else None,
            created_at=self.tick(),
        ))

    async def balance(self, user: User) -> Decimal:
        async with self.session_factory() as session:
            return Decimal(str(await get_wallet_balance(session, user.id)))

    async def reload_entry(self, entry: ContestEntry) -> ContestEntry:
        async with self.session_factory() as session:
            return await get_entry_by_id(session, entry.id)

    async def contest_wins(self, contest: Contest) -> list:
        async with self.session_factory() as session:
            return await get_contest_wins_for_contest(session, contest.id)


@pytest.fixture
def factory(session_factory) -> Factory:
    return Factory(session_factory)


@pytest.fixture
async def test_client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """
    HTTP client against the app with the test database wired in.

    The reconciliation scheduler is replaced by one bound to the test
    database; teardown stops it if a test started it.
    """
    async def get_test_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = get_test_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    original_scheduler = app.state.reconciliation_scheduler
    app.state.reconciliation_scheduler = ReconciliationScheduler(session_factory, concurrency=1)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    await app.state.reconciliation_scheduler.stop()
    app.state.reconciliation_scheduler = original_scheduler
    app.dependency_overrides.clear()


# Markers for different test types
def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )
