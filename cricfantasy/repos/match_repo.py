"""
Match repository for match status and player statistics
"""

from decimal import Decimal
from typing import Dict, Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from cricfantasy.models.match import Match, PlayerStatistic


async def get_match_by_id(session: AsyncSession, match_id: UUID) -> Optional[Match]:
    """
    Get match by ID.

    Args:
        session: Database session
        match_id: Match UUID

    Returns:
        Match instance or None if not found
    """
    result = await session.execute(
        select(Match).where(Match.id == match_id)
    )
    return result.scalar_one_or_none()


async def get_player_points_for_match(session: AsyncSession, match_id: UUID) -> Dict[UUID, Decimal]:
    """
    Get fantasy points per player for a match.

    Args:
        session: Database session
        match_id: Match UUID

    Returns:
        Dict mapping player_id to points; players without statistics are absent
    """
    result = await session.execute(
        select(PlayerStatistic.player_id, PlayerStatistic.points)
        .where(PlayerStatistic.match_id == match_id)
    )
    return {player_id: Decimal(str(points)) for player_id, points in result.all()}
