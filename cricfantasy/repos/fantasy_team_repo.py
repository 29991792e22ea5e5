"""
Fantasy team repository
"""

from collections import defaultdict
from typing import Dict, Iterable, List
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from cricfantasy.models.fantasy_team import FantasyTeamPlayer


async def get_team_players(session: AsyncSession, team_id: UUID) -> List[FantasyTeamPlayer]:
    """Get the player slots of one fantasy team."""
    result = await session.execute(
        select(FantasyTeamPlayer).where(FantasyTeamPlayer.team_id == team_id)
    )
    return result.scalars().all()


async def get_players_for_teams(
    session: AsyncSession,
    team_ids: Iterable[UUID]
) -> Dict[UUID, List[FantasyTeamPlayer]]:
    """
    Get player slots for many teams in one query.

    Args:
        session: Database session
        team_ids: Fantasy team UUIDs

    Returns:
        Dict mapping team_id to its player slots
    """
    team_ids = list(team_ids)
    players = defaultdict(list)
    if not team_ids:
        return players

    result = await session.execute(
        select(FantasyTeamPlayer).where(FantasyTeamPlayer.team_id.in_(team_ids))
    )
    for team_player in result.scalars().all():
        players[team_player.team_id].append(team_player)
    return players
