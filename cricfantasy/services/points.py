"""
Fantasy points for a contest entry
"""

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Mapping
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from cricfantasy.models.contest_entry import ContestEntry
from cricfantasy.repos.match_repo import get_player_points_for_match
from cricfantasy.repos.fantasy_team_repo import get_team_players

logger = logging.getLogger(__name__)

CAPTAIN_MULTIPLIER = Decimal("2.0")
VICE_CAPTAIN_MULTIPLIER = Decimal("1.5")
POINTS_PRECISION = Decimal("0.1")


def player_multiplier(team_player) -> Decimal:
    if team_player.is_captain:
        return CAPTAIN_MULTIPLIER
    if team_player.is_vice_captain:
        return VICE_CAPTAIN_MULTIPLIER
    return Decimal("1")


def compute_entry_points(team_players: Iterable, player_points: Mapping[UUID, Decimal]) -> Decimal:
    """
    Total fantasy points for one team.

    A player without a statistics row scores 0. Rounding happens once, on
    the team total, not per player.
    """
    total = Decimal("0")
    for team_player in team_players:
        points = player_points.get(team_player.player_id)
        if points is None:
            continue
        total += Decimal(str(points)) * player_multiplier(team_player)
    return total.quantize(POINTS_PRECISION, rounding=ROUND_HALF_UP)


async def load_player_points(session: AsyncSession, match_id: UUID) -> dict:
    """Points per player for a match, keyed by player id."""
    return await get_player_points_for_match(session, match_id)


async def score_entry(session: AsyncSession, entry: ContestEntry, match_id: UUID) -> Decimal:
    """Compute one entry's points straight from the statistics table."""
    player_points = await load_player_points(session, match_id)
    team_players = await get_team_players(session, entry.fantasy_team_id)
    return compute_entry_points(team_players, player_points)
