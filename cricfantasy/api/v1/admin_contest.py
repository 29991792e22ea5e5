"""
Admin contest finalization and prize table API endpoints
"""

import logging
from decimal import Decimal
from typing import List, Optional, Union
from uuid import UUID

from fastapi import APIRouter, HTTPException, status, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cricfantasy.api.errors import to_http_exception
from cricfantasy.core.exceptions import CricFantasyError
from cricfantasy.db.session import get_db, get_session_factory
from cricfantasy.models.enums import PrizeStructure
from cricfantasy.repos.contest_repo import get_contest_by_id
from cricfantasy.repos.prize_breakup_repo import create_prize_breakup, get_prize_breakup
from cricfantasy.services.finalization import finalize_contest, finalize_match_contests
from cricfantasy.services.prize_table import generate_prize_table, prize_table_total

logger = logging.getLogger(__name__)

router = APIRouter()


class PrizeRowResponse(BaseModel):
    """One prize table row"""
    rank: Union[int, str]
    amount: str
    percentage: int


class PrizeTableResponse(BaseModel):
    """Prize table response model"""
    contest_id: Optional[str] = None
    total: str
    rows: List[PrizeRowResponse]


class PrizeTableRequest(BaseModel):
    """Prize table generation parameters"""
    total_prize: Decimal = Field(gt=0)
    winner_count: int = Field(gt=0)
    first_prize: Decimal = Field(gt=0)
    entry_fee: Decimal = Field(default=Decimal("0"), ge=0)
    prize_structure: PrizeStructure = PrizeStructure.BALANCED


class StoredPrizeTableRequest(BaseModel):
    """Overrides for a contest's stored prize parameters"""
    prize_structure: Optional[PrizeStructure] = None


class WinnerResponse(BaseModel):
    entry_id: str
    user_id: str
    rank: int
    points: Optional[str] = None
    amount: str
    status: str
    transaction_id: Optional[str] = None
    error: Optional[str] = None


class FinalizationResponse(BaseModel):
    """Finalization response model"""
    success: bool
    contest_id: str
    total_entries: int
    total_prizes_distributed: str
    winners: List[WinnerResponse]
    failed_payouts: int
    already_finalized: bool


def _table_response(rows, contest_id: Optional[UUID] = None) -> PrizeTableResponse:
    return PrizeTableResponse(
        contest_id=str(contest_id) if contest_id else None,
        total=str(prize_table_total(rows)),
        rows=[PrizeRowResponse(**row.to_dict()) for row in rows]
    )


@router.post("/contests/{contest_id}/finalize", response_model=FinalizationResponse)
async def finalize_contest_endpoint(
    contest_id: UUID,
    session_factory: async_sessionmaker = Depends(get_session_factory)
):
    """
    Finalize a contest: score, rank and pay every winner (admin only).

    Safe to call again: a finalized contest keeps its ranks and only retries
    payouts that have not completed.
    """
    try:
        summary = await finalize_contest(session_factory, contest_id, actor="admin_api")
    except CricFantasyError as e:
        logger.warning(f"Finalization of contest {contest_id} rejected: {e}")
        raise to_http_exception(e)
    return FinalizationResponse(**summary)


@router.post("/matches/{match_id}/finalize-contests")
async def finalize_match_contests_endpoint(
    match_id: UUID,
    session_factory: async_sessionmaker = Depends(get_session_factory)
):
    """Finalize every non-cancelled contest of a completed match (admin only)."""
    try:
        return await finalize_match_contests(session_factory, match_id, actor="admin_api")
    except CricFantasyError as e:
        logger.warning(f"Finalization of match {match_id} rejected: {e}")
        raise to_http_exception(e)


@router.post("/prize-breakup/preview", response_model=PrizeTableResponse)
async def preview_prize_breakup(request: PrizeTableRequest):
    """Generate a prize table without storing it."""
    try:
        rows = generate_prize_table(
            total_prize=request.total_prize,
            winner_count=request.winner_count,
            first_prize=request.first_prize,
            entry_fee=request.entry_fee,
            shape=request.prize_structure
        )
    except CricFantasyError as e:
        raise to_http_exception(e)
    return _table_response(rows)


@router.post("/contests/{contest_id}/prize-breakup", response_model=PrizeTableResponse,
             status_code=status.HTTP_201_CREATED)
async def create_contest_prize_breakup(
    contest_id: UUID,
    request: Optional[StoredPrizeTableRequest] = None,
    session: AsyncSession = Depends(get_db)
):
    """
    Generate and store a contest's prize table from its prize settings.

    Returns 409 once entries have joined the contest.
    """
    contest = await get_contest_by_id(session, contest_id)
    if not contest:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Contest not found")

    shape = contest.prize_structure
    if request is not None and request.prize_structure is not None:
        shape = request.prize_structure
        contest.prize_structure = shape.value

    try:
        rows = generate_prize_table(
            total_prize=contest.total_prize,
            winner_count=contest.winner_count,
            first_prize=contest.first_prize,
            entry_fee=contest.entry_fee,
            shape=shape
        )
        await create_prize_breakup(session, contest, rows)
    except CricFantasyError as e:
        await session.rollback()
        raise to_http_exception(e)

    logger.info(f"Stored {len(rows)} prize rows for contest {contest_id}")
    return _table_response(rows, contest_id)


@router.get("/contests/{contest_id}/prize-breakup", response_model=PrizeTableResponse)
async def get_contest_prize_breakup(
    contest_id: UUID,
    session: AsyncSession = Depends(get_db)
):
    """Get a contest's stored prize table."""
    contest = await get_contest_by_id(session, contest_id)
    if not contest:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Contest not found")
    rows = await get_prize_breakup(session, contest_id)
    return _table_response(rows, contest_id)
