"""
Prize breakup model - one row of a contest's prize table
"""

from sqlalchemy import Column, String, Integer, Numeric, ForeignKey, UniqueConstraint, Uuid
from cricfantasy.db.base import Base
import uuid


class PrizeBreakup(Base):
    """Prize table row; rank is "7" for a single rank or "11-50" for an inclusive range"""
    __tablename__ = "prize_breakups"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    contest_id = Column(Uuid, ForeignKey("contests.id"), nullable=False)
    rank = Column(String(32), nullable=False)
    rank_start = Column(Integer, nullable=False)
    rank_end = Column(Integer, nullable=False)
    prize_amount = Column(Numeric(30, 8), nullable=False)
    percentage = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint('contest_id', 'rank', name='uq_contest_prize_rank'),
    )

    def __repr__(self):
        return f"<PrizeBreakup(contest_id={self.contest_id}, rank={self.rank}, amount={self.prize_amount})>"
