"""
Contest model
"""

from sqlalchemy import Column, String, Numeric, DateTime, Integer, ForeignKey, Uuid
from sqlalchemy.sql import func
from cricfantasy.db.base import Base
from cricfantasy.models.enums import ContestStatus, PrizeStructure
import uuid


class Contest(Base):
    """Contest model - one prize pool tied to one match"""
    __tablename__ = "contests"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    match_id = Column(Uuid, ForeignKey("matches.id"), nullable=False)
    name = Column(String(255), nullable=False)
    entry_fee = Column(Numeric(30, 8), nullable=False, default=0)
    total_spots = Column(Integer, nullable=False)
    total_prize = Column(Numeric(30, 8), nullable=False)
    first_prize = Column(Numeric(30, 8), nullable=False)
    winner_count = Column(Integer, nullable=False)
    prize_structure = Column(String(32), nullable=False, default=PrizeStructure.BALANCED.value)
    status = Column(String(32), nullable=False, default=ContestStatus.OPEN.value)
    finalized_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<Contest(id={self.id}, name={self.name}, total_prize={self.total_prize})>"

    def to_dict(self):
        """Convert contest to dictionary for API responses"""
        return {
            "id": str(self.id),
            "match_id": str(self.match_id),
            "name": self.name,
            "entry_fee": str(self.entry_fee),
            "total_spots": self.total_spots,
            "total_prize": str(self.total_prize),
            "first_prize": str(self.first_prize),
            "winner_count": self.winner_count,
            "prize_structure": self.prize_structure,
            "status": self.status,
            "finalized_at": self.finalized_at.isoformat() if self.finalized_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None
        }
