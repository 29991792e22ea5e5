"""
Contest entry model
"""

from sqlalchemy import Column, Integer, Numeric, DateTime, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.sql import func
from cricfantasy.db.base import Base
import uuid


class ContestEntry(Base):
    """One user's fantasy team entered into one contest.

    rank, points and win_amount are written only by finalization. win_amount
    is set (> 0) iff a completed contest_win transaction exists for the entry.
    """
    __tablename__ = "contest_entries"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    contest_id = Column(Uuid, ForeignKey("contests.id"), nullable=False)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    fantasy_team_id = Column(Uuid, ForeignKey("fantasy_teams.id"), nullable=False)
    rank = Column(Integer, nullable=True)
    points = Column(Numeric(10, 1), nullable=True)
    win_amount = Column(Numeric(30, 8), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint('contest_id', 'fantasy_team_id', name='uq_contest_team'),
    )

    def __repr__(self):
        return f"<ContestEntry(id={self.id}, contest_id={self.contest_id}, user_id={self.user_id}, rank={self.rank})>"

    def to_dict(self):
        """Convert contest entry to dictionary for API responses"""
        return {
            "id": str(self.id),
            "contest_id": str(self.contest_id),
            "user_id": str(self.user_id),
            "fantasy_team_id": str(self.fantasy_team_id),
            "rank": self.rank,
            "points": str(self.points) if self.points is not None else None,
            "win_amount": str(self.win_amount) if self.win_amount is not None else None,
            "created_at": self.created_at.isoformat() if self.created_at else None
        }
