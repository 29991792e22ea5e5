"""
Match and per-player statistics models
"""

from sqlalchemy import Column, String, DateTime, Integer, Numeric, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.sql import func
from cricfantasy.db.base import Base
from cricfantasy.models.enums import MatchStatus
import uuid


class Match(Base):
    """Match model - fed by the external statistics import"""
    __tablename__ = "matches"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    external_id = Column(String(128), nullable=True)
    name = Column(String(255), nullable=False)
    status = Column(String(32), nullable=False, default=MatchStatus.SCHEDULED.value)
    start_time = Column(DateTime(timezone=True), nullable=True)
    end_time = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<Match(id={self.id}, name={self.name}, status={self.status})>"


class PlayerStatistic(Base):
    """One player's statistics for one match"""
    __tablename__ = "player_statistics"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    match_id = Column(Uuid, ForeignKey("matches.id"), nullable=False)
    player_id = Column(Uuid, nullable=False)
    runs = Column(Integer, nullable=False, default=0)
    wickets = Column(Integer, nullable=False, default=0)
    catches = Column(Integer, nullable=False, default=0)
    points = Column(Numeric(10, 2), nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint('match_id', 'player_id', name='uq_match_player_stat'),
    )

    def __repr__(self):
        return f"<PlayerStatistic(match_id={self.match_id}, player_id={self.player_id}, points={self.points})>"
