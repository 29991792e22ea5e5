"""
Fantasy team models
"""

from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from cricfantasy.db.base import Base
import uuid


class FantasyTeam(Base):
    """A user's selection of players for one match"""
    __tablename__ = "fantasy_teams"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    match_id = Column(Uuid, ForeignKey("matches.id"), nullable=False)
    name = Column(String(128), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    players = relationship("FantasyTeamPlayer", lazy="selectin", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<FantasyTeam(id={self.id}, name={self.name})>"


class FantasyTeamPlayer(Base):
    """Player slot in a fantasy team; exactly one captain and one vice-captain per team"""
    __tablename__ = "fantasy_team_players"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    team_id = Column(Uuid, ForeignKey("fantasy_teams.id"), nullable=False)
    player_id = Column(Uuid, nullable=False)
    is_captain = Column(Boolean, nullable=False, default=False)
    is_vice_captain = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        UniqueConstraint('team_id', 'player_id', name='uq_team_player'),
    )
