"""
User model with the wallet balance column
"""

from sqlalchemy import Column, String, Numeric, DateTime, CheckConstraint, Uuid
from sqlalchemy.sql import func
from cricfantasy.db.base import Base
import uuid


class User(Base):
    """User model - wallet balance is mutated only by atomic increments"""
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    username = Column(String(64), nullable=False, unique=True)
    wallet_balance = Column(Numeric(30, 8), nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint('wallet_balance >= 0', name='chk_wallet_nonneg'),
    )

    def __repr__(self):
        return f"<User(id={self.id}, username={self.username}, balance={self.wallet_balance})>"
