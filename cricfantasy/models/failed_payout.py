"""
Dead-letter record for payouts that exhausted their retries
"""

from sqlalchemy import Column, String, Integer, Numeric, DateTime, Text, Index, Uuid
from sqlalchemy.sql import func
from cricfantasy.db.base import Base
from cricfantasy.models.enums import FailedPayoutStatus
import uuid


class FailedPayoutRecord(Base):
    """Payout awaiting replay by the reconciliation sweep"""
    __tablename__ = "failed_payouts"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    key = Column(String(128), nullable=False, unique=True)
    category = Column(String(32), nullable=False, default="error_log")
    entry_id = Column(Uuid, nullable=False)
    user_id = Column(Uuid, nullable=False)
    contest_id = Column(Uuid, nullable=False)
    rank = Column(Integer, nullable=True)
    win_amount = Column(Numeric(30, 8), nullable=False)
    error = Column(Text, nullable=True)
    attempts = Column(Integer, nullable=False, default=0)
    status = Column(String(32), nullable=False, default=FailedPayoutStatus.PENDING.value)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    replayed_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index('idx_failed_payouts_status', 'status'),
    )

    def __repr__(self):
        return f"<FailedPayoutRecord(key={self.key}, entry_id={self.entry_id}, status={self.status})>"

    def to_dict(self):
        return {
            "id": str(self.id),
            "key": self.key,
            "category": self.category,
            "entry_id": str(self.entry_id),
            "user_id": str(self.user_id),
            "contest_id": str(self.contest_id),
            "rank": self.rank,
            "win_amount": str(self.win_amount),
            "error": self.error,
            "attempts": self.attempts,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "replayed_at": self.replayed_at.isoformat() if self.replayed_at else None
        }
