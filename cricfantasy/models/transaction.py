"""
Ledger transaction model
"""

from sqlalchemy import Column, String, Numeric, DateTime, JSON, ForeignKey, UniqueConstraint, Index, Uuid
from sqlalchemy.sql import func
from cricfantasy.db.base import Base
from cricfantasy.models.enums import TransactionStatus
import uuid


class Transaction(Base):
    """Immutable record of a wallet-affecting event.

    (user_id, entry_id, tx_type) is the payout de-duplication key; reference
    is display text only.
    """
    __tablename__ = "transactions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    amount = Column(Numeric(30, 8), nullable=False)
    tx_type = Column(String(64), nullable=False)
    status = Column(String(32), nullable=False, default=TransactionStatus.COMPLETED.value)
    reference = Column(String(255), nullable=True)
    contest_id = Column(Uuid, nullable=True)
    entry_id = Column(Uuid, nullable=True)
    tx_metadata = Column('metadata', JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint('user_id', 'entry_id', 'tx_type', name='uq_tx_user_entry_type'),
        Index('idx_transactions_type_entry', 'tx_type', 'entry_id'),
    )

    def __repr__(self):
        return f"<Transaction(id={self.id}, user_id={self.user_id}, type={self.tx_type}, amount={self.amount})>"

    def to_dict(self):
        return {
            "id": str(self.id),
            "user_id": str(self.user_id),
            "amount": str(self.amount),
            "tx_type": self.tx_type,
            "status": self.status,
            "reference": self.reference,
            "contest_id": str(self.contest_id) if self.contest_id else None,
            "entry_id": str(self.entry_id) if self.entry_id else None,
            "tx_metadata": self.tx_metadata,
            "created_at": self.created_at.isoformat() if self.created_at else None
        }
