"""
Status and type enums stored as plain strings
"""

import enum


class MatchStatus(enum.Enum):
    """Match status enum"""
    SCHEDULED = "scheduled"
    LIVE = "live"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class ContestStatus(enum.Enum):
    """Contest status enum"""
    OPEN = "open"
    LIVE = "live"
    COMPLETED = "completed"
    FINALIZED = "finalized"
    CANCELLED = "cancelled"


class PrizeStructure(enum.Enum):
    """Prize distribution shape"""
    BALANCED = "balanced"
    TOP_HEAVY = "topHeavy"
    DISTRIBUTED = "distributed"
    WINNER_TAKES_ALL = "winnerTakesAll"


class TransactionType(enum.Enum):
    """Ledger transaction type enum"""
    CONTEST_WIN = "contest_win"
    CONTEST_ENTRY = "contest_entry"
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    ADJUSTMENT = "adjustment"


class TransactionStatus(enum.Enum):
    """Ledger transaction status enum"""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class FailedPayoutStatus(enum.Enum):
    """Dead-letter record status enum"""
    PENDING = "pending"
    REPLAYED = "replayed"
