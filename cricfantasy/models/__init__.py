# Models Package
from .user import User
from .match import Match, PlayerStatistic
from .fantasy_team import FantasyTeam, FantasyTeamPlayer
from .contest import Contest
from .contest_entry import ContestEntry
from .prize_breakup import PrizeBreakup
from .transaction import Transaction
from .failed_payout import FailedPayoutRecord
from .audit_log import AuditLog

__all__ = [
    "User",
    "Match",
    "PlayerStatistic",
    "FantasyTeam",
    "FantasyTeamPlayer",
    "Contest",
    "ContestEntry",
    "PrizeBreakup",
    "Transaction",
    "FailedPayoutRecord",
    "AuditLog"
]
