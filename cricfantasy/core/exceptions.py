"""Custom exceptions for the contest payout pipeline."""


class CricFantasyError(Exception):
    """Base exception for application errors."""
    pass


class ValidationError(CricFantasyError):
    """Raised for rejected input. Never retried."""
    pass


class PrizeTableError(ValidationError):
    """Raised when prize table parameters are invalid or cannot be funded."""
    pass


class ContestNotFoundError(CricFantasyError):
    """Raised when a contest does not exist."""
    pass


class MatchNotCompletedError(CricFantasyError):
    """Raised when finalization is attempted before the match is completed."""
    pass


class PrizeTableLockedError(CricFantasyError):
    """Raised when a prize table is regenerated after entries have joined."""
    pass


class PayoutError(CricFantasyError):
    """Transient payout failure; the payout processor retries these."""
    pass


class PayoutVerificationError(PayoutError):
    """The credited transaction could not be read back."""
    pass
