"""
Mapping of domain errors to HTTP responses
"""

from fastapi import HTTPException, status

from cricfantasy.core.exceptions import (
    ContestNotFoundError,
    CricFantasyError,
    MatchNotCompletedError,
    PrizeTableLockedError,
    ValidationError,
)

STATUS_BY_ERROR = (
    (ContestNotFoundError, status.HTTP_404_NOT_FOUND),
    (PrizeTableLockedError, status.HTTP_409_CONFLICT),
    (MatchNotCompletedError, status.HTTP_409_CONFLICT),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
)


def to_http_exception(error: CricFantasyError) -> HTTPException:
    for error_type, status_code in STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return HTTPException(status_code=status_code, detail=str(error))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(error))
