"""Translation of governance errors into HTTP errors"""
from fastapi import HTTPException

from chaingov.services.errors import (
    GovernanceError,
    NotAuthorized,
    ProposalNotFound,
    InsufficientWeight,
)

_STATUS_CODES = {
    ProposalNotFound: 404,
    NotAuthorized: 403,
    InsufficientWeight: 403,
}


def to_http_exception(error: GovernanceError) -> HTTPException:
    """Map a governance error to an HTTPException; unlisted errors are conflicts."""
    status_code = _STATUS_CODES.get(type(error), 409)
    return HTTPException(
        status_code=status_code,
        detail={"error": error.code, "message": error.message},
    )
