"""
Translation of ledger errors into HTTP errors.
"""

import logging

from fastapi import HTTPException, status

from timeledger.exceptions import (
    ForbiddenError,
    InvalidInputError,
    LedgerError,
    NotFoundError,
)

logger = logging.getLogger(__name__)


def to_http_exception(exc: LedgerError) -> HTTPException:
    """
    Map a ledger error to the matching HTTP status.

    NotFoundError -> 404, ForbiddenError -> 403, InvalidInputError -> 400.
    """
    if isinstance(exc, NotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, ForbiddenError):
        code = status.HTTP_403_FORBIDDEN
    elif isinstance(exc, InvalidInputError):
        code = status.HTTP_400_BAD_REQUEST
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    logger.debug(f"Rejected request ({code}): {exc.message}")
    return HTTPException(status_code=code, detail=exc.message)
