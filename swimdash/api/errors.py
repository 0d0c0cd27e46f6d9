"""
Mapping from store failures to HTTP errors.

The store reports failures as result objects. Routes turn the failed
ones into HTTPExceptions here so every endpoint answers the same way:
validation problems are 422, a full store is 507 with a hint to export
or delete old sessions, any other storage failure is 500.
"""

import logging
from typing import NoReturn, Optional

from fastapi import HTTPException, status

from ..core.sessions.models import ErrorType

logger = logging.getLogger(__name__)

QUOTA_EXCEEDED_MESSAGE = (
    "Storage is full. Export your sessions and delete old ones, "
    "then try again."
)


def raise_for_failure(
    error_type: Optional[ErrorType],
    error: Optional[str],
    operation: str,
) -> NoReturn:
    """Raise the HTTPException matching a failed store result."""
    if error_type is ErrorType.VALIDATION_ERROR:
        raise HTTPException(
            status_code=422,
            detail=error or "Invalid session data",
        )

    if error_type is ErrorType.QUOTA_EXCEEDED:
        logger.warning("Storage quota exceeded", extra={"operation": operation})
        raise HTTPException(
            status_code=status.HTTP_507_INSUFFICIENT_STORAGE,
            detail=QUOTA_EXCEEDED_MESSAGE,
        )

    logger.error(
        "Storage operation failed",
        extra={"operation": operation, "error": error}
    )
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {operation}. Your data was not changed.",
    )
