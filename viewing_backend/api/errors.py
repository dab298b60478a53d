"""
errors.py - Mapping domain errors onto HTTP responses.

Every handler rolls back first: a rejected request leaves no trace.
"""

import logging

from fastapi import HTTPException, status
from sqlalchemy.orm import Session as DBSession

from viewing_backend.services.errors import ViewingError

logger = logging.getLogger(__name__)


def rejected(db: DBSession, error: ViewingError) -> HTTPException:
    db.rollback()
    logger.warning("Request rejected: %s - %s", error.code, error.message)
    return HTTPException(status_code=error.status_code, detail=error.to_dict())


def internal_error(db: DBSession, action: str) -> HTTPException:
    """Call from inside an except block; logs the active traceback."""
    db.rollback()
    logger.exception("Internal error during %s", action)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={
            "status": "error",
            "code": "INTERNAL_ERROR",
            "message": f"Internal server error during {action}",
        },
    )
