"""
auth.py - Identity at the HTTP boundary.

Participant tokens: "<participant_id>.<hex HMAC-SHA256(SECRET_KEY, participant_id)>".
Researcher endpoints: X-Researcher-Key header equal to RESEARCHER_API_KEY.
"""

import hashlib
import hmac
import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session as DBSession

from viewing_backend.config import settings
from viewing_backend.database import get_db
from viewing_backend.models import Participant
from viewing_backend.services.participant_service import ParticipantService

logger = logging.getLogger(__name__)


def _sign(participant_id: str, secret: str) -> str:
    return hmac.new(secret.encode(), participant_id.encode(), hashlib.sha256).hexdigest()


def issue_token(participant_id: str, secret: str | None = None) -> str:
    return f"{participant_id}.{_sign(participant_id, secret or settings.SECRET_KEY)}"


def verify_token(token: str, secret: str | None = None) -> str | None:
    """Return the participant id a token was issued for, or None."""
    participant_id, sep, signature = (token or "").rpartition(".")
    if not sep or not participant_id or not signature:
        return None
    expected = _sign(participant_id, secret or settings.SECRET_KEY)
    if not hmac.compare_digest(expected, signature):
        return None
    return participant_id


def _unauthorized(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"status": "rejected", "code": "UNAUTHORIZED", "message": message, "details": {}},
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_participant(
    authorization: Optional[str] = Header(None),
    db: DBSession = Depends(get_db),
) -> Participant:
    """Resolve the bearer token to a stored participant, else 401."""
    if not authorization or not authorization.startswith("Bearer "):
        raise _unauthorized("Missing bearer token")

    participant_id = verify_token(authorization[len("Bearer "):].strip())
    if participant_id is None:
        logger.warning("Invalid participant token received")
        raise _unauthorized("Invalid token")

    participant = ParticipantService(db).find(participant_id)
    if participant is None:
        logger.warning("Token for unknown participant: %s", participant_id)
        raise _unauthorized("Invalid token")

    return participant


def require_researcher(x_researcher_key: Optional[str] = Header(None)) -> None:
    if not x_researcher_key or not hmac.compare_digest(x_researcher_key, settings.RESEARCHER_API_KEY):
        logger.warning("Researcher endpoint called without a valid key")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"status": "rejected", "code": "FORBIDDEN", "message": "Researcher key required", "details": {}},
        )
