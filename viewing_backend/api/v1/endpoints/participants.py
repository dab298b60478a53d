"""
participants.py - Participant registry and login.

RESPONSE CODES:
- 201 Created: Participant registered
- 400 Bad Request: Empty id or unknown condition
- 409 Conflict: Participant id already exists
"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session as DBSession

from viewing_backend.api.errors import internal_error, rejected
from viewing_backend.auth import get_current_participant, issue_token, require_researcher
from viewing_backend.database import get_db
from viewing_backend.models import Participant
from viewing_backend.schemas import (
    LoginRequest,
    LoginResponse,
    ParticipantCreate,
    ParticipantListItem,
    ParticipantRead,
    RejectionResponse,
)
from viewing_backend.services import ParticipantService, ViewingError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "",
    response_model=ParticipantRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_researcher)],
    responses={
        400: {"model": RejectionResponse, "description": "Invalid input"},
        409: {"model": RejectionResponse, "description": "Duplicate participant"},
    },
)
def create_participant(request: ParticipantCreate, db: DBSession = Depends(get_db)):
    try:
        participant = ParticipantService(db).create_participant(request.participant_id, request.condition)
        db.commit()
    except ViewingError as e:
        raise rejected(db, e)
    except Exception:
        raise internal_error(db, "participant creation")

    db.refresh(participant)
    return ParticipantRead.model_validate(participant)


@router.post("/login", response_model=LoginResponse, responses={404: {"model": RejectionResponse}})
def login(request: LoginRequest, db: DBSession = Depends(get_db)):
    """Exchange a participant id for a bearer token."""
    try:
        participant = ParticipantService(db).get(request.participant_id.strip())
    except ViewingError as e:
        raise rejected(db, e)

    logger.info("Participant logged in: %s", participant.participant_id)
    return LoginResponse(
        token=issue_token(participant.participant_id),
        participant=ParticipantRead.model_validate(participant),
    )


@router.get("/me", response_model=ParticipantRead)
def read_me(participant: Participant = Depends(get_current_participant)):
    return ParticipantRead.model_validate(participant)


@router.get("", response_model=list[ParticipantListItem], dependencies=[Depends(require_researcher)])
def list_participants(db: DBSession = Depends(get_db)):
    return [
        ParticipantListItem(
            participant_id=participant.participant_id,
            condition=participant.condition,
            created_at=participant.created_at,
            session_count=session_count,
        )
        for participant, session_count in ParticipantService(db).list_participants()
    ]
