"""
sessions.py - Session lifecycle endpoints.

STATES: none -> open -> completed

RESPONSE CODES:
- 201 Created: Session opened
- 404 Not Found: Unknown session, or one owned by someone else
- 409 Conflict: Session already completed; original timestamp kept
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session as DBSession

from viewing_backend.api.errors import internal_error, rejected
from viewing_backend.auth import get_current_participant, require_researcher
from viewing_backend.database import get_db
from viewing_backend.models import Participant
from viewing_backend.schemas import RejectionResponse, SessionCreate, SessionListItem, SessionRead
from viewing_backend.services import SessionService, SessionSummary, ViewingError

router = APIRouter()


def _list_item(summary: SessionSummary) -> SessionListItem:
    session = summary.session
    return SessionListItem(
        session_id=session.id,
        item_id=session.item_id,
        condition=session.condition,
        started_at=session.started_at,
        completed_at=session.completed_at,
        participant_id=session.participant.participant_id,
        event_count=summary.event_count,
    )


@router.post(
    "",
    response_model=SessionRead,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": RejectionResponse}},
)
def open_session(
    request: SessionCreate,
    participant: Participant = Depends(get_current_participant),
    db: DBSession = Depends(get_db),
):
    try:
        session = SessionService(db).open_session(participant, request.item_id)
        db.commit()
    except ViewingError as e:
        raise rejected(db, e)
    except Exception:
        raise internal_error(db, "session open")

    db.refresh(session)
    return SessionRead.model_validate(session)


@router.put(
    "/{session_id}/complete",
    response_model=SessionRead,
    responses={
        404: {"model": RejectionResponse, "description": "Session not found"},
        409: {"model": RejectionResponse, "description": "Already completed"},
    },
)
def complete_session(
    session_id: str,
    participant: Participant = Depends(get_current_participant),
    db: DBSession = Depends(get_db),
):
    """Close a session on its item's natural end. Succeeds at most once."""
    try:
        session = SessionService(db).complete_session(participant, session_id)
        db.commit()
    except ViewingError as e:
        raise rejected(db, e)
    except Exception:
        raise internal_error(db, "session completion")

    db.refresh(session)
    return SessionRead.model_validate(session)


@router.get("/mine", response_model=list[SessionListItem])
def my_sessions(
    participant: Participant = Depends(get_current_participant),
    db: DBSession = Depends(get_db),
):
    return [_list_item(summary) for summary in SessionService(db).list_sessions(participant)]


@router.get("", response_model=list[SessionListItem], dependencies=[Depends(require_researcher)])
def all_sessions(db: DBSession = Depends(get_db)):
    return [_list_item(summary) for summary in SessionService(db).list_all_sessions()]
