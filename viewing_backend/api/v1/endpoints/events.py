"""
events.py - Telemetry ingestion and event queries.

ENDPOINT: POST /api/v1/events/batch
PURPOSE: Receive flushed telemetry batches from the client queue.

RESPONSE CODES:
- 201 Created: Whole batch stored (repeated event_ids skipped)
- 400 Bad Request: Any malformed event; nothing stored
- 404 Not Found: Any session unknown or foreign; nothing stored
"""

from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session as DBSession

from viewing_backend.api.errors import internal_error, rejected
from viewing_backend.auth import get_current_participant, require_researcher
from viewing_backend.database import get_db
from viewing_backend.models import Participant
from viewing_backend.schemas import (
    BatchResult,
    EventBatchIn,
    EventIn,
    EventListItem,
    EventRead,
    RejectionResponse,
)
from viewing_backend.services import EventFilters, IngestionService, ValidationFailure, ViewingError
from viewing_backend.services.timestamps import parse_client_timestamp

router = APIRouter()

REJECTIONS = {
    400: {"model": RejectionResponse, "description": "Malformed batch"},
    404: {"model": RejectionResponse, "description": "Unknown or foreign session"},
}


def _ingest(db: DBSession, participant: Participant, events: list[EventIn]) -> BatchResult:
    try:
        result = IngestionService(db).ingest_batch(
            participant, [event.model_dump() for event in events]
        )
        db.commit()
    except ViewingError as e:
        raise rejected(db, e)
    except Exception:
        raise internal_error(db, "ingestion")

    return BatchResult(
        accepted_count=result.accepted_count,
        duplicate_count=result.duplicate_count,
        event_ids=result.event_ids,
    )


@router.post("", response_model=BatchResult, status_code=status.HTTP_201_CREATED, responses=REJECTIONS)
def ingest_event(
    event: EventIn,
    participant: Participant = Depends(get_current_participant),
    db: DBSession = Depends(get_db),
):
    return _ingest(db, participant, [event])


@router.post("/batch", response_model=BatchResult, status_code=status.HTTP_201_CREATED, responses=REJECTIONS)
def ingest_batch(
    batch: EventBatchIn,
    participant: Participant = Depends(get_current_participant),
    db: DBSession = Depends(get_db),
):
    """
    Ingest a batch of events, all or nothing.

    Every referenced session must belong to the caller. One foreign or
    unknown session rejects the whole batch.
    """
    return _ingest(db, participant, batch.events)


@router.get("/session/{session_id}", response_model=list[EventRead], responses={404: {"model": RejectionResponse}})
def session_events(
    session_id: str,
    participant: Participant = Depends(get_current_participant),
    db: DBSession = Depends(get_db),
):
    try:
        events = IngestionService(db).list_session_events(participant, session_id)
    except ViewingError as e:
        raise rejected(db, e)
    return [EventRead.model_validate(event) for event in events]


def _parse_bound(db: DBSession, name: str, value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return parse_client_timestamp(value)
    except ValueError:
        raise rejected(db, ValidationFailure(
            code="INVALID_TIMESTAMP",
            message=f"{name} must be ISO-8601",
            details={name: value},
        ))


@router.get("", response_model=list[EventListItem], dependencies=[Depends(require_researcher)])
def list_events(
    participant_id: str | None = None,
    event_type: str | None = None,
    start: str | None = Query(None, description="ISO-8601 lower bound"),
    end: str | None = Query(None, description="ISO-8601 upper bound"),
    limit: int | None = Query(None, ge=1, le=10000),
    db: DBSession = Depends(get_db),
):
    filters = EventFilters(
        participant_id=participant_id,
        event_type=event_type,
        start=_parse_bound(db, "start", start),
        end=_parse_bound(db, "end", end),
        limit=limit,
    )
    return [
        EventListItem(
            event_id=event.id,
            session_id=event.session_id,
            event_type=event.event_type,
            duration=event.duration,
            from_item_id=event.from_item_id,
            to_item_id=event.to_item_id,
            playback_position=event.playback_position,
            timestamp=event.timestamp,
            received_at=event.received_at,
            participant_id=participant.participant_id,
            condition=session.condition,
            item_id=session.item_id,
        )
        for event, session, participant in IngestionService(db).list_events(filters)
    ]
