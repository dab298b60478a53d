"""
export.py - Flat row export for offline analysis.

Rows are plain dicts with JSON-friendly values; formatting them (CSV,
spreadsheets) is left to the consumer.
"""

from typing import Any

from sqlalchemy.orm import Session as DBSession

from viewing_backend.services.errors import ValidationFailure
from viewing_backend.services.ingestion_service import IngestionService
from viewing_backend.services.participant_service import ParticipantService
from viewing_backend.services.session_service import SessionService
from viewing_backend.services.timestamps import isoformat

EXPORT_KINDS = ("events", "sessions", "participants")


def export_rows(db: DBSession, kind: str) -> list[dict[str, Any]]:
    """
    Raises:
        ValidationFailure: Unknown export kind
    """
    if kind == "events":
        return [_event_row(*row) for row in reversed(IngestionService(db).list_events())]
    if kind == "sessions":
        return [_session_row(summary) for summary in SessionService(db).list_all_sessions()]
    if kind == "participants":
        return [_participant_row(p, n) for p, n in ParticipantService(db).list_participants()]

    raise ValidationFailure(
        code="INVALID_EXPORT_TYPE",
        message=f"type must be one of: {', '.join(EXPORT_KINDS)}",
        details={"received": kind},
    )


def _event_row(event, session, participant) -> dict[str, Any]:
    return {
        "event_id": event.id,
        "participant_id": participant.participant_id,
        "condition": session.condition,
        "session_id": session.id,
        "item_id": session.item_id,
        "event_type": event.event_type,
        "duration": event.duration,
        "from_item_id": event.from_item_id,
        "to_item_id": event.to_item_id,
        "playback_position": event.playback_position,
        "timestamp": isoformat(event.timestamp),
    }


def _session_row(summary) -> dict[str, Any]:
    session = summary.session
    return {
        "session_id": session.id,
        "participant_id": session.participant.participant_id,
        "condition": session.condition,
        "item_id": session.item_id,
        "started_at": isoformat(session.started_at),
        "completed_at": isoformat(session.completed_at),
        "event_count": summary.event_count,
    }


def _participant_row(participant, session_count: int) -> dict[str, Any]:
    return {
        "participant_id": participant.participant_id,
        "condition": participant.condition,
        "created_at": isoformat(participant.created_at),
        "session_count": session_count,
    }
