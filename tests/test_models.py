"""
test_models.py - Storage-level invariants.

Events are append-only; a session's owner and completion never change.
"""

import pytest

from viewing_backend.config import settings
from viewing_backend.models import Condition, Event, EventMutationError, EventType, SessionMutationError
from viewing_backend.services import IngestionService, SessionService


def test_enums_match_configured_study():
    assert [c.value for c in Condition] == settings.CONDITIONS
    assert [e.value for e in EventType] == settings.EVENT_TYPES


def test_event_update_rejected(db, make_participant, make_session):
    participant = make_participant()
    session = make_session(participant)
    IngestionService(db).ingest_event(participant, {"session_id": session.id, "event_type": "play"})
    db.commit()

    event = db.query(Event).one()
    event.event_type = "pause"
    with pytest.raises(EventMutationError):
        db.flush()


def test_event_delete_rejected(db, make_participant, make_session):
    participant = make_participant()
    session = make_session(participant)
    IngestionService(db).ingest_event(participant, {"session_id": session.id, "event_type": "play"})
    db.commit()

    db.delete(db.query(Event).one())
    with pytest.raises(EventMutationError):
        db.flush()


def test_completion_cannot_be_cleared(db, make_participant, make_session):
    participant = make_participant()
    session = make_session(participant)
    completed = SessionService(db).complete_session(participant, session.id)
    db.commit()

    completed.completed_at = None
    with pytest.raises(SessionMutationError):
        db.flush()


def test_owner_cannot_change(db, make_participant, make_session):
    owner = make_participant("P001")
    other = make_participant("P002")
    session = make_session(owner)

    session.participant_id = other.id
    with pytest.raises(SessionMutationError):
        db.flush()
