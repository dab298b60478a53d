"""
test_session_service.py - Session lifecycle on the server.

STATES: none -> open -> completed, at most once, owner-only.
"""

import pytest

from viewing_backend.database import SessionLocal
from viewing_backend.models import Participant, Session
from viewing_backend.services import (
    AlreadyCompleted,
    OwnershipViolation,
    ParticipantService,
    SessionNotFound,
    SessionService,
    ValidationFailure,
)
from viewing_backend.services.timestamps import isoformat


def test_open_session_snapshots_condition(db, make_participant):
    participant = make_participant("P001", "non_switching")

    session = SessionService(db).open_session(participant, "a")
    db.commit()

    assert session.id
    assert session.condition == "non_switching"
    assert session.item_id == "a"
    assert session.started_at is not None
    assert session.completed_at is None


def test_open_session_requires_item(db, make_participant):
    participant = make_participant()
    with pytest.raises(ValidationFailure):
        SessionService(db).open_session(participant, "  ")


def test_complete_once(db, make_participant, make_session):
    participant = make_participant()
    session = make_session(participant)

    completed = SessionService(db).complete_session(participant, session.id)
    db.commit()

    assert completed.completed_at is not None
    assert completed.is_completed


def test_second_completion_rejected_and_timestamp_kept(db, make_participant, make_session):
    participant = make_participant()
    session = make_session(participant)
    service = SessionService(db)

    first = service.complete_session(participant, session.id)
    db.commit()
    original = first.completed_at

    with pytest.raises(AlreadyCompleted) as exc_info:
        service.complete_session(participant, session.id)
    db.rollback()

    assert exc_info.value.status_code == 409
    assert exc_info.value.code == "ALREADY_COMPLETED"
    db.expire_all()
    assert db.get(Session, session.id).completed_at == original


def test_concurrent_completion_observes_first_commit(make_participant, make_session):
    participant = make_participant()
    session = make_session(participant)
    first_db, second_db = SessionLocal(), SessionLocal()
    try:
        first_participant = first_db.get(Participant, participant.id)
        second_participant = second_db.get(Participant, participant.id)
        # Loaded before the first completion lands, so still seen as open here
        assert second_db.get(Session, session.id).completed_at is None

        first = SessionService(first_db).complete_session(first_participant, session.id)
        first_db.commit()
        original = first.completed_at

        with pytest.raises(AlreadyCompleted) as exc_info:
            SessionService(second_db).complete_session(second_participant, session.id)
        second_db.rollback()

        assert exc_info.value.details["completed_at"] == isoformat(original)
        second_db.expire_all()
        assert second_db.get(Session, session.id).completed_at == original
    finally:
        first_db.close()
        second_db.close()


def test_unknown_session_not_found(db, make_participant):
    participant = make_participant()
    with pytest.raises(SessionNotFound) as exc_info:
        SessionService(db).complete_session(participant, "does-not-exist")
    assert exc_info.value.status_code == 404


def test_foreign_session_reported_as_not_found(db, make_participant, make_session, caplog):
    owner = make_participant("P001")
    intruder = make_participant("P002")
    session = make_session(owner)

    with pytest.raises(OwnershipViolation) as exc_info:
        SessionService(db).complete_session(intruder, session.id)
    db.rollback()

    assert exc_info.value.status_code == 404
    assert exc_info.value.code == "SESSION_NOT_FOUND"
    assert "Ownership violation" in caplog.text
    db.expire_all()
    assert db.get(Session, session.id).completed_at is None


def test_list_sessions_scoped_to_participant(db, make_participant, make_session):
    p1 = make_participant("P001")
    p2 = make_participant("P002", "non_switching")
    make_session(p1, "a")
    make_session(p1, "b")
    make_session(p2, "a")

    mine = SessionService(db).list_sessions(p1)
    assert {summary.session.item_id for summary in mine} == {"a", "b"}
    assert all(summary.event_count == 0 for summary in mine)

    assert len(SessionService(db).list_all_sessions()) == 3


def test_participant_condition_cannot_be_duplicated(db, make_participant):
    make_participant("P001")
    from viewing_backend.services import DuplicateParticipant

    with pytest.raises(DuplicateParticipant):
        ParticipantService(db).create_participant("P001", "non_switching")
