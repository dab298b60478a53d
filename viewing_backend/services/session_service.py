"""
session_service.py - Server half of the session lifecycle.

STATES: none -> open -> completed

INVARIANTS:
1. A session belongs to exactly one participant, checked on every mutation
2. open -> completed happens at most once, even under concurrent requests
3. The condition is snapshotted when the session opens
"""

import logging
from dataclasses import dataclass

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session as DBSession

from viewing_backend.models import Event, Participant, Session
from viewing_backend.services.errors import (
    AlreadyCompleted,
    OwnershipViolation,
    SessionNotFound,
    ValidationFailure,
)
from viewing_backend.services.timestamps import isoformat, utcnow

logger = logging.getLogger(__name__)


@dataclass
class SessionSummary:
    """Session row plus its event count, for listings."""

    session: Session
    event_count: int


class SessionService:
    def __init__(self, db: DBSession):
        self.db = db

    def open_session(self, participant: Participant, item_id: str) -> Session:
        """
        Open a session on `item_id` for `participant`.

        Raises:
            ValidationFailure: If item_id is missing
        """
        item_id = (item_id or "").strip()
        if not item_id:
            raise ValidationFailure(code="MISSING_REQUIRED_FIELD", message="item_id is required")

        session = Session(
            participant_id=participant.id,
            item_id=item_id,
            condition=participant.condition,
            started_at=utcnow(),
        )
        self.db.add(session)
        self.db.flush()

        logger.info(
            "Session opened: %s participant=%s item=%s condition=%s",
            session.id, participant.participant_id, item_id, session.condition,
        )
        return session

    def complete_session(self, participant: Participant, session_id: str) -> Session:
        """
        Mark a session completed on its item's natural end.

        The row is locked (SELECT FOR UPDATE) and the write is conditional on
        completed_at still being NULL. A concurrent second completion either
        waits on the lock or updates zero rows; both surface as AlreadyCompleted.

        Raises:
            SessionNotFound: Unknown id, or owned by another participant
            AlreadyCompleted: The session was completed before; nothing changed
        """
        session = self._lock_owned_session(participant, session_id)

        if session.completed_at is not None:
            raise AlreadyCompleted(session_id, isoformat(session.completed_at))

        now = utcnow()
        result = self.db.execute(
            update(Session)
            .where(Session.id == session_id)
            .where(Session.participant_id == participant.id)
            .where(Session.completed_at.is_(None))
            .values(completed_at=now)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:
            self.db.refresh(session)
            raise AlreadyCompleted(session_id, isoformat(session.completed_at))

        self.db.refresh(session)
        logger.info("Session completed: %s participant=%s", session_id, participant.participant_id)
        return session

    def get_owned_session(self, participant: Participant, session_id: str) -> Session:
        """
        Raises:
            SessionNotFound: Unknown id, or owned by another participant
        """
        stmt = select(Session).where(Session.id == session_id)
        session = self.db.execute(stmt).scalar_one_or_none()
        return self._check_owner(participant, session, session_id)

    def list_sessions(self, participant: Participant) -> list[SessionSummary]:
        """The participant's own sessions, newest first."""
        return self._summaries(Session.participant_id == participant.id)

    def list_all_sessions(self) -> list[SessionSummary]:
        return self._summaries(None)

    # =========================================================
    # PRIVATE METHODS
    # =========================================================

    def _lock_owned_session(self, participant: Participant, session_id: str) -> Session:
        stmt = select(Session).where(Session.id == session_id).with_for_update()
        session = self.db.execute(stmt).scalar_one_or_none()
        return self._check_owner(participant, session, session_id)

    def _check_owner(self, participant: Participant, session: Session | None, session_id: str) -> Session:
        if session is None:
            raise SessionNotFound(session_id)

        if session.participant_id != participant.id:
            logger.warning(
                "Ownership violation: participant=%s touched session=%s",
                participant.participant_id, session_id,
            )
            raise OwnershipViolation([session_id])

        return session

    def _summaries(self, criterion) -> list[SessionSummary]:
        event_count = (
            select(Event.session_id, func.count(Event.id).label("n"))
            .group_by(Event.session_id)
            .subquery()
        )
        stmt = (
            select(Session, func.coalesce(event_count.c.n, 0))
            .outerjoin(event_count, event_count.c.session_id == Session.id)
            .order_by(Session.started_at.desc())
        )
        if criterion is not None:
            stmt = stmt.where(criterion)
        return [SessionSummary(session=row[0], event_count=int(row[1])) for row in self.db.execute(stmt).all()]
