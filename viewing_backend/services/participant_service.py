"""
participant_service.py - Participant registry.

Participants are created once by a researcher and read many times.
The core never edits a participant's condition.
"""

import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session as DBSession

from viewing_backend.config import settings
from viewing_backend.models import Participant, Session
from viewing_backend.services.errors import DuplicateParticipant, ParticipantNotFound, ValidationFailure
from viewing_backend.services.timestamps import utcnow

logger = logging.getLogger(__name__)


class ParticipantService:
    def __init__(self, db: DBSession):
        self.db = db

    def create_participant(self, participant_id: str, condition: str) -> Participant:
        """
        Register a participant under a condition.

        Raises:
            ValidationFailure: Empty id or unknown condition
            DuplicateParticipant: The id is already registered
        """
        participant_id = (participant_id or "").strip()
        if not participant_id:
            raise ValidationFailure(code="MISSING_REQUIRED_FIELD", message="participant_id is required")

        if condition not in settings.CONDITIONS:
            raise ValidationFailure(
                code="INVALID_CONDITION",
                message=f"condition must be one of: {', '.join(settings.CONDITIONS)}",
                details={"received": condition},
            )

        if self.find(participant_id) is not None:
            raise DuplicateParticipant(participant_id)

        participant = Participant(
            participant_id=participant_id,
            condition=condition,
            created_at=utcnow(),
        )
        self.db.add(participant)
        try:
            self.db.flush()
        except IntegrityError:
            # Lost a race with a concurrent create
            self.db.rollback()
            raise DuplicateParticipant(participant_id)

        logger.info("Participant created: %s (%s)", participant_id, condition)
        return participant

    def find(self, participant_id: str) -> Participant | None:
        stmt = select(Participant).where(Participant.participant_id == participant_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def get(self, participant_id: str) -> Participant:
        participant = self.find(participant_id)
        if participant is None:
            raise ParticipantNotFound(participant_id)
        return participant

    def list_participants(self) -> list[tuple[Participant, int]]:
        """All participants, newest first, with their session counts."""
        session_count = (
            select(Session.participant_id, func.count(Session.id).label("n"))
            .group_by(Session.participant_id)
            .subquery()
        )
        stmt = (
            select(Participant, func.coalesce(session_count.c.n, 0))
            .outerjoin(session_count, session_count.c.participant_id == Participant.id)
            .order_by(Participant.created_at.desc(), Participant.id.desc())
        )
        return [(row[0], int(row[1])) for row in self.db.execute(stmt).all()]
