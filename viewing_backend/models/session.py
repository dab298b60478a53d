"""
session.py - One bounded viewing attempt of one item by one participant.

INVARIANTS (enforced at flush time, see _guard_session_update):
1. The owning participant never changes
2. completed_at, once set, is never cleared or changed
3. condition is a snapshot taken at open time
"""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, event, inspect, select
from sqlalchemy.orm import relationship

from viewing_backend.database import Base


class Session(Base):
    __tablename__ = "sessions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    participant_id = Column(Integer, ForeignKey("participants.id"), nullable=False, index=True)
    item_id = Column(String(100), nullable=False, index=True)
    condition = Column(String(50), nullable=False)
    started_at = Column(DateTime, nullable=False, index=True)
    completed_at = Column(DateTime, nullable=True)

    # Relationships
    participant = relationship("Participant", back_populates="sessions")
    events = relationship("Event", back_populates="session", order_by="Event.timestamp")

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None


class SessionMutationError(Exception):
    """Raised when a flush would break a session invariant."""


def _guard_session_update(mapper, connection, target: Session) -> None:
    # Compare against the stored row; attribute history is empty for expired attributes
    state = inspect(target)
    session_id = state.identity[0]
    table = Session.__table__
    stored = connection.execute(
        select(table.c.participant_id, table.c.completed_at).where(table.c.id == session_id)
    ).one_or_none()
    if stored is None:
        return

    # Unloaded attributes were not touched
    values = state.dict

    if values.get("participant_id", stored.participant_id) != stored.participant_id:
        raise SessionMutationError(f"Session {session_id} owner is immutable")

    if stored.completed_at is not None and values.get("completed_at", stored.completed_at) != stored.completed_at:
        raise SessionMutationError(f"Session {session_id} completion is immutable")


event.listen(Session, "before_update", _guard_session_update)
