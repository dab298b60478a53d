"""
event.py - Append-only viewing event storage.

Events are immutable once written: no updates, no deletes.
"""

from sqlalchemy import DDL, Column, DateTime, Float, ForeignKey, Index, String, event
from sqlalchemy.orm import relationship

from viewing_backend.database import Base


class Event(Base):
    __tablename__ = "events"

    # Client-supplied idempotency key when present, server UUID otherwise
    id = Column(String(36), primary_key=True)
    session_id = Column(String(36), ForeignKey("sessions.id"), nullable=False, index=True)
    event_type = Column(String(50), nullable=False, index=True)

    # pause only
    duration = Column(Float, nullable=True)
    # switch only
    from_item_id = Column(String(100), nullable=True)
    to_item_id = Column(String(100), nullable=True)

    playback_position = Column(Float, nullable=True)
    timestamp = Column(DateTime, nullable=False, index=True)
    received_at = Column(DateTime, nullable=False)

    # Relationship back to session
    session = relationship("Session", back_populates="events")

    __table_args__ = (
        Index("idx_event_session_timestamp", "session_id", "timestamp"),
        Index("idx_event_type_timestamp", "event_type", "timestamp"),
    )


class EventMutationError(Exception):
    """Raised on any attempt to update or delete a stored event."""


def _reject_event_mutation(mapper, connection, target: Event) -> None:
    raise EventMutationError(f"Events are append-only; refusing to modify event {target.id}")


event.listen(Event, "before_update", _reject_event_mutation)
event.listen(Event, "before_delete", _reject_event_mutation)


# Same guarantee at the storage layer on PostgreSQL
prevent_mutation_trigger = DDL("""
    CREATE OR REPLACE FUNCTION reject_event_mutation()
    RETURNS TRIGGER AS $$
    BEGIN
        RAISE EXCEPTION 'Events are append-only. Operation % is forbidden on events.', TG_OP;
    END;
    $$ LANGUAGE plpgsql;

    CREATE TRIGGER prevent_event_mutation
    BEFORE UPDATE OR DELETE ON events
    FOR EACH ROW EXECUTE FUNCTION reject_event_mutation();
""")

event.listen(
    Event.__table__,
    "after_create",
    prevent_mutation_trigger.execute_if(dialect="postgresql"),
)
