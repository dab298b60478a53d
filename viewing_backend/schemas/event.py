"""
event.py - Wire schemas for viewing events.

Only types are checked here. Kind, required fields and value ranges are
checked by IngestionService so a bad batch gets one structured rejection.
"""

from pydantic import BaseModel, Field

from viewing_backend.schemas.base import ORMModel, UTCDateTime


class EventIn(BaseModel):
    """Single event from a client (untrusted)."""

    session_id: str = Field(..., description="Session the event belongs to")
    event_type: str = Field(..., description="play, pause, switch or complete")
    duration: float | None = Field(None, description="Pause length in seconds")
    from_item_id: str | None = Field(None, description="Switch source item")
    to_item_id: str | None = Field(None, description="Switch destination item")
    playback_position: float | None = Field(None, description="Seconds into the item")
    timestamp: str | None = Field(None, description="ISO-8601 client time; server time if omitted")
    event_id: str | None = Field(None, description="Client idempotency key")


class EventBatchIn(BaseModel):
    events: list[EventIn] = Field(..., description="Events to ingest, stored all or nothing")


class BatchResult(BaseModel):
    status: str = Field("success", description="Always 'success' for 201")
    accepted_count: int = Field(..., description="Events newly stored")
    duplicate_count: int = Field(0, description="Repeated event_ids skipped")
    event_ids: list[str] = Field(default_factory=list)


class EventRead(ORMModel):
    event_id: str = Field(..., validation_alias="id")
    session_id: str
    event_type: str
    duration: float | None = None
    from_item_id: str | None = None
    to_item_id: str | None = None
    playback_position: float | None = None
    timestamp: UTCDateTime
    received_at: UTCDateTime


class EventListItem(EventRead):
    participant_id: str
    condition: str
    item_id: str
