from pydantic import BaseModel, Field

from viewing_backend.schemas.base import ORMModel, UTCDateTime


class SessionCreate(BaseModel):
    item_id: str = Field(..., description="Catalog item being played")


class SessionRead(ORMModel):
    session_id: str = Field(..., validation_alias="id")
    item_id: str
    condition: str
    started_at: UTCDateTime
    completed_at: UTCDateTime | None = None


class SessionListItem(SessionRead):
    participant_id: str | None = None
    event_count: int = 0
