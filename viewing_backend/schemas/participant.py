from pydantic import BaseModel, Field

from viewing_backend.schemas.base import ORMModel, UTCDateTime


class ParticipantCreate(BaseModel):
    participant_id: str = Field(..., description="Externally assigned id, e.g. P001")
    condition: str = Field(..., description="switching or non_switching")


class LoginRequest(BaseModel):
    participant_id: str


class ParticipantRead(ORMModel):
    participant_id: str
    condition: str
    created_at: UTCDateTime


class ParticipantListItem(ParticipantRead):
    session_count: int = 0


class LoginResponse(BaseModel):
    token: str
    participant: ParticipantRead
