from pydantic import BaseModel


class OverviewStats(BaseModel):
    participant_count: int
    session_count: int
    event_count: int
    conditions: dict[str, int]


class EventStats(BaseModel):
    by_type: dict[str, int]
    total_switches: int
    total: int | None = None


class PauseStats(BaseModel):
    count: int
    total_duration: float
    average_duration: float


class CompletionStats(BaseModel):
    total: int
    completed: int
    completion_rate: float


class StudyStats(BaseModel):
    overview: OverviewStats
    events: EventStats
    pauses: PauseStats
    sessions: CompletionStats


class ParticipantIdentity(BaseModel):
    participant_id: str
    condition: str
    created_at: str | None


class ParticipantStats(BaseModel):
    participant: ParticipantIdentity
    events: EventStats
    pauses: PauseStats
    sessions: CompletionStats
