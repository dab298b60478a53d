from .analytics import ParticipantStats, StudyStats
from .base import RejectionResponse
from .event import BatchResult, EventBatchIn, EventIn, EventListItem, EventRead
from .participant import (
    LoginRequest,
    LoginResponse,
    ParticipantCreate,
    ParticipantListItem,
    ParticipantRead,
)
from .session import SessionCreate, SessionListItem, SessionRead

__all__ = [
    "BatchResult",
    "EventBatchIn",
    "EventIn",
    "EventListItem",
    "EventRead",
    "LoginRequest",
    "LoginResponse",
    "ParticipantCreate",
    "ParticipantListItem",
    "ParticipantRead",
    "ParticipantStats",
    "RejectionResponse",
    "SessionCreate",
    "SessionListItem",
    "SessionRead",
    "StudyStats",
]
