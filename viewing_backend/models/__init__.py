from .enums import Condition, EventType
from .event import Event, EventMutationError
from .participant import Participant
from .session import Session, SessionMutationError

__all__ = [
    "Condition",
    "Event",
    "EventMutationError",
    "EventType",
    "Participant",
    "Session",
    "SessionMutationError",
]
