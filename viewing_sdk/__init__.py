"""Client SDK for the viewing study: policy engine, session lifecycle, telemetry."""

from .buffer import FlushResult, TelemetryQueue
from .client import ViewingClient
from .errors import AlreadyCompleted, BatchRejected, DeliveryFailure, PolicyViolation, SessionBoundaryError
from .events import EventType, Item, TrackingEvent
from .policy import Condition, ConditionRules, PolicyDecision, PolicyEngine, register_condition
from .remote_client import RemoteViewingClient
from .state_store import InMemoryStateStore, JsonFileStateStore, PolicyState, PolicyStateStore

__all__ = [
    "AlreadyCompleted",
    "BatchRejected",
    "Condition",
    "ConditionRules",
    "DeliveryFailure",
    "EventType",
    "FlushResult",
    "InMemoryStateStore",
    "Item",
    "JsonFileStateStore",
    "PolicyDecision",
    "PolicyEngine",
    "PolicyState",
    "PolicyStateStore",
    "PolicyViolation",
    "RemoteViewingClient",
    "SessionBoundaryError",
    "TelemetryQueue",
    "TrackingEvent",
    "ViewingClient",
    "register_condition",
]
