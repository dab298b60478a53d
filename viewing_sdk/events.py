"""
viewing_sdk/events.py - Viewing Event Definitions

Events are stamped at creation time, never at flush time, so batching
cannot distort the ordering seen by the analysis.
"""
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

UTC = timezone.utc


class EventType(str, Enum):
    PLAY = "play"
    PAUSE = "pause"
    SWITCH = "switch"
    COMPLETE = "complete"


# Fields that only carry meaning for one event kind
REQUIRED_FIELDS = {
    EventType.SWITCH: ["from_item_id", "to_item_id"],
}


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


@dataclass(frozen=True)
class Item:
    """Catalog entry supplied by the study setup. Never created by the SDK."""
    item_id: str
    title: str = ""


@dataclass(frozen=True)
class TrackingEvent:
    """One timestamped interaction inside a session."""
    session_id: str
    event_type: str
    duration: Optional[float] = None
    from_item_id: Optional[str] = None
    to_item_id: Optional[str] = None
    playback_position: Optional[float] = None
    timestamp: str = field(default_factory=_now_iso)
    # Idempotency key; lets the server ignore a redelivered event
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> Dict[str, Any]:
        """Wire shape accepted by the ingestion endpoint (unset optionals omitted)."""
        data: Dict[str, Any] = {
            "event_id": self.event_id,
            "session_id": self.session_id,
            "event_type": self.event_type,
            "timestamp": self.timestamp,
        }
        for name in ("duration", "from_item_id", "to_item_id", "playback_position"):
            value = getattr(self, name)
            if value is not None:
                data[name] = value
        return data


def validate_event(event: TrackingEvent) -> None:
    """Strictly checks kind-specific fields. Raises ValueError on failure."""
    try:
        event_type = EventType(event.event_type)
    except ValueError:
        # Open enumeration: unknown kinds pass through to the server untouched
        return

    req = REQUIRED_FIELDS.get(event_type)
    if req:
        missing = [f for f in req if getattr(event, f) is None]
        if missing:
            raise ValueError(f"Event {event_type.value} missing required fields: {missing}")

    if event.duration is not None and event.duration < 0:
        raise ValueError("duration must be >= 0")
    if event.playback_position is not None and event.playback_position < 0:
        raise ValueError("playback_position must be >= 0")
