"""
ingestion_service.py - Event ingestion with ownership enforcement.

CRITICAL REQUIREMENTS:
1. Every referenced session must belong to the authenticated participant
2. Atomic batches: the whole batch is stored, or nothing is
3. Client timestamps are kept; server receipt time fills the gap
4. A repeated (session_id, event_id) is an idempotent no-op
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session as DBSession

from viewing_backend.config import settings
from viewing_backend.models import Event, EventType, Participant, Session
from viewing_backend.services.errors import OwnershipViolation, ValidationFailure
from viewing_backend.services.session_service import SessionService
from viewing_backend.services.timestamps import parse_client_timestamp, utcnow

logger = logging.getLogger(__name__)

# Fields each event kind cannot do without
REQUIRED_FIELDS = {
    EventType.SWITCH.value: ("from_item_id", "to_item_id"),
}

NON_NEGATIVE_FIELDS = ("duration", "playback_position")

MAX_EVENT_ID_LENGTH = 36


@dataclass
class IngestionResult:
    """Result of a successful batch ingestion."""

    accepted_count: int
    duplicate_count: int
    event_ids: list[str]


@dataclass
class EventFilters:
    participant_id: str | None = None
    event_type: str | None = None
    start: datetime | None = None
    end: datetime | None = None
    limit: int | None = None


class IngestionService:
    """
    Server-side half of the telemetry pipeline.

    The service never commits; the caller owns the transaction and
    rolls back on any raised ViewingError.
    """

    def __init__(self, db: DBSession):
        self.db = db

    def ingest_batch(self, participant: Participant, events: list[dict[str, Any]]) -> IngestionResult:
        """
        Validate and persist a batch of events for `participant`.

        Raises:
            ValidationFailure: Empty/oversized batch or any malformed event
            OwnershipViolation: Any referenced session is unknown or foreign
        """
        self._validate_batch_size(events)

        normalized = [self._normalize(index, raw) for index, raw in enumerate(events)]

        self._verify_ownership(participant, {event["session_id"] for event in normalized})

        existing = self._existing_event_ids(
            [event["event_id"] for event in normalized if event["event_id"] is not None]
        )

        received_at = utcnow()
        accepted: list[str] = []
        duplicates = 0
        seen: dict[str, str] = {}

        for event in normalized:
            event_id = event["event_id"]
            if event_id is not None:
                owner_session = existing.get(event_id) or seen.get(event_id)
                if owner_session is not None and owner_session != event["session_id"]:
                    raise ValidationFailure(
                        code="EVENT_ID_CONFLICT",
                        message="event_id already used by another session",
                        details={"event_id": event_id},
                    )
                if owner_session is not None:
                    duplicates += 1
                    continue
                seen[event_id] = event["session_id"]
            else:
                event_id = str(uuid.uuid4())

            self.db.add(Event(
                id=event_id,
                session_id=event["session_id"],
                event_type=event["event_type"],
                duration=event["duration"],
                from_item_id=event["from_item_id"],
                to_item_id=event["to_item_id"],
                playback_position=event["playback_position"],
                timestamp=event["timestamp"] or received_at,
                received_at=received_at,
            ))
            accepted.append(event_id)

        self.db.flush()

        if duplicates:
            logger.info(
                "Batch from %s: %d accepted, %d duplicates skipped",
                participant.participant_id, len(accepted), duplicates,
            )
        else:
            logger.debug("Batch from %s: %d accepted", participant.participant_id, len(accepted))

        return IngestionResult(accepted_count=len(accepted), duplicate_count=duplicates, event_ids=accepted)

    def ingest_event(self, participant: Participant, event: dict[str, Any]) -> IngestionResult:
        return self.ingest_batch(participant, [event])

    def list_session_events(self, participant: Participant, session_id: str) -> list[Event]:
        """
        Events of one of the participant's own sessions, oldest first.

        Raises:
            SessionNotFound: Unknown id, or owned by another participant
        """
        SessionService(self.db).get_owned_session(participant, session_id)
        stmt = (
            select(Event)
            .where(Event.session_id == session_id)
            .order_by(Event.timestamp.asc(), Event.received_at.asc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def list_events(self, filters: EventFilters | None = None) -> list[tuple[Event, Session, Participant]]:
        """Researcher-facing listing, newest first."""
        filters = filters or EventFilters()
        stmt = (
            select(Event, Session, Participant)
            .join(Session, Event.session_id == Session.id)
            .join(Participant, Session.participant_id == Participant.id)
            .order_by(Event.timestamp.desc())
        )
        if filters.participant_id:
            stmt = stmt.where(Participant.participant_id == filters.participant_id)
        if filters.event_type:
            stmt = stmt.where(Event.event_type == filters.event_type)
        if filters.start is not None:
            stmt = stmt.where(Event.timestamp >= filters.start)
        if filters.end is not None:
            stmt = stmt.where(Event.timestamp <= filters.end)
        if filters.limit:
            stmt = stmt.limit(filters.limit)
        return [tuple(row) for row in self.db.execute(stmt).all()]

    # =========================================================
    # PRIVATE METHODS
    # =========================================================

    def _validate_batch_size(self, events: list[dict[str, Any]]) -> None:
        if not events:
            raise ValidationFailure(code="EMPTY_BATCH", message="Batch contains no events")

        if len(events) > settings.MAX_BATCH_SIZE:
            raise ValidationFailure(
                code="BATCH_TOO_LARGE",
                message=f"Batch exceeds {settings.MAX_BATCH_SIZE} events",
                details={"received": len(events), "max": settings.MAX_BATCH_SIZE},
            )

    def _normalize(self, index: int, raw: dict[str, Any]) -> dict[str, Any]:
        """Validate one wire event and return it with a parsed timestamp."""

        def reject(code: str, message: str, **details: Any) -> ValidationFailure:
            return ValidationFailure(code=code, message=message, details={"index": index, **details})

        session_id = raw.get("session_id")
        if not session_id:
            raise reject("MISSING_REQUIRED_FIELD", "session_id is required")

        event_type = raw.get("event_type")
        if not event_type:
            raise reject("MISSING_REQUIRED_FIELD", "event_type is required")
        if event_type not in settings.EVENT_TYPES:
            raise reject("INVALID_EVENT_TYPE", f"Unknown event type: {event_type}", event_type=event_type)

        for field in REQUIRED_FIELDS.get(event_type, ()):
            if not raw.get(field):
                raise reject("MISSING_REQUIRED_FIELD", f"{event_type} event requires {field}", field=field)

        for field in NON_NEGATIVE_FIELDS:
            value = raw.get(field)
            if value is not None and value < 0:
                raise reject("INVALID_VALUE", f"{field} must be non-negative", field=field, value=value)

        timestamp = None
        if raw.get("timestamp"):
            try:
                timestamp = parse_client_timestamp(raw["timestamp"])
            except ValueError:
                raise reject("INVALID_TIMESTAMP", "timestamp must be ISO-8601", timestamp=raw["timestamp"])

        event_id = raw.get("event_id") or None
        if event_id is not None and len(event_id) > MAX_EVENT_ID_LENGTH:
            raise reject("INVALID_VALUE", "event_id is too long", field="event_id")

        return {
            "session_id": session_id,
            "event_type": event_type,
            "duration": raw.get("duration"),
            "from_item_id": raw.get("from_item_id"),
            "to_item_id": raw.get("to_item_id"),
            "playback_position": raw.get("playback_position"),
            "timestamp": timestamp,
            "event_id": event_id,
        }

    def _verify_ownership(self, participant: Participant, session_ids: set[str]) -> None:
        stmt = select(Session.id).where(
            Session.id.in_(session_ids),
            Session.participant_id == participant.id,
        )
        owned = set(self.db.execute(stmt).scalars().all())
        missing = sorted(session_ids - owned)

        if missing:
            logger.warning(
                "Ownership violation: participant=%s batch referenced sessions=%s",
                participant.participant_id, missing,
            )
            raise OwnershipViolation(missing)

    def _existing_event_ids(self, event_ids: list[str]) -> dict[str, str]:
        """Map already-stored event ids to their session ids."""
        if not event_ids:
            return {}
        stmt = select(Event.id, Event.session_id).where(Event.id.in_(event_ids))
        return {row[0]: row[1] for row in self.db.execute(stmt).all()}
