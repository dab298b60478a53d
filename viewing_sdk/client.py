"""
viewing_sdk/client.py - Main SDK Entry Point

Wires the policy engine, the session lifecycle and the telemetry queue.
This base client runs with local authority: session ids are generated
locally and delivered batches land in `self.delivered`. RemoteViewingClient
swaps in the HTTP boundary.

Nothing here blocks playback. If the session boundary is unreachable the
item still plays, unattributed.
"""

import json
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from .buffer import DEFAULT_FLUSH_INTERVAL, DEFAULT_MAX_BATCH, DEFAULT_MAX_SIZE, FlushResult, TelemetryQueue
from .errors import AlreadyCompleted, SessionBoundaryError
from .events import EventType, Item, TrackingEvent, validate_event
from .policy import PolicyDecision, PolicyEngine
from .state_store import PolicyStateStore

logger = logging.getLogger(__name__)

UTC = timezone.utc


class ViewingClient:
    def __init__(
        self,
        participant_id: str,
        condition: str,
        state_store: Optional[PolicyStateStore] = None,
        flush_interval: float = DEFAULT_FLUSH_INTERVAL,
        max_queue_size: int = DEFAULT_MAX_SIZE,
        register_atexit: bool = True,
        max_batch_size: int = DEFAULT_MAX_BATCH,
    ):
        self.participant_id = participant_id
        self.policy = PolicyEngine(participant_id, condition, store=state_store)
        self.queue = TelemetryQueue(
            self._deliver,
            flush_interval=flush_interval,
            max_size=max_queue_size,
            register_atexit=register_atexit,
            max_batch=max_batch_size,
        )

        # Session attached to the active item; None while playing unattributed
        self.session_id: Optional[str] = None
        self.position: float = 0.0
        self.unattributed_count: int = 0
        self._paused_at: Optional[float] = None
        self._paused_wall: Optional[str] = None

        # Local authority sink
        self.delivered: List[Dict[str, Any]] = []

    @property
    def condition(self) -> str:
        return self.policy.condition

    @property
    def active_item(self) -> Optional[str]:
        return self.policy.active_item

    # --- Session boundary (overridden in remote mode) ---

    def _open_session(self, item_id: str) -> str:
        return str(uuid.uuid4())

    def _complete_session(self, session_id: str) -> None:
        return None

    def _deliver(self, batch: List[TrackingEvent]) -> None:
        self.delivered.extend(e.to_dict() for e in batch)

    # --- Lifecycle ---

    def start(self) -> None:
        """Start the periodic telemetry flush."""
        self.queue.start()

    def close(self) -> FlushResult:
        """Stop the timer and make the teardown flush."""
        return self.queue.shutdown()

    def selectable(self, items: Iterable[Item]) -> Dict[str, bool]:
        """Which catalog items may be chosen right now."""
        return {item.item_id: self.policy.can_select(item.item_id).permitted for item in items}

    def select_item(self, item_id: str) -> PolicyDecision:
        """
        Activate an item. Opens a new session only on a permitted decision.

        Re-selecting the item that is already active keeps its session.
        """
        already_active = self.policy.active_item == item_id
        decision = self.policy.select_item(item_id)
        if not decision.permitted:
            return decision

        if already_active and self.session_id is not None:
            return decision

        self._attach_session(item_id)
        return decision

    def _attach_session(self, item_id: str) -> None:
        self.position = 0.0
        self._paused_at = None
        self._paused_wall = None
        try:
            self.session_id = self._open_session(item_id)
        except SessionBoundaryError as e:
            # Degrade to local-only playback; nothing is attributed this play-through
            logger.warning(
                "Could not open session for item %s (%s); playing unattributed", item_id, e
            )
            self.session_id = None

    def switch_to(self, item_id: str) -> PolicyDecision:
        """
        Move from the active item to another one.

        Emits one `switch` event on the current session before the new
        session is opened. The active item stays incomplete.
        """
        from_item = self.policy.active_item
        decision = self.policy.can_select(item_id)
        if not decision.permitted or from_item is None or from_item == item_id:
            return self.select_item(item_id) if decision.permitted else decision

        self._track(
            EventType.SWITCH,
            from_item_id=from_item,
            to_item_id=item_id,
            playback_position=self.position,
        )
        return self.select_item(item_id)

    def on_ended(self) -> bool:
        """
        Natural end of the active item. The only path to completion.

        Records `complete`, closes the session and locks the item.
        Returns False when no item is active.
        """
        item_id = self.policy.active_item
        if item_id is None:
            return False

        self._track(EventType.COMPLETE, playback_position=self.position)

        if self.session_id is not None:
            try:
                self._complete_session(self.session_id)
            except AlreadyCompleted:
                logger.info("Session %s was already completed", self.session_id)
            except SessionBoundaryError as e:
                logger.warning("Could not close session %s: %s", self.session_id, e)

        self.policy.on_completed(item_id)
        self.session_id = None
        self._paused_at = None
        return True

    # --- Playback signals ---

    def play(self, position: Optional[float] = None) -> None:
        """
        Playback (re)started. A pending pause is recorded first, stamped with
        the moment it began and carrying its measured duration.
        """
        if position is not None:
            self.position = position

        if self._paused_at is not None:
            duration = round(time.monotonic() - self._paused_at, 3)
            self._track(
                EventType.PAUSE,
                duration=duration,
                playback_position=self.position,
                timestamp=self._paused_wall,
            )
            self._paused_at = None
            self._paused_wall = None

        self._track(EventType.PLAY, playback_position=self.position)

    def pause(self, position: Optional[float] = None) -> None:
        if position is not None:
            self.position = position
        if self._paused_at is None:
            self._paused_at = time.monotonic()
            self._paused_wall = datetime.now(UTC).isoformat()

    def progress(self, position: float) -> float:
        """Natural time update from the player. Returns the item's high-water mark."""
        item_id = self.policy.active_item
        if item_id is None:
            return 0.0
        self.position = position
        return self.policy.record_progress(item_id, position)

    def seek(self, target_position: float) -> PolicyDecision:
        """
        User scrub. On rejection the client position snaps back to
        `decision.clamp_to`; the player must do the same.
        """
        decision = self.policy.record_seek(target_position)
        self.position = target_position if decision.permitted else decision.clamp_to
        return decision

    # --- Telemetry ---

    def track(self, event_type: str, **fields) -> Optional[TrackingEvent]:
        """Record an arbitrary event kind on the current session."""
        return self._track(event_type, **fields)

    def _track(self, event_type, **fields) -> Optional[TrackingEvent]:
        if self.session_id is None:
            self.unattributed_count += 1
            logger.debug("Dropping unattributed %s event (no session)", event_type)
            return None

        timestamp = fields.pop("timestamp", None)
        kind = event_type.value if isinstance(event_type, EventType) else event_type
        if timestamp is not None:
            event = TrackingEvent(session_id=self.session_id, event_type=kind, timestamp=timestamp, **fields)
        else:
            event = TrackingEvent(session_id=self.session_id, event_type=kind, **fields)

        validate_event(event)
        self.queue.enqueue(event)
        return event

    def flush(self) -> FlushResult:
        return self.queue.flush()

    def flush_to_jsonl(self, filename: str) -> int:
        """Helper for local testing: flush, then write everything delivered so far."""
        self.queue.flush()
        with open(filename, "w") as f:
            for e in self.delivered:
                f.write(json.dumps(e) + "\n")
        return len(self.delivered)
