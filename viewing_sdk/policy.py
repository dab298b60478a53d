"""
viewing_sdk/policy.py - Playback Policy Engine

Encodes the per-condition viewing rules as one state machine.

STRUCTURAL PURITY:
- No network, no rendering
- State changes only through select_item / record_progress / on_completed
- Rejections are returned as PolicyDecision values, never raised

HARD INVARIANT: a completed item can never be replayed, under any condition.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from .errors import PolicyViolation
from .state_store import InMemoryStateStore, PolicyState, PolicyStateStore

logger = logging.getLogger(__name__)


class Condition(str, Enum):
    SWITCHING = "switching"
    NON_SWITCHING = "non_switching"


@dataclass(frozen=True)
class ConditionRules:
    """What a condition allows. New conditions register a rules entry."""
    free_switching: bool
    forward_seek: bool


# Open enumeration: register_condition() adds arms without touching the engine
CONDITION_RULES: Dict[str, ConditionRules] = {
    Condition.SWITCHING.value: ConditionRules(free_switching=True, forward_seek=True),
    Condition.NON_SWITCHING.value: ConditionRules(free_switching=False, forward_seek=False),
}


def register_condition(name: str, rules: ConditionRules) -> None:
    CONDITION_RULES[name] = rules


def rules_for(condition: str) -> ConditionRules:
    """
    Look up the rules for a condition.

    Raises:
        ValueError: If the condition has never been registered.
    """
    key = condition.value if isinstance(condition, Condition) else condition
    try:
        return CONDITION_RULES[key]
    except KeyError:
        raise ValueError(
            f"Unknown condition: {key}. Known: {sorted(CONDITION_RULES)}"
        ) from None


# Rejection reasons (machine-readable)
REASON_ITEM_COMPLETED = "ITEM_COMPLETED"
REASON_SWITCH_LOCKED = "SWITCHING_NOT_ALLOWED"
REASON_FORWARD_SEEK = "FORWARD_SEEK_NOT_ALLOWED"


@dataclass(frozen=True)
class PolicyDecision:
    """Outcome of a policy check. A rejected decision changed no state."""
    permitted: bool
    reason: Optional[str] = None
    item_id: Optional[str] = None
    # Position the player must snap to after a rejected seek
    clamp_to: Optional[float] = None

    def __bool__(self) -> bool:
        return self.permitted

    def raise_for_violation(self) -> None:
        if not self.permitted:
            raise PolicyViolation(self.reason or "not permitted", self.item_id)


def _permit(item_id: Optional[str] = None) -> PolicyDecision:
    return PolicyDecision(permitted=True, item_id=item_id)


def _reject(reason: str, item_id: Optional[str] = None, clamp_to: Optional[float] = None) -> PolicyDecision:
    return PolicyDecision(permitted=False, reason=reason, item_id=item_id, clamp_to=clamp_to)


class PolicyEngine:
    """
    Playback policy for one participant under one condition.

    State (persisted after every change):
    - completed: items already finished, permanently locked
    - active_item: at most one item currently being watched
    - high_water_marks: furthest natural position reached per item
    """

    def __init__(self, participant_id: str, condition: str, store: Optional[PolicyStateStore] = None):
        self.participant_id = participant_id
        self.condition = condition.value if isinstance(condition, Condition) else condition
        self.rules = rules_for(self.condition)
        self.store = store or InMemoryStateStore()
        self._state: PolicyState = self.store.load(self.participant_id, self.condition)

    # --- Queries ---

    @property
    def active_item(self) -> Optional[str]:
        return self._state.active_item

    @property
    def completed(self) -> frozenset:
        return frozenset(self._state.completed)

    def high_water_mark(self, item_id: str) -> float:
        return self._state.high_water_marks.get(item_id, 0.0)

    def can_replay(self, item_id: str) -> bool:
        """False forever once the item is completed. Never relaxed by a condition."""
        return item_id not in self._state.completed

    def can_select(self, item_id: str) -> PolicyDecision:
        """Side-effect-free preview of select_item, used to disable UI affordances."""
        if not self.can_replay(item_id):
            return _reject(REASON_ITEM_COMPLETED, item_id)

        active = self._state.active_item
        if not self.rules.free_switching and active is not None and active != item_id:
            return _reject(REASON_SWITCH_LOCKED, item_id)

        return _permit(item_id)

    def snapshot(self) -> PolicyState:
        return self._state.copy()

    # --- Transitions ---

    def select_item(self, item_id: str) -> PolicyDecision:
        """
        Try to make `item_id` the active item.

        Rejected (no state change) when the item is completed, or when the
        condition forbids switching and a different item is active.
        Callers open a new session only on a permitted decision.
        """
        decision = self.can_select(item_id)
        if not decision.permitted:
            logger.debug(
                "select_item rejected: participant=%s condition=%s item=%s reason=%s",
                self.participant_id, self.condition, item_id, decision.reason,
            )
            return decision

        self._state.active_item = item_id
        self._save()
        return decision

    def record_seek(self, target_position: float, high_water_mark: Optional[float] = None) -> PolicyDecision:
        """
        Check a user-initiated seek.

        Without free forward seeking, a target beyond the high-water mark is
        rejected and `clamp_to` carries the position playback must return to.
        Backward seeks are always allowed. When `high_water_mark` is omitted
        the active item's stored mark is used.
        """
        item_id = self._state.active_item
        if high_water_mark is None:
            high_water_mark = self.high_water_mark(item_id) if item_id else 0.0

        if self.rules.forward_seek or target_position <= high_water_mark:
            return _permit(item_id)

        return _reject(REASON_FORWARD_SEEK, item_id, clamp_to=high_water_mark)

    def record_progress(self, item_id: str, position: float) -> float:
        """
        Natural playback progression. The only way a high-water mark advances.

        Returns:
            The item's high-water mark after the update.
        """
        current = self.high_water_mark(item_id)
        if position > current:
            self._state.high_water_marks[item_id] = position
            self._save()
            return position
        return current

    def on_completed(self, item_id: str) -> bool:
        """
        Lock a naturally finished item and clear the active item.

        Idempotent: returns False (and changes nothing) if already completed.
        """
        if item_id in self._state.completed:
            return False

        self._state.completed.append(item_id)
        self._state.active_item = None
        self._save()
        return True

    def _save(self) -> None:
        self.store.save(self.participant_id, self.condition, self._state)
