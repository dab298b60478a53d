"""
viewing_sdk/state_store.py - Policy State Persistence

Policy state is keyed by (participant, condition). The two conditions never
share a key, so progress made under one condition is invisible under the other.

Must be replaceable without changing policy semantics.
"""
import hashlib
import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

STATE_VERSION = 1


@dataclass
class PolicyState:
    """Mutable policy state for one participant under one condition."""
    completed: List[str] = field(default_factory=list)
    active_item: Optional[str] = None
    high_water_marks: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": STATE_VERSION,
            "completed": list(self.completed),
            "active_item": self.active_item,
            "high_water_marks": dict(self.high_water_marks),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PolicyState":
        """
        Rebuild state from a stored document.

        Raises:
            ValueError: If the document does not have the expected shape.
        """
        if not isinstance(data, dict):
            raise ValueError("policy state must be an object")

        completed = data.get("completed", [])
        if not isinstance(completed, list) or not all(isinstance(c, str) for c in completed):
            raise ValueError("completed must be a list of item ids")

        active = data.get("active_item")
        if active is not None and not isinstance(active, str):
            raise ValueError("active_item must be a string or null")

        marks = data.get("high_water_marks", {})
        if not isinstance(marks, dict):
            raise ValueError("high_water_marks must be an object")

        # Dedupe while keeping first-completion order
        seen = dict.fromkeys(completed)
        return cls(
            completed=list(seen),
            active_item=active,
            high_water_marks={str(k): float(v) for k, v in marks.items()},
        )

    def copy(self) -> "PolicyState":
        return PolicyState.from_dict(self.to_dict())


class PolicyStateStore(ABC):
    """Narrow save/load interface for per-(participant, condition) policy state."""

    @abstractmethod
    def load(self, participant_id: str, condition: str) -> PolicyState:
        """Return stored state, or fresh state when nothing is stored."""
        ...

    @abstractmethod
    def save(self, participant_id: str, condition: str, state: PolicyState) -> None:
        ...


class InMemoryStateStore(PolicyStateStore):
    """Process-local store. Survives engine re-creation, not process restart."""

    def __init__(self):
        self._states: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def load(self, participant_id: str, condition: str) -> PolicyState:
        with self._lock:
            raw = self._states.get((participant_id, condition))
        if raw is None:
            return PolicyState()
        return PolicyState.from_dict(raw)

    def save(self, participant_id: str, condition: str, state: PolicyState) -> None:
        with self._lock:
            self._states[(participant_id, condition)] = state.to_dict()


class JsonFileStateStore(PolicyStateStore):
    """
    One JSON document per (participant, condition) under `directory`.

    Writes go to a temp file in the same directory followed by os.replace,
    so a crash mid-write leaves the previous document intact.
    """

    def __init__(self, directory):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def path_for(self, participant_id: str, condition: str) -> Path:
        # Hash of the JSON-encoded pair: distinct pairs never share a file
        pair = json.dumps([participant_id, condition])
        key = hashlib.sha256(pair.encode("utf-8")).hexdigest()
        return self.directory / f"viewing_{key}.json"

    def load(self, participant_id: str, condition: str) -> PolicyState:
        path = self.path_for(participant_id, condition)
        if not path.exists():
            return PolicyState()

        try:
            with open(path, "r", encoding="utf-8") as f:
                return PolicyState.from_dict(json.load(f))
        except (OSError, ValueError) as e:
            # json.JSONDecodeError is a ValueError
            logger.warning(
                "Discarding unreadable policy state %s (%s); starting fresh", path, e
            )
            return PolicyState()

    def save(self, participant_id: str, condition: str, state: PolicyState) -> None:
        path = self.path_for(participant_id, condition)
        fd, tmp_path = tempfile.mkstemp(
            dir=str(self.directory), prefix=path.name, suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(state.to_dict(), f, sort_keys=True)
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
