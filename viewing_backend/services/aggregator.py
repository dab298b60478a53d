"""
aggregator.py - Study statistics, computed on demand from the full event log.

Nothing here is cached or materialized; every call reads the current rows.
Each metric can be scoped to a single participant.
"""

from dataclasses import asdict, dataclass, field
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session as DBSession

from viewing_backend.config import settings
from viewing_backend.models import Event, EventType, Participant, Session
from viewing_backend.services.participant_service import ParticipantService
from viewing_backend.services.timestamps import isoformat


@dataclass
class Overview:
    participant_count: int
    session_count: int
    event_count: int
    conditions: dict[str, int] = field(default_factory=dict)


@dataclass
class PauseStats:
    count: int
    total_duration: float
    average_duration: float


@dataclass
class Completion:
    total: int
    completed: int
    completion_rate: float


def completion_rate(completed: int, total: int) -> float:
    """Completed share as a percentage, two decimals; 0.0 for no sessions."""
    if total <= 0:
        return 0.0
    return round(completed / total * 100, 2)


class Aggregator:
    def __init__(self, db: DBSession):
        self.db = db

    def overview(self) -> Overview:
        participants = self.db.scalar(select(func.count(Participant.id))) or 0
        sessions = self.db.scalar(select(func.count(Session.id))) or 0
        events = self.db.scalar(select(func.count(Event.id))) or 0

        # Known conditions always appear, even with nobody assigned
        conditions = {condition: 0 for condition in settings.CONDITIONS}
        stmt = select(Participant.condition, func.count(Participant.id)).group_by(Participant.condition)
        for condition, count in self.db.execute(stmt).all():
            conditions[condition] = count

        return Overview(
            participant_count=participants,
            session_count=sessions,
            event_count=events,
            conditions=conditions,
        )

    def event_breakdown(self, participant: Participant | None = None) -> dict[str, int]:
        stmt = self._scoped(
            select(Event.event_type, func.count(Event.id)).group_by(Event.event_type),
            participant,
        )
        return {event_type: count for event_type, count in self.db.execute(stmt).all()}

    def pause_stats(self, participant: Participant | None = None) -> PauseStats:
        """Pauses without a measured duration are left out of all three figures."""
        stmt = self._scoped(
            select(func.count(Event.id), func.coalesce(func.sum(Event.duration), 0.0))
            .where(Event.event_type == EventType.PAUSE.value)
            .where(Event.duration.is_not(None)),
            participant,
        )
        count, total = self.db.execute(stmt).one()
        total = float(total or 0.0)
        average = round(total / count, 2) if count else 0.0
        return PauseStats(count=count, total_duration=total, average_duration=average)

    def switch_count(self, participant: Participant | None = None) -> int:
        stmt = self._scoped(
            select(func.count(Event.id)).where(Event.event_type == EventType.SWITCH.value),
            participant,
        )
        return self.db.scalar(stmt) or 0

    def completion(self, participant: Participant | None = None) -> Completion:
        stmt = select(func.count(Session.id), func.count(Session.completed_at))
        if participant is not None:
            stmt = stmt.where(Session.participant_id == participant.id)
        total, completed = self.db.execute(stmt).one()
        return Completion(total=total, completed=completed, completion_rate=completion_rate(completed, total))

    def study_stats(self) -> dict[str, Any]:
        return {
            "overview": asdict(self.overview()),
            "events": {
                "by_type": self.event_breakdown(),
                "total_switches": self.switch_count(),
            },
            "pauses": asdict(self.pause_stats()),
            "sessions": asdict(self.completion()),
        }

    def participant_stats(self, participant_id: str) -> dict[str, Any]:
        """
        Same shape as study_stats, scoped to one participant.

        Raises:
            ParticipantNotFound: Unknown participant id
        """
        participant = ParticipantService(self.db).get(participant_id)
        breakdown = self.event_breakdown(participant)

        return {
            "participant": {
                "participant_id": participant.participant_id,
                "condition": participant.condition,
                "created_at": isoformat(participant.created_at),
            },
            "events": {
                "total": sum(breakdown.values()),
                "by_type": breakdown,
                "total_switches": self.switch_count(participant),
            },
            "pauses": asdict(self.pause_stats(participant)),
            "sessions": asdict(self.completion(participant)),
        }

    def _scoped(self, stmt, participant: Participant | None):
        if participant is None:
            return stmt
        return stmt.join_from(Event, Session, Event.session_id == Session.id).where(
            Session.participant_id == participant.id
        )
