"""Domain services. Each takes a SQLAlchemy session and never commits."""

from viewing_backend.services.aggregator import Aggregator
from viewing_backend.services.errors import (
    AlreadyCompleted,
    ConflictError,
    DuplicateParticipant,
    NotFoundError,
    OwnershipViolation,
    ParticipantNotFound,
    SessionNotFound,
    ValidationFailure,
    ViewingError,
)
from viewing_backend.services.export import EXPORT_KINDS, export_rows
from viewing_backend.services.ingestion_service import EventFilters, IngestionResult, IngestionService
from viewing_backend.services.participant_service import ParticipantService
from viewing_backend.services.session_service import SessionService, SessionSummary

__all__ = [
    "Aggregator",
    "AlreadyCompleted",
    "ConflictError",
    "DuplicateParticipant",
    "EXPORT_KINDS",
    "EventFilters",
    "IngestionResult",
    "IngestionService",
    "NotFoundError",
    "OwnershipViolation",
    "ParticipantNotFound",
    "ParticipantService",
    "SessionNotFound",
    "SessionService",
    "SessionSummary",
    "ValidationFailure",
    "ViewingError",
    "export_rows",
]
