"""
errors.py - Server error taxonomy.

Errors are contracts, not strings: every error carries a machine-readable
code and the HTTP status the API layer maps it to.
"""

from typing import Any


class ViewingError(Exception):
    """Base exception for domain failures."""

    status_code = 500

    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": "rejected",
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationFailure(ViewingError):
    """400 - malformed request. Nothing from the request was persisted."""

    status_code = 400


class NotFoundError(ViewingError):
    """404 - the referenced entity does not exist for this caller."""

    status_code = 404


class SessionNotFound(NotFoundError):
    def __init__(self, session_id: str):
        super().__init__(
            code="SESSION_NOT_FOUND",
            message="Session not found",
            details={"session_id": session_id},
        )


class OwnershipViolation(NotFoundError):
    """
    Session attributed to a participant other than the caller.

    Reported as "not found" so callers cannot probe for foreign sessions.
    """

    def __init__(self, session_ids: list[str]):
        super().__init__(
            code="SESSION_NOT_FOUND",
            message="One or more sessions not found or do not belong to participant",
            details={"session_ids": session_ids},
        )


class ParticipantNotFound(NotFoundError):
    def __init__(self, participant_id: str):
        super().__init__(
            code="PARTICIPANT_NOT_FOUND",
            message="Participant not found",
            details={"participant_id": participant_id},
        )


class ConflictError(ViewingError):
    """409 - state conflict; original state preserved."""

    status_code = 409


class AlreadyCompleted(ConflictError):
    def __init__(self, session_id: str, completed_at: str | None = None):
        super().__init__(
            code="ALREADY_COMPLETED",
            message="Session already completed",
            details={"session_id": session_id, "completed_at": completed_at},
        )


class DuplicateParticipant(ConflictError):
    def __init__(self, participant_id: str):
        super().__init__(
            code="PARTICIPANT_EXISTS",
            message="Participant ID already exists",
            details={"participant_id": participant_id},
        )
