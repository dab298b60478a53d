"""
viewing_sdk/errors.py - Client Error Taxonomy

Nothing here is fatal to the client process. Policy violations disable UI
affordances; delivery failures are retried on the next flush cycle.
"""
from typing import Any, Dict, Optional


class ViewingClientError(Exception):
    """Base class for client-side errors."""


class PolicyViolation(ViewingClientError):
    """Illegal selection, seek or replay. No state was changed."""

    def __init__(self, reason: str, item_id: Optional[str] = None):
        self.reason = reason
        self.item_id = item_id
        super().__init__(f"{reason} (item={item_id})" if item_id else reason)


class DeliveryFailure(ViewingClientError):
    """
    Raised when a telemetry batch could not be delivered.

    The queue re-queues the batch on every DeliveryFailure. `retryable`
    is False when the server actively refused the batch (4xx).
    """

    retryable = True

    def __init__(self, message=None, *, error_class=None, status_code=None, details=None):
        super().__init__(message or "Batch delivery failed")
        self.error_class = error_class
        self.status_code = status_code
        self.details: Dict[str, Any] = details or {}


class BatchRejected(DeliveryFailure):
    """The ingestion boundary refused the whole batch (validation or ownership)."""

    retryable = False


class SessionBoundaryError(ViewingClientError):
    """Opening or closing a session at the server failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AlreadyCompleted(SessionBoundaryError):
    """The server reports the session was completed by an earlier call."""
