"""
HTTP transport layer for telemetry delivery and session calls.

One attempt per call. Retrying is the queue's job: a failed batch is
re-queued and goes out again on the next flush cycle.
"""

import logging
from typing import Any

import httpx

from .errors import AlreadyCompleted, BatchRejected, DeliveryFailure, SessionBoundaryError

logger = logging.getLogger(__name__)

EVENTS_BATCH_PATH = "/api/v1/events/batch"
SESSIONS_PATH = "/api/v1/sessions"
LOGIN_PATH = "/api/v1/participants/login"


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    detail = body.get("detail", body) if isinstance(body, dict) else body
    if isinstance(detail, dict):
        return detail.get("message") or detail.get("code") or str(detail)
    return str(detail)


def send_batch(http_client: httpx.Client, events: list[dict[str, Any]]) -> dict[str, Any]:
    """
    Deliver one event batch to the ingestion endpoint.

    Args:
        http_client: Client configured with base URL and bearer token
        events: Wire-shaped events (TrackingEvent.to_dict())

    Returns:
        Response dict with 'status', 'accepted_count', 'duplicate_count'

    Raises:
        BatchRejected: Server refused the batch (4xx), whole batch not persisted
        DeliveryFailure: Timeout, network failure or 5xx
    """
    try:
        response = http_client.post(EVENTS_BATCH_PATH, json={"events": events})
        response.raise_for_status()
        return response.json()

    except httpx.TimeoutException as e:
        raise DeliveryFailure(str(e), error_class="TIMEOUT") from e

    except httpx.NetworkError as e:
        raise DeliveryFailure(str(e), error_class="NETWORK_FAILURE") from e

    except httpx.HTTPStatusError as e:
        status_code = e.response.status_code
        message = f"HTTP {status_code}: {_error_detail(e.response)}"
        if 400 <= status_code < 500:
            raise BatchRejected(
                message, error_class="CLIENT_ERROR", status_code=status_code
            ) from e
        raise DeliveryFailure(
            message, error_class="SERVER_ERROR", status_code=status_code
        ) from e

    except httpx.HTTPError as e:
        raise DeliveryFailure(str(e), error_class="UNKNOWN_ERROR") from e


def open_session(http_client: httpx.Client, item_id: str) -> str:
    """
    Ask the server for a new session on `item_id`.

    Returns:
        The server-assigned session id.

    Raises:
        SessionBoundaryError: On any transport failure or non-2xx response.
    """
    try:
        response = http_client.post(SESSIONS_PATH, json={"item_id": item_id})
    except httpx.HTTPError as e:
        raise SessionBoundaryError(f"Session open failed: {e}") from e

    if response.status_code >= 400:
        raise SessionBoundaryError(
            f"Session open failed: {_error_detail(response)}", response.status_code
        )
    return response.json()["session_id"]


def complete_session(http_client: httpx.Client, session_id: str) -> dict[str, Any]:
    """
    Close a session on its item's natural end.

    Raises:
        AlreadyCompleted: The server already holds a completion for this session.
        SessionBoundaryError: Any other failure.
    """
    try:
        response = http_client.put(f"{SESSIONS_PATH}/{session_id}/complete")
    except httpx.HTTPError as e:
        raise SessionBoundaryError(f"Session complete failed: {e}") from e

    if response.status_code == 409:
        raise AlreadyCompleted(_error_detail(response), 409)
    if response.status_code >= 400:
        raise SessionBoundaryError(
            f"Session complete failed: {_error_detail(response)}", response.status_code
        )
    return response.json()


def login(http_client: httpx.Client, participant_id: str) -> dict[str, Any]:
    """Exchange a participant id for a bearer token and the participant record."""
    try:
        response = http_client.post(LOGIN_PATH, json={"participant_id": participant_id})
    except httpx.HTTPError as e:
        raise SessionBoundaryError(f"Login failed: {e}") from e

    if response.status_code >= 400:
        raise SessionBoundaryError(f"Login failed: {_error_detail(response)}", response.status_code)
    return response.json()
