"""
remote_client.py - Remote mode wrapper for the viewing SDK.

Sessions are opened and closed by the server; telemetry batches go to the
ingestion endpoint over HTTP.
"""

import logging
import os
from typing import Any, List, Optional

import httpx

from .client import ViewingClient
from .events import TrackingEvent
from .state_store import PolicyStateStore
from .transport import complete_session, login, open_session, send_batch

logger = logging.getLogger(__name__)

DEFAULT_SERVER_URL = "http://localhost:8000"


def _build_http_client(server_url: str, api_token: Optional[str], timeout: float) -> httpx.Client:
    http_client = httpx.Client(
        base_url=server_url,
        timeout=timeout,
        headers={"Content-Type": "application/json"},
    )
    if api_token:
        http_client.headers["Authorization"] = f"Bearer {api_token}"
    return http_client


class RemoteViewingClient(ViewingClient):
    """
    Viewing SDK bound to a study server.

    GUARANTEES:
    - Server authority for session ids and completion
    - Failed batches are re-queued, never dropped by the client
    - Fail-open: an unreachable server never blocks playback
    """

    def __init__(
        self,
        participant_id: str,
        condition: str,
        server_url: Optional[str] = None,
        api_token: Optional[str] = None,
        state_store: Optional[PolicyStateStore] = None,
        flush_interval: float = 5.0,
        max_queue_size: int = 50,
        timeout: float = 10.0,
        register_atexit: bool = True,
        max_batch_size: int = 100,
    ):
        """
        Create a client that talks to the study server.

        Parameters:
            participant_id (str): Externally assigned participant identifier.
            condition (str): Condition the participant was assigned to.
            server_url (str | None): Base URL. If None, reads VIEWING_SERVER_URL or uses "http://localhost:8000".
            api_token (str | None): Bearer token. If None, reads VIEWING_API_TOKEN.
            state_store (PolicyStateStore | None): Where policy state survives restarts.
            flush_interval (float): Seconds between periodic flushes.
            max_queue_size (int): Queue length that triggers an immediate flush.
            max_batch_size (int): Most events sent in one request; keep at or below the server MAX_BATCH_SIZE.
            timeout (float): Per-request HTTP timeout in seconds.
        """
        super().__init__(
            participant_id,
            condition,
            state_store=state_store,
            flush_interval=flush_interval,
            max_queue_size=max_queue_size,
            register_atexit=register_atexit,
            max_batch_size=max_batch_size,
        )

        self.server_url = server_url or os.getenv("VIEWING_SERVER_URL", DEFAULT_SERVER_URL)
        self.api_token = api_token or os.getenv("VIEWING_API_TOKEN")
        self.http_client = _build_http_client(self.server_url, self.api_token, timeout)

    @classmethod
    def connect(
        cls,
        participant_id: str,
        server_url: Optional[str] = None,
        state_store: Optional[PolicyStateStore] = None,
        **kwargs: Any,
    ) -> "RemoteViewingClient":
        """
        Log in as `participant_id` and build a client for the condition the
        server assigned.

        Raises:
            SessionBoundaryError: If the server is unreachable or the id is unknown.
        """
        server_url = server_url or os.getenv("VIEWING_SERVER_URL", DEFAULT_SERVER_URL)
        with _build_http_client(server_url, None, kwargs.get("timeout", 10.0)) as http_client:
            data = login(http_client, participant_id)

        participant = data["participant"]
        logger.info(
            "Logged in as %s (condition=%s)", participant["participant_id"], participant["condition"]
        )
        return cls(
            participant["participant_id"],
            participant["condition"],
            server_url=server_url,
            api_token=data["token"],
            state_store=state_store,
            **kwargs,
        )

    def _open_session(self, item_id: str) -> str:
        session_id = open_session(self.http_client, item_id)
        logger.info("Session opened: %s (item=%s)", session_id, item_id)
        return session_id

    def _complete_session(self, session_id: str) -> None:
        complete_session(self.http_client, session_id)
        logger.info("Session completed: %s", session_id)

    def _deliver(self, batch: List[TrackingEvent]) -> None:
        result = send_batch(self.http_client, [e.to_dict() for e in batch])
        logger.debug(
            "Batch sent: %s accepted, %s duplicates",
            result.get("accepted_count"), result.get("duplicate_count"),
        )

    def close(self):
        """Teardown flush, then release the HTTP connection pool."""
        try:
            return super().close()
        finally:
            self.http_client.close()
