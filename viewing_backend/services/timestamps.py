"""Timestamps are stored as naive UTC."""

from datetime import datetime, timezone

UTC = timezone.utc


def utcnow() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


def parse_client_timestamp(ts: str) -> datetime:
    """
    Normalize a client wall timestamp to naive UTC.

    Naive input is taken as UTC (browsers always send an offset, scripts
    sometimes do not).

    Raises:
        ValueError: If the string is not ISO-8601.
    """
    dt = datetime.fromisoformat(ts.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(UTC).replace(tzinfo=None)


def isoformat(dt: datetime | None) -> str | None:
    """Render a stored naive-UTC datetime with an explicit offset."""
    if dt is None:
        return None
    return dt.replace(tzinfo=UTC).isoformat()
