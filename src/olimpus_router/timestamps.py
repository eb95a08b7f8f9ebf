"""ISO-8601 timestamp helpers shared by the logger and analytics."""

from __future__ import annotations

from datetime import datetime, timezone


def utc_timestamp() -> str:
    """Current time as an ISO-8601 UTC string with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime | None:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    try:
        parsed = datetime.fromisoformat(value)
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes so they compare with parsed timestamps."""
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)
