"""Timestamp helpers.

Timestamps are written timezone-aware but some providers hand them back
naive; everything is compared in aware UTC.
"""

from datetime import UTC, datetime


def as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def parse_timestamp(value) -> datetime | None:
    """Parse an ISO-8601 string (or pass through a datetime) into aware UTC.

    Returns None for empty or unparseable input.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    try:
        return as_utc(datetime.fromisoformat(str(value).replace("Z", "+00:00")))
    except ValueError:
        return None
