"""Timezone helpers shared by models and services."""
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value):
    """Treat naive datetimes read back from the database as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_iso_timestamp(value):
    """
    Parse an ISO-8601 timestamp string.

    Returns:
        Aware datetime, or None when value is None

    Raises:
        ValueError: If the value is not a valid ISO timestamp
    """
    if value is None:
        return None
    if not isinstance(value, str) or not value.strip():
        raise ValueError('Invalid timestamp')
    text = value.strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    return as_utc(datetime.fromisoformat(text))


def isoformat_or_none(value):
    return as_utc(value).isoformat() if value else None
