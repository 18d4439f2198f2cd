"""Timestamp rendering shared by the enricher and the serializer."""

from datetime import datetime, timezone


def format_time(value: datetime) -> str:
    """RFC 3339 with millisecond precision; naive datetimes are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat(timespec="milliseconds")
