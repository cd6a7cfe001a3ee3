"""Timestamp helpers. Stored timestamps are RFC 3339 UTC strings."""

from datetime import UTC, date, datetime


def utc_now() -> datetime:
    return datetime.now(UTC)


def rfc3339(moment: datetime) -> str:
    """Format with millisecond precision so stored values sort lexically."""
    return moment.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def today(moment: datetime) -> date:
    return moment.astimezone().date()
