"""Timestamp helpers.

Persisted timestamps carry millisecond precision so they survive a round
trip through ISO-8601 text unchanged.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Current UTC time truncated to whole milliseconds."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


def to_iso(value: datetime) -> str:
    return value.isoformat(timespec="milliseconds")
