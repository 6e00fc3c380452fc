"""Timestamp helpers for rows coming out of SQLite."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Union

TimestampLike = Union[str, datetime]

STORAGE_FORMAT = "%Y-%m-%d %H:%M:%S"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: TimestampLike) -> datetime:
    """Parse a stored timestamp into an aware UTC datetime.

    Accepts ISO 8601 strings (``T`` or space separator, optional ``Z``) as
    written by SQLite's ``CURRENT_TIMESTAMP`` or by :func:`utc_now`. Naive
    values are treated as UTC.

    Raises:
        ValueError: ``value`` is not a timestamp
    """
    if isinstance(value, datetime):
        dt = value
    elif not isinstance(value, str):
        raise ValueError(f"Not a timestamp: {value!r}")
    else:
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_storage(value: datetime) -> str:
    """Format a datetime like SQLite's ``CURRENT_TIMESTAMP`` (UTC, seconds).

    Keeping a single format lets ``ORDER BY``/range filters compare text.
    """
    return parse_timestamp(value).strftime(STORAGE_FORMAT)
