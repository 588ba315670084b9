"""Timestamp helpers for caption rows."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def format_timestamp(value: Optional[datetime] = None) -> str:
    """Return a fixed-width ISO-8601 UTC string with millisecond precision.

    Naive datetimes are treated as UTC. With no value the current time is used.
    The fixed width keeps lexical ordering identical to chronological ordering.
    """
    if value is None:
        value = datetime.now(timezone.utc)
    elif value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    else:
        value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"
