"""
Module 01 - Schemas & Errors
File: timestamps.py

Purpose: UTC datetime helpers shared by models, stores and chain readers.
On-chain timing bounds are unix seconds; everything off-chain is an
aware UTC datetime.
"""

from datetime import datetime, timezone
from typing import Callable

# Injected clock type: returns "now" as an aware UTC datetime
Clock = Callable[[], datetime]


def ensure_utc(dt: datetime) -> datetime:
    """
    Ensure a datetime is timezone-aware and in UTC.

    Rules:
        - If naive (no tzinfo): treat as UTC
        - If aware: convert to UTC
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def utc_now() -> datetime:
    """Default clock."""
    return datetime.now(timezone.utc)


def from_unix_seconds(value: int) -> datetime:
    """Convert an on-chain unix timestamp to an aware UTC datetime."""
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def parse_datetime(value: str) -> datetime:
    """Parse an ISO-8601 string (accepting a trailing Z) into aware UTC."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(value))
