"""UTC helpers.

SQLite drops tzinfo on round-trip while PostgreSQL keeps it; every comparison
in the lifecycle goes through as_utc() so both behave the same.
"""

from collections.abc import Callable
from datetime import UTC, datetime

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
