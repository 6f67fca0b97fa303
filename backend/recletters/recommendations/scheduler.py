"""Reminder scheduling: urgency levels and the next-reminder cursor.

Everything here is a pure function of the request and ``now``; the only state
between sweeps is what the lifecycle persisted (next_reminder_date and
last_reminder_sent_at), so re-running a sweep after a crash is harmless.
"""

import enum
import math
from datetime import datetime, timedelta

from .models import RequestStatus
from .timeutils import as_utc

_DAY_SECONDS = 24 * 60 * 60


class UrgencyLevel(enum.IntEnum):
    """Ordered so that comparisons follow low < medium < high < critical."""

    LOW = 0
    MEDIUM = 1
    HIGH = 2
    CRITICAL = 3

    @property
    def label(self) -> str:
        return self.name.lower()


def days_until_deadline(deadline: datetime, now: datetime) -> int:
    """Whole days left, rounded up (23 hours left counts as 1 day)."""
    remaining = (as_utc(deadline) - as_utc(now)).total_seconds()
    return math.ceil(remaining / _DAY_SECONDS)


def urgency_of(days: int) -> UrgencyLevel:
    if days <= 1:
        return UrgencyLevel.CRITICAL
    if days <= 3:
        return UrgencyLevel.HIGH
    if days <= 7:
        return UrgencyLevel.MEDIUM
    return UrgencyLevel.LOW


def urgency_message(days: int, level: UrgencyLevel) -> str:
    if level == UrgencyLevel.CRITICAL:
        when = "TODAY" if days <= 0 else "TOMORROW"
        return (
            f"URGENT: This recommendation is due {when}! "
            "Please submit as soon as possible to avoid missing the deadline."
        )
    if level == UrgencyLevel.HIGH:
        return (
            f"IMPORTANT: This recommendation is due in {days} days. "
            "Please prioritize this request to ensure timely submission."
        )
    if level == UrgencyLevel.MEDIUM:
        return f"REMINDER: This recommendation is due in {days} days. Please plan to submit soon."
    return f"Friendly reminder: This recommendation is due in {days} days."


def validate_intervals(intervals: list[int]) -> list[int]:
    """Return the ladder as ints, rejecting negatives and non-decreasing ladders."""
    result = []
    for value in intervals:
        if isinstance(value, bool) or int(value) != value or value < 0:
            raise ValueError(f"Reminder intervals must be whole days >= 0, got {value!r}")
        result.append(int(value))
    for earlier, later in zip(result, result[1:]):
        if later >= earlier:
            raise ValueError(f"Reminder intervals must be strictly decreasing, got {result}")
    return result


def next_reminder(request, now: datetime) -> datetime | None:
    """Next reminder time, or None when the ladder is exhausted.

    Walks the intervals from the largest offset down and returns
    ``deadline - interval`` for the first candidate that is still ahead of
    ``now`` and strictly after the last reminder that fired.
    """
    deadline = as_utc(request.deadline)
    now = as_utc(now)
    if deadline is None or now >= deadline:
        return None

    last_fired = as_utc(request.last_reminder_sent_at)
    for interval in sorted(request.reminder_intervals or [], reverse=True):
        candidate = deadline - timedelta(days=interval)
        if candidate <= now:
            continue
        if last_fired is not None and candidate <= last_fired:
            continue
        return candidate
    return None


def is_due(request, now: datetime) -> bool:
    if request.status != RequestStatus.SENT or request.next_reminder_date is None:
        return False
    return as_utc(now) >= as_utc(request.next_reminder_date)
