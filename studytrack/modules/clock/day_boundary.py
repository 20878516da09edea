"""
Study-day boundary.

A study day is a calendar date under a fixed UTC-5 reference offset (no
daylight saving). The last minute of each reference day (23:59) already
belongs to the next day, so heart resets and streak updates evaluated in
that minute roll over together.

Labels are ISO dates ("YYYY-MM-DD"); `day_index` turns them into integers
so day deltas are plain subtraction.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Optional

from studytrack.core.constants import (
    EARLY_ROLLOVER_HOUR,
    EARLY_ROLLOVER_MINUTE,
    STUDY_DAY_UTC_OFFSET_HOURS,
)

STUDY_TIMEZONE = timezone(timedelta(hours=STUDY_DAY_UTC_OFFSET_HOURS), name="study")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def day_identifier(instant: datetime) -> str:
    """
    Map an instant to its study-day label.

    Naive datetimes are taken to be UTC.

    >>> day_identifier(datetime(2024, 3, 10, 4, 58, tzinfo=timezone.utc))
    '2024-03-09'
    >>> day_identifier(datetime(2024, 3, 10, 4, 59, tzinfo=timezone.utc))
    '2024-03-10'
    """
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)

    local = instant.astimezone(STUDY_TIMEZONE)
    if local.hour == EARLY_ROLLOVER_HOUR and local.minute == EARLY_ROLLOVER_MINUTE:
        local += timedelta(days=1)
    return local.date().isoformat()


def should_advance_day(last_day_label: Optional[str], now: datetime) -> bool:
    """True when `last_day_label` is absent or differs from today's label."""
    if not last_day_label:
        return True
    return day_identifier(now) != last_day_label


def day_index(label: str) -> int:
    """Ordinal of a day label; consecutive days differ by exactly 1."""
    return date.fromisoformat(label).toordinal()


def days_between(earlier_label: str, later_label: str) -> int:
    """Whole study days from `earlier_label` to `later_label` (may be negative)."""
    return day_index(later_label) - day_index(earlier_label)
