from .day_boundary import (
    STUDY_TIMEZONE,
    day_identifier,
    day_index,
    days_between,
    should_advance_day,
    utc_now,
)

__all__ = [
    "STUDY_TIMEZONE",
    "day_identifier",
    "day_index",
    "days_between",
    "should_advance_day",
    "utc_now",
]
