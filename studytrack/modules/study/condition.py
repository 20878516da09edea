"""
Study arms and cohorts.

Gamification (hearts, XP, stars, streaks) is only active for conditions
listed under `gamification.gamified_conditions`; by default that is the
experimental arm.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional, Union

from studytrack.database.models.enums import Cohort, Condition

DEFAULT_GAMIFIED_CONDITIONS = (Condition.EXPERIMENTAL.value,)


def parse_condition(value: Union[str, Condition]) -> Condition:
    """
    Normalize a condition tag.

    Raises:
        ValueError: for unknown tags.
    """
    if isinstance(value, Condition):
        return value
    return Condition(str(value).strip().lower())


def parse_cohort(value: Union[str, Cohort]) -> Cohort:
    if isinstance(value, Cohort):
        return value
    return Cohort(str(value).strip().upper())


def is_gamified_condition(
    condition: Optional[Union[str, Condition]],
    gamified_conditions: Optional[Iterable[str]] = None,
) -> bool:
    if condition is None:
        return False
    tag = condition.value if isinstance(condition, Condition) else str(condition).strip().lower()
    allowed = gamified_conditions if gamified_conditions is not None else DEFAULT_GAMIFIED_CONDITIONS
    return tag in {str(item).lower() for item in allowed}


def gamified_conditions_from(config_manager: Any) -> tuple[str, ...]:
    """Read the configured gamified arms, falling back to the default."""
    configured = config_manager.get(
        "gamification.gamified_conditions", list(DEFAULT_GAMIFIED_CONDITIONS)
    )
    return tuple(str(item).lower() for item in configured)
