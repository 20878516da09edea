from .condition import (
    Cohort,
    Condition,
    gamified_conditions_from,
    is_gamified_condition,
    parse_cohort,
    parse_condition,
)

__all__ = [
    "Cohort",
    "Condition",
    "gamified_conditions_from",
    "is_gamified_condition",
    "parse_cohort",
    "parse_condition",
]
