"""
Scoring formulas.

Pure functions from a quiz outcome `(correct, total)` to stars and XP.
The table is fixed study policy (see `studytrack.core.constants`).

Stars
-----
- 3: perfect run, correct == total == 10
- 2: 7 <= correct <= 9
- 1: anything else; finishing a quiz always earns a star

XP
--
correct * 5, +10 when correct >= 8, a further +20 on a perfect run.
"""

from __future__ import annotations

from typing import Optional

from studytrack.core.constants import (
    PERFECT_SCORE,
    TWO_STAR_MAX_CORRECT,
    TWO_STAR_MIN_CORRECT,
    XP_HIGH_SCORE_BONUS,
    XP_HIGH_SCORE_THRESHOLD,
    XP_PER_CORRECT,
    XP_PERFECT_BONUS,
)


def is_perfect(correct: int, total: int) -> bool:
    return correct == PERFECT_SCORE and total == PERFECT_SCORE


def stars(correct: int, total: int) -> int:
    if is_perfect(correct, total):
        return 3
    if TWO_STAR_MIN_CORRECT <= correct <= TWO_STAR_MAX_CORRECT:
        return 2
    return 1


def xp(correct: int, total: int) -> int:
    earned = correct * XP_PER_CORRECT
    if correct >= XP_HIGH_SCORE_THRESHOLD:
        earned += XP_HIGH_SCORE_BONUS
    if is_perfect(correct, total):
        earned += XP_PERFECT_BONUS
    return earned


def should_replace_best(new_value: int, stored_value: Optional[int]) -> bool:
    """Best-of values only move up; an absent value is always replaced."""
    return stored_value is None or new_value > stored_value


def score_accuracy(correct: int, total: int) -> float:
    """Percentage of correct answers, rounded to two decimals."""
    if total <= 0:
        return 0.0
    return round(correct * 100.0 / total, 2)
