"""
StudyTrack Engine Constants

Purpose
-------
Fixed policy values for the progress and engagement engine: the study-day
reference offset, heart budget, and the scoring table. These are study
policy, not tunables, and are not read from ConfigManager.

Design Notes
------------
- Values are annotated with typing.Final to signal immutability
- Grouped by engine component
- No side effects at import time
"""

from __future__ import annotations

from typing import Final

# ============================================================================
# CLOCK / DAY BOUNDARY
# ============================================================================

# Fixed reference offset for the study day (UTC-5, no DST)
STUDY_DAY_UTC_OFFSET_HOURS: Final[int] = -5

# 23:59 in the reference zone already belongs to the next study day
EARLY_ROLLOVER_HOUR: Final[int] = 23
EARLY_ROLLOVER_MINUTE: Final[int] = 59

# ============================================================================
# GAMIFICATION
# ============================================================================

MAX_HEARTS: Final[int] = 20
INITIAL_STREAK_DAYS: Final[int] = 1
INITIAL_XP: Final[int] = 0

# ============================================================================
# SCORING
# ============================================================================

MIN_STARS: Final[int] = 0
MAX_STARS: Final[int] = 3

PERFECT_SCORE: Final[int] = 10  # correct == total == 10 for the perfect tier
TWO_STAR_MIN_CORRECT: Final[int] = 7
TWO_STAR_MAX_CORRECT: Final[int] = 9

XP_PER_CORRECT: Final[int] = 5
XP_HIGH_SCORE_THRESHOLD: Final[int] = 8
XP_HIGH_SCORE_BONUS: Final[int] = 10
XP_PERFECT_BONUS: Final[int] = 20  # stacks with the high-score bonus

# ============================================================================
# SESSIONS & TELEMETRY
# ============================================================================

DEFAULT_DAY_NUMBER: Final[int] = 1
DEFAULT_END_REASON: Final[str] = "normal"
