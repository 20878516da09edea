"""
Database Model Enums
====================

Categorical values stored on StudyTrack rows. Declarative schema helpers
only; the rules that consume them live in the service layer.
"""

from __future__ import annotations

import enum


class Condition(str, enum.Enum):
    """
    Study arm a participant is enrolled in.

    Only gamified arms drive hearts, XP, stars and streaks.
    """

    EXPERIMENTAL = "experimental"
    CONTROL = "control"


class Cohort(str, enum.Enum):
    """Enrollment cohort (wave) of a participant."""

    A = "A"
    B = "B"


class SessionEndReason(str, enum.Enum):
    """Why a session row was closed."""

    NORMAL = "normal"
    TAB_HIDDEN = "tab_hidden"
    PAGE_UNLOAD = "page_unload"
    PAGE_HIDE = "page_hide"
    LOGOUT = "logout"
