"""
ParticipantGamification: hearts, XP and streak state.
Schema only.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import CheckConstraint, String
from sqlalchemy.orm import Mapped, mapped_column

from studytrack.core.constants import MAX_HEARTS
from studytrack.core.database.base import Base, IdMixin, TimestampMixin, VersionMixin


class ParticipantGamification(Base, IdMixin, VersionMixin, TimestampMixin):
    """
    One row per participant in a gamified condition.

    Day labels are "YYYY-MM-DD" study-day identifiers.
    """

    __tablename__ = "participant_gamification"
    __table_args__ = (
        CheckConstraint("xp >= 0", name="ck_gamification_xp_non_negative"),
        CheckConstraint("hearts >= 0", name="ck_gamification_hearts_non_negative"),
        CheckConstraint("streak_days >= 0", name="ck_gamification_streak_non_negative"),
    )

    participant_id: Mapped[str] = mapped_column(
        String(64), nullable=False, unique=True, index=True
    )
    xp: Mapped[int] = mapped_column(nullable=False, default=0)
    hearts: Mapped[int] = mapped_column(nullable=False, default=MAX_HEARTS)
    streak_days: Mapped[int] = mapped_column(nullable=False, default=1)
    last_activity_day: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    hearts_reset_day: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
