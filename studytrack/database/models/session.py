"""
StudySession: one bounded interval of participant presence in a tab.
Schema only.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from studytrack.core.database.base import Base, IdMixin, VersionMixin


class StudySession(Base, IdMixin, VersionMixin):
    """Open while `ended_at` is NULL."""

    __tablename__ = "study_sessions"
    __table_args__ = (
        Index("ix_study_sessions_participant_open", "participant_id", "ended_at"),
    )

    participant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    condition: Mapped[str] = mapped_column(String(32), nullable=False)
    day_number: Mapped[int] = mapped_column(nullable=False, default=1)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    ended_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    duration_ms: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    end_reason: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
