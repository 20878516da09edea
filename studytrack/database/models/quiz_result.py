"""
QuizResult: one row per completed quiz attempt.
Schema only.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Float, String
from sqlalchemy.orm import Mapped, mapped_column

from studytrack.core.database.base import Base, IdMixin, VersionMixin


class QuizResult(Base, IdMixin, VersionMixin):
    __tablename__ = "quiz_results"

    participant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    unit_id: Mapped[str] = mapped_column(String(64), nullable=False)
    correct_count: Mapped[int] = mapped_column(nullable=False)
    incorrect_count: Mapped[int] = mapped_column(nullable=False)
    total_questions: Mapped[int] = mapped_column(nullable=False)
    score_accuracy: Mapped[float] = mapped_column(Float, nullable=False)
    completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
