"""
StudyEvent: append-only interaction log.
Schema only.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from studytrack.core.database.base import Base, IdMixin, JSONType, VersionMixin


class StudyEvent(Base, IdMixin, VersionMixin):
    """Write-once; never updated."""

    __tablename__ = "study_events"
    __table_args__ = (
        Index("ix_study_events_participant_time", "participant_id", "occurred_at"),
    )

    participant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    session_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    video_run_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    condition: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    day_number: Mapped[Optional[int]] = mapped_column(nullable=True)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    meta: Mapped[Dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
