"""
VideoRun: one unit-viewing attempt and its post-hoc metrics.
Schema only.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from studytrack.core.database.base import Base, IdMixin, JSONType, VersionMixin


class VideoRun(Base, IdMixin, VersionMixin):
    """`metrics` is a flat bag of numbers/booleans written once at run end."""

    __tablename__ = "video_runs"

    participant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    session_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    condition: Mapped[str] = mapped_column(String(32), nullable=False)
    unit_id: Mapped[str] = mapped_column(String(64), nullable=False)
    day_number: Mapped[int] = mapped_column(nullable=False, default=1)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    ended_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    metrics: Mapped[Dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
