"""
VideoState: resume point and caption preference per participant+unit.
Schema only.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import Boolean, Float, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from studytrack.core.database.base import Base, IdMixin, TimestampMixin, VersionMixin


class VideoState(Base, IdMixin, VersionMixin, TimestampMixin):
    __tablename__ = "video_states"
    __table_args__ = (
        UniqueConstraint("participant_id", "unit_id", name="uq_video_states_participant_unit"),
    )

    participant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    unit_id: Mapped[str] = mapped_column(String(64), nullable=False)
    completion_percent: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    last_position_sec: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    last_caption_state: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
