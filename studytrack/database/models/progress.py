"""
ParticipantProgress: completed units and best quiz outcomes.
Schema only.
"""

from __future__ import annotations

from typing import Dict, List

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from studytrack.core.database.base import Base, IdMixin, JSONType, TimestampMixin, VersionMixin


class ParticipantProgress(Base, IdMixin, VersionMixin, TimestampMixin):
    """
    One row per participant.

    `best_scores` / `best_stars` are keyed by unit id and only hold units
    that are also listed in `completed_units`.
    """

    __tablename__ = "participant_progress"

    participant_id: Mapped[str] = mapped_column(
        String(64), nullable=False, unique=True, index=True
    )
    completed_units: Mapped[List[str]] = mapped_column(JSONType, nullable=False, default=list)
    best_scores: Mapped[Dict[str, int]] = mapped_column(JSONType, nullable=False, default=dict)
    best_stars: Mapped[Dict[str, int]] = mapped_column(JSONType, nullable=False, default=dict)
