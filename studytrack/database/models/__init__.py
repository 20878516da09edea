"""
Database Models Package
=======================

SQLAlchemy ORM models, one table per ProgressStore record kind.

- Schema only, no business logic
- `Mapped[]` syntax with `mapped_column()`
- Every mutable table carries a `version` column for optimistic writes
"""

from studytrack.core.database.base import Base

from .enums import Cohort, Condition, SessionEndReason
from .event import StudyEvent
from .gamification import ParticipantGamification
from .progress import ParticipantProgress
from .quiz_result import QuizResult
from .session import StudySession
from .video_run import VideoRun
from .video_state import VideoState

__all__ = [
    "Base",
    "Cohort",
    "Condition",
    "SessionEndReason",
    "ParticipantProgress",
    "ParticipantGamification",
    "StudySession",
    "VideoRun",
    "StudyEvent",
    "QuizResult",
    "VideoState",
]
