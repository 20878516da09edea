"""
StudyTrack: progress and engagement engine for a gamified learning study.

Tracks unit completion and unlocks, hearts/XP/streaks for the gamified
arm, session boundaries and interaction telemetry over a versioned record
store.
"""

__version__ = "0.1.0"
