"""
StudyTrack Domain Validators

Raise-on-error checks for arguments crossing the service boundary. They
return None on success and raise `ValidationError` otherwise; they never
touch the store.
"""

from __future__ import annotations

from typing import Any

from .exceptions import ValidationError


def validate_identifier(value: Any, name: str) -> None:
    """Participant, unit, session and run ids are non-empty strings."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(name, f"{name} must be a non-empty string, got {value!r}")


def validate_non_negative_int(value: Any, name: str) -> None:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(name, f"{name} must be a non-negative integer, got {value!r}")


def validate_positive_int(value: Any, name: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(name, f"{name} must be a positive integer, got {value!r}")


def validate_quiz_counts(correct: int, total: int) -> None:
    """
    Validate a quiz outcome.

    Raises:
        ValidationError: If counts are negative, total is zero, or
            correct exceeds total.
    """
    validate_non_negative_int(correct, "correct")
    validate_positive_int(total, "total")
    if correct > total:
        raise ValidationError(
            "correct", f"correct ({correct}) cannot exceed total ({total})"
        )


def validate_percentage(value: Any, name: str) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not 0 <= value <= 100:
        raise ValidationError(name, f"{name} must be between 0 and 100, got {value!r}")
