"""
Domain exceptions for StudyTrack.

Purpose
-------
Structured exceptions raised by services for caller mistakes and missing
domain entities. Infrastructure failures (store, config) live in
`studytrack.core.exceptions`.

Design Notes
------------
- All domain exceptions inherit from `StudyDomainException` and carry
  `message`, `details`, `severity`, `is_retryable`, `error_code`.
- Business-rule limits are clamped, not raised: deducting a heart at zero
  or re-saving a lower star count is a no-op, never an exception.
- Absence of a record is normally a default, not an error; `NotFoundError`
  is for lookups where the caller asked for a specific entity by id.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from studytrack.core.exceptions import ErrorSeverity


class StudyDomainException(Exception):
    """
    Base exception for all StudyTrack domain-level errors.

    Args:
        message: Human-readable error message
        details: Additional structured data about the error
        severity: Error severity level for logging handlers
        is_retryable: Whether the operation can be retried
        error_code: Optional code for programmatic handling
    """

    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[ErrorSeverity] = None,
        is_retryable: Optional[bool] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message = message
        self.details: Dict[str, Any] = details or {}
        self.severity = severity or self.DEFAULT_SEVERITY
        self.is_retryable = (
            is_retryable if is_retryable is not None else self.DEFAULT_RETRYABLE
        )
        self.error_code = error_code or self.__class__.__name__
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
        }

    def __str__(self) -> str:
        details_str = f" | Details: {self.details}" if self.details else ""
        return f"[{self.error_code}] {self.message}{details_str}"


class InvalidIndexError(StudyDomainException):
    """
    Raised when a unit index falls outside the unit catalog.

    Fatal to the calling operation; never retried.

    Args:
        index: The requested position
        unit_count: Size of the catalog
    """

    DEFAULT_SEVERITY = ErrorSeverity.WARNING

    def __init__(self, index: int, unit_count: int) -> None:
        self.index = index
        self.unit_count = unit_count
        super().__init__(
            f"Unit index {index} out of range for catalog of {unit_count}",
            details={"index": index, "unit_count": unit_count},
            error_code="INVALID_INDEX",
        )


class NotFoundError(StudyDomainException):
    """
    Raised when a specific entity requested by id does not exist.

    Args:
        resource_type: Type of resource (e.g. "VideoRun", "Session")
        identifier: Optional identifier for the missing resource
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, resource_type: str, identifier: Optional[Any] = None) -> None:
        self.resource_type = resource_type
        self.identifier = identifier
        message = (
            f"{resource_type} not found: {identifier}"
            if identifier is not None
            else f"{resource_type} not found"
        )
        super().__init__(
            message,
            details={"resource_type": resource_type, "identifier": identifier},
            error_code=f"{resource_type.upper()}_NOT_FOUND",
        )


class ValidationError(StudyDomainException):
    """
    Raised when an argument violates a domain constraint.

    Args:
        field: Name of the offending argument
        message: Description of the violation
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(
            message,
            details={"field": field},
            error_code="VALIDATION_ERROR",
        )
