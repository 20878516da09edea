"""
Infrastructure exceptions for StudyTrack.

Purpose
-------
Define the structured exception hierarchy for infrastructure-level concerns:
record-store failures, optimistic-concurrency conflicts, and configuration
errors.

Design Notes
------------
- All infrastructure exceptions inherit from `StudyInfrastructureException`.
- Each exception carries:
  - `message`: human-readable description
  - `details`: additional structured context (dict)
  - `severity`: `ErrorSeverity` value for logging/alerting
  - `is_retryable`: whether the operation can be retried
  - `error_code`: short, stable identifier for programmatic use
- Absence of a record is NOT an error at this layer; stores return None.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """Error severity levels for logging and alerting."""

    DEBUG = "debug"  # Expected, not concerning
    INFO = "info"  # Normal operation (e.g., validation failures)
    WARNING = "warning"  # Concerning but handled (e.g., retryable errors)
    ERROR = "error"  # Unexpected errors requiring attention
    CRITICAL = "critical"  # System-level failures requiring immediate action


class StudyInfrastructureException(Exception):
    """
    Base exception for all StudyTrack infrastructure-level errors.

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
        self.message: str = message
        self.details: Dict[str, Any] = details or {}
        self.severity: ErrorSeverity = severity or self.DEFAULT_SEVERITY
        self.is_retryable: bool = (
            is_retryable if is_retryable is not None else self.DEFAULT_RETRYABLE
        )
        self.error_code: str = error_code or self.__class__.__name__
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
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

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"details={self.details!r}, "
            f"severity={self.severity.value!r}, "
            f"is_retryable={self.is_retryable!r}"
            ")"
        )


class ConfigurationError(StudyInfrastructureException):
    """
    Raised when a configuration key is invalid or missing.

    Args:
        config_key: The configuration key that has issues
        message: Description of the configuration problem
    """

    DEFAULT_SEVERITY = ErrorSeverity.CRITICAL
    DEFAULT_RETRYABLE = False

    def __init__(self, config_key: str, message: str) -> None:
        self.config_key = config_key
        super().__init__(
            f"Configuration error for {config_key}: {message}",
            details={"config_key": config_key, "message": message},
            error_code="CONFIG_ERROR",
        )


class StoreUnavailableError(StudyInfrastructureException):
    """
    Raised when the record store cannot be reached or fails a request.

    Covers network/backend failures at the store boundary. Callers on read
    paths degrade to defaults; callers on progress/quiz-result write paths
    let it propagate so the UI can retry or warn.

    Args:
        operation: Store operation that failed (e.g. "get_record")
        kind: Record kind involved
        original_error: The underlying exception, if any
    """

    DEFAULT_SEVERITY = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE = True

    def __init__(
        self,
        operation: str,
        kind: Optional[str] = None,
        original_error: Optional[BaseException] = None,
    ) -> None:
        self.operation = operation
        self.kind = kind
        self.original_error = original_error
        reason = str(original_error) if original_error else "store unavailable"
        super().__init__(
            f"Store error during {operation}"
            + (f" on {kind}" if kind else "")
            + f": {reason}",
            details={
                "operation": operation,
                "kind": kind,
                "error": reason,
                "error_type": (
                    type(original_error).__name__ if original_error else None
                ),
            },
            error_code="STORE_UNAVAILABLE",
        )


class VersionConflictError(StudyInfrastructureException):
    """
    Raised when a conditional write finds a different record version.

    The caller is expected to re-read the record and re-run its business
    logic (see ConflictRetryPolicy).

    Args:
        kind: Record kind involved
        key: Conflict key of the record
        expected_version: Version the writer read
        actual_version: Version currently stored (0 when absent)
    """

    DEFAULT_SEVERITY = ErrorSeverity.WARNING
    DEFAULT_RETRYABLE = True

    def __init__(
        self,
        kind: str,
        key: Dict[str, Any],
        expected_version: int,
        actual_version: int,
    ) -> None:
        self.kind = kind
        self.key = key
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Version conflict on {kind}: expected {expected_version}, "
            f"found {actual_version}",
            details={
                "kind": kind,
                "key": key,
                "expected_version": expected_version,
                "actual_version": actual_version,
            },
            error_code="VERSION_CONFLICT",
        )


# Utility functions for exception handling patterns


def _is_structured(exc: BaseException) -> bool:
    from studytrack.modules.shared.exceptions import StudyDomainException

    return isinstance(exc, (StudyInfrastructureException, StudyDomainException))


def is_transient_error(exc: BaseException) -> bool:
    """Return True if the exception is a structured error marked retryable."""
    if _is_structured(exc):
        return exc.is_retryable
    return False


def get_error_severity(exc: BaseException) -> ErrorSeverity:
    """Get the severity level of an exception for logging."""
    if _is_structured(exc):
        return exc.severity
    return ErrorSeverity.ERROR


def should_alert(exc: BaseException) -> bool:
    """True if severity is ERROR or CRITICAL."""
    return get_error_severity(exc) in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL)
