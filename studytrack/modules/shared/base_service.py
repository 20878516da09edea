"""
Base Service Foundation

Purpose
-------
Common base for StudyTrack domain services: structured logging, safe
tunable lookup, an injectable clock and argument validation.

Design Notes
------------
- Services receive every collaborator through the constructor; nothing is
  looked up from module globals, so tests can swap the store or the clock.
- The clock returns timezone-aware UTC datetimes.
- Services never open database sessions; they talk to a `ProgressStore`.

Usage
-----
    class ProgressService(BaseService):
        def __init__(self, store, retry_policy, config_manager, logger, clock=utc_now):
            super().__init__(config_manager, logger, clock)
            self.store = store
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Optional

from studytrack.core.exceptions import (
    ConfigurationError,
    get_error_severity,
    is_transient_error,
    should_alert,
)
from studytrack.modules.clock.day_boundary import utc_now

from . import validators

if TYPE_CHECKING:
    from logging import Logger

    from studytrack.core.config.manager import ConfigManager

Clock = Callable[[], datetime]


class BaseService:
    """
    Base class for all domain services.

    Args:
        config_manager: Tunables lookup (`ConfigManager` or compatible)
        logger: Structured logger instance
        clock: Zero-argument callable returning the current UTC instant
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        logger: Logger,
        clock: Clock = utc_now,
    ) -> None:
        self._config = config_manager
        self._clock = clock
        self.log = logger

    def now(self) -> datetime:
        return self._clock()

    def get_config(
        self, key: str, default: Optional[Any] = None, required: bool = False
    ) -> Any:
        """
        Safely retrieve a tunable.

        Raises:
            ConfigurationError: If required=True and key is missing
        """
        value = self._config.get(key, default)
        if required and value is None:
            raise ConfigurationError(key, f"Required configuration key '{key}' is missing")
        return value

    def log_operation(self, operation: str, **context: Any) -> None:
        self.log.info(
            f"Service operation: {operation}",
            extra={"operation": operation, **context},
        )

    def log_error(
        self,
        operation: str,
        error: BaseException,
        **context: Any,
    ) -> None:
        """
        Log a failure with full context; the caller decides whether to re-raise.

        Alerting severities (ERROR/CRITICAL) log at ERROR, everything else at
        WARNING, so a swallowed version conflict does not page anyone.
        """
        level = logging.ERROR if should_alert(error) else logging.WARNING
        self.log.log(
            level,
            f"Service error during {operation}: {error}",
            extra={
                "operation": operation,
                "error_type": type(error).__name__,
                "error_message": str(error),
                "severity": get_error_severity(error).value,
                "retryable": is_transient_error(error),
                **context,
            },
            exc_info=error,
        )

    def validate_identifier(self, value: Any, name: str) -> None:
        validators.validate_identifier(value, name)

    def validate_non_negative_int(self, value: Any, name: str) -> None:
        validators.validate_non_negative_int(value, name)
