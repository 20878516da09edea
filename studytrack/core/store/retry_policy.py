"""
Conflict Retry Policy - optimistic read-compute-write loops.

Purpose
-------
Re-run a whole read-compute-write operation when its conditional write
loses a race (`VersionConflictError`), with exponential backoff and jitter.

Backoff
-------
min(initial * 2^(attempt-1), max) + random(0, jitter), in milliseconds.

Usage
-----
>>> policy = ConflictRetryPolicy.from_config()
>>> async def award() -> Record:
...     current = await store.get_record(kind, key)
...     return await store.upsert_record(
...         kind, key, {"xp": current.get("xp", 0) + 5},
...         expected_version=current.version,
...     )
>>> await policy.execute(award, operation_name="gamification.award_xp")

The operation must re-read inside the closure; retrying only the write
would just repeat the conflict.
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Tuple, Type, TypeVar

from studytrack.core.config.config import Config
from studytrack.core.config.manager import ConfigManager
from studytrack.core.exceptions import VersionConflictError
from studytrack.core.logging.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class ConflictRetryConfig:
    max_attempts: int
    initial_backoff_ms: int
    max_backoff_ms: int
    jitter_ms: int
    retriable_exceptions: Tuple[Type[BaseException], ...] = (VersionConflictError,)

    @classmethod
    def from_config(cls) -> "ConflictRetryConfig":
        """
        Attempts come from `store.conflict_retry_attempts` (tunable), falling
        back to `Config.STORE_RETRY_MAX_ATTEMPTS`; timings from Config.
        """
        max_attempts = int(
            ConfigManager.get("store.conflict_retry_attempts", Config.STORE_RETRY_MAX_ATTEMPTS)
        )
        return cls(
            max_attempts=max(1, max_attempts),
            initial_backoff_ms=Config.STORE_RETRY_INITIAL_BACKOFF_MS,
            max_backoff_ms=Config.STORE_RETRY_MAX_BACKOFF_MS,
            jitter_ms=Config.STORE_RETRY_JITTER_MS,
        )


class ConflictRetryPolicy:
    def __init__(self, config: ConflictRetryConfig) -> None:
        self._config = config

    @classmethod
    def from_config(cls) -> "ConflictRetryPolicy":
        return cls(ConflictRetryConfig.from_config())

    @property
    def max_attempts(self) -> int:
        return self._config.max_attempts

    def _compute_backoff_ms(self, attempt: int) -> int:
        base = self._config.initial_backoff_ms * (2 ** max(attempt - 1, 0))
        capped = min(base, self._config.max_backoff_ms)
        jitter = random.randint(0, self._config.jitter_ms) if self._config.jitter_ms > 0 else 0
        return capped + jitter

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        operation_name: str,
        context: Optional[dict[str, Any]] = None,
    ) -> T:
        """
        Run `operation`, retrying on version conflicts.

        Raises
        ------
        VersionConflictError
            When every attempt conflicted.
        Exception
            Any non-conflict error, immediately.
        """
        log_context = context or {}
        attempt = 1

        while True:
            try:
                return await operation()
            except self._config.retriable_exceptions as exc:
                will_retry = attempt < self._config.max_attempts
                backoff_ms = self._compute_backoff_ms(attempt) if will_retry else 0

                logger.debug(
                    "Version conflict",
                    extra={
                        "operation_name": operation_name,
                        "attempt": attempt,
                        "max_attempts": self._config.max_attempts,
                        "will_retry": will_retry,
                        "backoff_ms": backoff_ms,
                        **log_context,
                    },
                )

                if not will_retry:
                    logger.warning(
                        "Giving up after repeated version conflicts",
                        extra={
                            "operation_name": operation_name,
                            "attempts": attempt,
                            "error": str(exc),
                            **log_context,
                        },
                    )
                    raise

                await asyncio.sleep(backoff_ms / 1000.0)
                attempt += 1
