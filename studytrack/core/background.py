"""
Background dispatcher for fire-and-forget store writes.

Purpose
-------
Issue writes whose caller must not wait for them (page unload, telemetry
events). Each write runs as a tracked `asyncio.Task`; failures are logged
and never reach the caller.

Delivery is at-most-once: a write in flight when the process (or the page
hosting it) goes away may or may not land. Correctness-critical state
must not depend on these writes.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Coroutine, Optional

from studytrack.core.exceptions import get_error_severity, is_transient_error
from studytrack.core.logging.logger import get_logger

logger = get_logger(__name__)


class BackgroundDispatcher:
    """
    Tracks background tasks so they are not garbage collected mid-flight
    and so shutdown/tests can `drain()` them.
    """

    def __init__(self) -> None:
        self._background_tasks: set[asyncio.Task[Any]] = set()
        self.failures = 0

    async def _run(self, name: str, coro: Awaitable[Any]) -> Any:
        try:
            return await coro
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self.failures += 1
            logger.warning(
                "Background write failed",
                extra={
                    "task": name,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                    "severity": get_error_severity(exc).value,
                    "retryable": is_transient_error(exc),
                },
                exc_info=True,
            )
            return None

    def dispatch(
        self, coro: Coroutine[Any, Any, Any], *, name: str
    ) -> Optional[asyncio.Task[Any]]:
        """
        Schedule `coro` without awaiting it.

        Returns the task, or None when no event loop is running (the write
        is dropped and logged).
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            logger.warning("No running event loop; background write dropped", extra={"task": name})
            return None

        task = loop.create_task(self._run(name, coro), name=f"studytrack-{name}")
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        return task

    @property
    def pending(self) -> int:
        return len(self._background_tasks)

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for outstanding writes; cancel whatever is left after `timeout`."""
        if not self._background_tasks:
            return

        tasks = list(self._background_tasks)
        done, still_running = await asyncio.wait(tasks, timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            logger.warning(
                "Background writes cancelled at drain timeout",
                extra={"cancelled": len(still_running), "completed": len(done)},
            )
