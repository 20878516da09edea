"""
Service Container
=================

Purpose
-------
Builds every StudyTrack service around one ProgressStore, one tunables
source and one clock, and hands them out as shared instances.

Responsibilities
----------------
- Construct services in dependency order
- Share the conflict retry policy and background dispatcher
- Drain outstanding background writes on shutdown

Non-Responsibilities
--------------------
- Store lifecycle (the caller owns the store and closes it)
- Business rules
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any, Dict, Optional, Type, TypeVar

from studytrack.core.background import BackgroundDispatcher
from studytrack.core.config.manager import ConfigManager
from studytrack.core.logging.logger import get_logger
from studytrack.core.store.retry_policy import ConflictRetryPolicy
from studytrack.modules.clock.day_boundary import utc_now
from studytrack.modules.gamification.ledger import GamificationLedger
from studytrack.modules.progress.service import ProgressService
from studytrack.modules.quiz.result_service import QuizResultService
from studytrack.modules.quiz.video_state_service import VideoStateService
from studytrack.modules.sessions.tracker import SessionTracker
from studytrack.modules.shared.base_service import Clock
from studytrack.modules.telemetry.event_recorder import EventRecorder
from studytrack.modules.telemetry.video_run_service import VideoRunService

if TYPE_CHECKING:
    from logging import Logger

    from studytrack.core.store.base import ProgressStore

logger = get_logger(__name__)

S = TypeVar("S")


class ServiceContainer:
    """
    Usage:
        container = ServiceContainer(store)
        container.initialize()
        await container.gamification.login_sequence("p-1")
        await container.shutdown()
    """

    def __init__(
        self,
        store: ProgressStore,
        config_manager: Any = ConfigManager,
        logger: Optional[Logger] = None,
        clock: Clock = utc_now,
        retry_policy: Optional[ConflictRetryPolicy] = None,
        dispatcher: Optional[BackgroundDispatcher] = None,
    ) -> None:
        self.store = store
        self._config_manager = config_manager
        self._logger = logger
        self._clock = clock
        self.retry_policy = retry_policy or ConflictRetryPolicy.from_config()
        self.dispatcher = dispatcher or BackgroundDispatcher()

        self._services: Dict[str, Any] = {}
        self._service_init_times: Dict[str, float] = {}
        self._initialized = False

    # ========================================================================
    # Lifecycle
    # ========================================================================

    def _create(self, name: str, service_cls: Type[S], *deps: Any) -> S:
        start = time.perf_counter()
        service_logger = self._logger or get_logger(service_cls.__module__)
        service = service_cls(*deps, self._config_manager, service_logger, self._clock)
        self._service_init_times[name] = time.perf_counter() - start
        self._services[name] = service
        return service

    def initialize(self) -> None:
        if self._initialized:
            logger.warning("ServiceContainer already initialized")
            return

        self._create("progress", ProgressService, self.store, self.retry_policy)
        self._create("gamification", GamificationLedger, self.store, self.retry_policy)
        self._create("sessions", SessionTracker, self.store, self.dispatcher)
        self._create("events", EventRecorder, self.store, self.dispatcher)
        self._create("video_runs", VideoRunService, self.store)
        self._create("quiz_results", QuizResultService, self.store)
        self._create("video_states", VideoStateService, self.store)

        self._initialized = True
        logger.info(
            "Service container initialized",
            extra={"services": sorted(self._services), "store": type(self.store).__name__},
        )

    async def shutdown(self, timeout: Optional[float] = 5.0) -> None:
        """Wait for outstanding fire-and-forget writes."""
        await self.dispatcher.drain(timeout=timeout)
        logger.info("Service container shut down", extra={"background_failures": self.dispatcher.failures})

    def _get(self, name: str) -> Any:
        if not self._initialized:
            raise RuntimeError("ServiceContainer not initialized; call initialize() first")
        return self._services[name]

    # ========================================================================
    # Accessors
    # ========================================================================

    @property
    def progress(self) -> ProgressService:
        return self._get("progress")

    @property
    def gamification(self) -> GamificationLedger:
        return self._get("gamification")

    @property
    def sessions(self) -> SessionTracker:
        return self._get("sessions")

    @property
    def events(self) -> EventRecorder:
        return self._get("events")

    @property
    def video_runs(self) -> VideoRunService:
        return self._get("video_runs")

    @property
    def quiz_results(self) -> QuizResultService:
        return self._get("quiz_results")

    @property
    def video_states(self) -> VideoStateService:
        return self._get("video_states")

    @property
    def config_manager(self) -> Any:
        return self._config_manager

    def get_init_times(self) -> Dict[str, float]:
        return dict(self._service_init_times)
