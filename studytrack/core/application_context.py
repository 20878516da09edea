"""
Application Context
===================

Purpose
-------
Brings a StudyTrack process up and down in dependency order: static
config, logging, tunables, database, store, services and finally the
EngagementEngine the UI layer talks to.

Responsibilities
----------------
- Validate static configuration and install the logging pipeline
- Initialize DatabaseService and (optionally) create the schema
- Build the ServiceContainer over a SqlProgressStore
- Shut everything down in reverse order

Non-Responsibilities
--------------------
- Business rules (delegated to the domain services)
- Request handling (the UI layer calls the engine directly)

Initialization Order:
    1. Config.validate()
    2. setup_logging()
    3. ConfigManager.initialize()
    4. DatabaseService.initialize() [+ create_schema()]
    5. ServiceContainer(SqlProgressStore)
    6. EngagementEngine

Shutdown Order (Reverse):
    1. EngagementEngine.shutdown() (drains background writes)
    2. DatabaseService.shutdown()
    3. shutdown_logging()
"""

from __future__ import annotations

import time
from typing import Optional, Sequence

from studytrack.core.config.config import Config
from studytrack.core.config.manager import ConfigManager
from studytrack.core.database.service import DatabaseService
from studytrack.core.logging.logger import (
    get_logger,
    get_logging_health,
    setup_logging,
    shutdown_logging,
)
from studytrack.core.services.container import ServiceContainer
from studytrack.core.store.sql import SqlProgressStore
from studytrack.modules.clock.day_boundary import utc_now
from studytrack.modules.engine.engine import EngagementEngine
from studytrack.modules.shared.base_service import Clock

logger = get_logger(__name__)


class ApplicationContext:
    """
    Usage:
        context = ApplicationContext(["unit-0", "unit-1"])
        engine = await context.initialize()
        ...
        await context.shutdown()
    """

    def __init__(
        self,
        unit_ids: Sequence[str],
        database_url: Optional[str] = None,
        create_schema: bool = False,
        clock: Clock = utc_now,
    ) -> None:
        self._unit_ids = tuple(unit_ids)
        self._database_url = database_url
        self._create_schema = create_schema
        self._clock = clock
        self._services: Optional[ServiceContainer] = None
        self._engine: Optional[EngagementEngine] = None
        self._initialized = False

    async def initialize(self) -> EngagementEngine:
        """
        Raises:
            RuntimeError: if already initialized or any step fails.
        """
        if self._initialized:
            raise RuntimeError("ApplicationContext already initialized")

        start_time = time.perf_counter()
        try:
            Config.validate()
            setup_logging()
            ConfigManager.initialize()

            await DatabaseService.initialize(self._database_url)
            if self._create_schema:
                await DatabaseService.create_schema()

            self._services = ServiceContainer(SqlProgressStore(), clock=self._clock)
            self._services.initialize()
            self._engine = EngagementEngine(self._services, self._unit_ids)
        except Exception as exc:
            logger.critical(
                "Application context initialization failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
                exc_info=True,
            )
            await self._teardown()
            raise RuntimeError("Failed to initialize application context") from exc

        self._initialized = True
        logger.info(
            "Application context initialized",
            extra={
                "config": Config.get_config_summary(),
                "units": len(self._unit_ids),
                "duration_ms": round((time.perf_counter() - start_time) * 1000, 2),
            },
        )
        return self._engine

    async def shutdown(self, timeout: Optional[float] = 5.0) -> None:
        if not self._initialized:
            logger.warning("ApplicationContext not initialized, nothing to shut down")
            return

        logger.info(
            "Application context shutting down",
            extra={"log_records_dropped": get_logging_health().records_dropped},
        )
        await self._teardown(timeout)
        self._initialized = False

    async def _teardown(self, timeout: Optional[float] = 5.0) -> None:
        if self._engine is not None:
            await self._engine.shutdown(timeout=timeout)
        try:
            await DatabaseService.shutdown()
        except Exception as exc:
            logger.error(
                "Error shutting down database",
                extra={"error": str(exc), "error_type": type(exc).__name__},
                exc_info=True,
            )
        self._engine = None
        self._services = None
        shutdown_logging()

    @property
    def engine(self) -> EngagementEngine:
        if self._engine is None:
            raise RuntimeError("ApplicationContext not initialized")
        return self._engine

    @property
    def services(self) -> ServiceContainer:
        if self._services is None:
            raise RuntimeError("ApplicationContext not initialized")
        return self._services

    @property
    def is_initialized(self) -> bool:
        return self._initialized
