"""
Pytest Configuration and Fixtures for the StudyTrack Engine
===========================================================

Purpose
-------
Shared fixtures for the StudyTrack test suite: a controllable clock, the
in-memory ProgressStore, a fast conflict retry policy, and fully wired
service container / engine instances.

Architecture Notes
------------------
- Unit tests run against `InMemoryProgressStore` (fast, failure injection)
- Integration tests run the SQL store on sqlite+aiosqlite (in-memory)
- ConfigManager is reset around every test so overrides never leak
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

import pytest
import pytest_asyncio

from studytrack.core.background import BackgroundDispatcher
from studytrack.core.config.manager import ConfigManager
from studytrack.core.logging.logger import clear_log_context, get_logger, shutdown_logging
from studytrack.core.services.container import ServiceContainer
from studytrack.core.store.memory import InMemoryProgressStore
from studytrack.core.store.retry_policy import ConflictRetryConfig, ConflictRetryPolicy
from studytrack.modules.engine.engine import EngagementEngine

UNIT_IDS = ["unit-0", "unit-1", "unit-2", "unit-3"]

# 10:00 in the study zone (UTC-5), study day 2024-03-10
START_INSTANT = datetime(2024, 3, 10, 15, 0, tzinfo=timezone.utc)


# ============================================================================
# PYTEST CONFIGURATION
# ============================================================================


def pytest_configure(config):
    """Configure pytest environment."""
    os.environ.setdefault("STUDYTRACK_ENVIRONMENT", "testing")
    os.environ.setdefault("STUDYTRACK_LOG_LEVEL", "DEBUG")


# ============================================================================
# CLOCK
# ============================================================================


class FixedClock:
    """
    Manually advanced clock, injected wherever services take `clock=`.

    Usage:
        clock.advance(days=1)
        clock.set(datetime(2024, 3, 11, 4, 59, tzinfo=timezone.utc))
    """

    def __init__(self, start: datetime = START_INSTANT) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **delta) -> datetime:
        self.current = self.current + timedelta(**delta)
        return self.current

    def set(self, instant: datetime) -> datetime:
        self.current = instant
        return self.current


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


# ============================================================================
# CONFIGURATION
# ============================================================================


@pytest.fixture(autouse=True)
def reset_config_manager():
    """Fresh YAML defaults and no overrides for every test."""
    ConfigManager.reset()
    ConfigManager.initialize()
    yield ConfigManager
    ConfigManager.reset()


@pytest.fixture(autouse=True)
def reset_log_context():
    clear_log_context()
    yield
    clear_log_context()


@pytest.fixture
def logging_pipeline():
    """Lets a test install the queue pipeline; root logger restored afterwards."""
    root = logging.getLogger()
    level = root.level
    yield
    shutdown_logging()
    root.setLevel(level)



# ============================================================================
# STORE & POLICIES
# ============================================================================


@pytest.fixture
def store() -> InMemoryProgressStore:
    return InMemoryProgressStore()


@pytest.fixture
def racing_store() -> InMemoryProgressStore:
    """Store that yields to the loop on every call so writers interleave."""
    return InMemoryProgressStore(yield_between_steps=True)


@pytest.fixture
def retry_policy() -> ConflictRetryPolicy:
    return ConflictRetryPolicy(
        ConflictRetryConfig(
            max_attempts=10,
            initial_backoff_ms=0,
            max_backoff_ms=0,
            jitter_ms=0,
        )
    )


@pytest.fixture
def dispatcher() -> BackgroundDispatcher:
    return BackgroundDispatcher()


@pytest.fixture
def test_logger():
    return get_logger("studytrack.tests")


# ============================================================================
# SERVICES
# ============================================================================


@pytest.fixture
def container(store, clock, retry_policy, dispatcher) -> ServiceContainer:
    services = ServiceContainer(
        store,
        config_manager=ConfigManager,
        clock=clock,
        retry_policy=retry_policy,
        dispatcher=dispatcher,
    )
    services.initialize()
    return services


@pytest_asyncio.fixture
async def engine(container) -> AsyncGenerator[EngagementEngine, None]:
    """Engine over the in-memory container; background writes drained on teardown."""
    engagement = EngagementEngine(container, UNIT_IDS)
    yield engagement
    await engagement.shutdown()
