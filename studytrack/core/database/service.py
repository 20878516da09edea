"""
Database Service - async engine and session lifecycle.

Purpose
-------
Own the single AsyncEngine and session factory used by the SQL-backed
ProgressStore.

Responsibilities
----------------
- Build the engine from Config (or an explicit URL for tests/tools)
- Provide `get_session()` (no implicit commit) and `get_transaction()`
  (commit on success, rollback on any exception)
- Create the schema for development/test databases
- Lightweight `SELECT 1` health check

Non-Responsibilities
--------------------
- Retrying version conflicts (ConflictRetryPolicy)
- Mapping records to rows (SqlProgressStore)
- Migrations

Architecture Notes
------------------
- Classmethod singleton; initialization is idempotent behind an asyncio lock.
- In-memory SQLite URLs get a StaticPool so every session shares the same
  connection (and therefore the same database).
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from studytrack.core.config.config import Config
from studytrack.core.database.base import Base
from studytrack.core.logging.logger import get_logger

logger = get_logger(__name__)


class DatabaseInitializationError(RuntimeError):
    """Raised when database engine initialization fails."""


class DatabaseNotInitializedError(RuntimeError):
    """Raised when a session is requested before initialize()."""


def _url_scheme(url: str) -> str:
    return url.split(":", 1)[0] if ":" in url else "unknown"


class DatabaseService:
    """
    Centralized async engine and session management.

    Usage
    -----
    >>> await DatabaseService.initialize()
    >>> async with DatabaseService.get_transaction() as session:
    ...     session.add(row)
    """

    _engine: Optional[AsyncEngine] = None
    _session_factory: Optional[async_sessionmaker[AsyncSession]] = None
    _url: Optional[str] = None
    _init_lock: asyncio.Lock = asyncio.Lock()

    # ========================================================================
    # Lifecycle
    # ========================================================================

    @classmethod
    def _engine_kwargs(cls, url: str) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {"echo": Config.DATABASE_ECHO}

        if url.startswith("sqlite"):
            if ":memory:" in url or url.endswith("://"):
                kwargs["poolclass"] = StaticPool
                kwargs["connect_args"] = {"check_same_thread": False}
            return kwargs

        kwargs.update(
            {
                "pool_size": Config.DATABASE_POOL_SIZE,
                "max_overflow": Config.DATABASE_MAX_OVERFLOW,
                "pool_recycle": Config.DATABASE_POOL_RECYCLE,
                "pool_timeout": Config.DATABASE_POOL_TIMEOUT,
                "pool_pre_ping": True,
            }
        )
        return kwargs

    @classmethod
    async def initialize(cls, url: Optional[str] = None) -> None:
        """
        Create the engine and session factory. Safe to call repeatedly.

        Raises
        ------
        DatabaseInitializationError
            If no URL is configured or the engine cannot be built.
        """
        async with cls._init_lock:
            if cls._engine is not None:
                logger.debug("DatabaseService already initialized; skipping")
                return

            database_url = url or Config.DATABASE_URL
            if not database_url:
                raise DatabaseInitializationError(
                    "DATABASE_URL must be configured as a non-empty string"
                )

            try:
                cls._engine = create_async_engine(
                    database_url, **cls._engine_kwargs(database_url)
                )
            except Exception as exc:
                logger.error(
                    "DatabaseService initialization failed",
                    extra={"error": str(exc), "error_type": type(exc).__name__},
                    exc_info=True,
                )
                raise DatabaseInitializationError(
                    f"Database initialization failed: {exc}"
                ) from exc

            cls._session_factory = async_sessionmaker(
                bind=cls._engine,
                class_=AsyncSession,
                expire_on_commit=False,
            )
            cls._url = database_url

            logger.info(
                "DatabaseService initialized",
                extra={"url_scheme": _url_scheme(database_url)},
            )

    @classmethod
    async def shutdown(cls) -> None:
        """Dispose the engine. No-op when not initialized."""
        async with cls._init_lock:
            if cls._engine is None:
                return

            try:
                await cls._engine.dispose()
                logger.info("DatabaseService shutdown complete")
            finally:
                cls._engine = None
                cls._session_factory = None
                cls._url = None

    @classmethod
    def is_initialized(cls) -> bool:
        return cls._engine is not None

    @classmethod
    async def create_schema(cls) -> None:
        """Create all tables registered on Base.metadata (dev/test only)."""
        engine = cls._require_engine()

        # Registers every model on Base.metadata.
        import studytrack.database.models  # noqa: F401

        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info(
            "Database schema created",
            extra={"tables": sorted(Base.metadata.tables.keys())},
        )

    @classmethod
    async def health_check(cls) -> bool:
        """Return True when `SELECT 1` succeeds. Never raises."""
        if cls._engine is None:
            logger.warning("Health check called on uninitialized DatabaseService")
            return False

        start = time.perf_counter()
        try:
            async with cls._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except (OperationalError, DBAPIError, OSError) as exc:
            logger.warning(
                "Database health check failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            return False
        finally:
            logger.debug(
                "Database health check completed",
                extra={"duration_ms": (time.perf_counter() - start) * 1000.0},
            )

    # ========================================================================
    # Sessions
    # ========================================================================

    @classmethod
    def _require_engine(cls) -> AsyncEngine:
        if cls._engine is None:
            raise DatabaseNotInitializedError("DatabaseService is not initialized")
        return cls._engine

    @classmethod
    @asynccontextmanager
    async def get_session(cls) -> AsyncGenerator[AsyncSession, None]:
        """Session without automatic commit; for reads."""
        cls._require_engine()
        assert cls._session_factory is not None

        async with cls._session_factory() as session:
            yield session

    @classmethod
    @asynccontextmanager
    async def get_transaction(cls) -> AsyncGenerator[AsyncSession, None]:
        """
        Session inside an atomic transaction.

        Commits on clean exit, rolls back and re-raises on any exception.
        """
        cls._require_engine()
        assert cls._session_factory is not None

        start = time.perf_counter()
        async with cls._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception as exc:
                await session.rollback()
                logger.debug(
                    "Database transaction rolled back",
                    extra={
                        "error_type": type(exc).__name__,
                        "duration_ms": (time.perf_counter() - start) * 1000.0,
                    },
                )
                raise
