"""
StudyTrack Logging Subsystem

Purpose
-------
Single logging stack for the engagement engine:

- Structured JSON records for aggregation in production.
- Participant/session context attached to every record via ContextVars.
- Non-blocking emission through a QueueHandler + QueueListener pair so
  store writes on the event loop never wait on console or file I/O.
- Bounded queue that drops records (and counts them) under overload.

Responsibilities
----------------
- Configure the root logger once per process (`setup_logging`).
- Enrich records with participant_id, session_id, operation, component
  and correlation_id.
- Expose `get_logger`, `LogContext`, `set_log_context`,
  `clear_log_context` and `get_logging_health`.

Design Notes
------------
- Setup is explicit: importing this module does not touch the root logger,
  so library consumers and tests keep control of their own handlers.
- Console output is JSON in production, colored text on a dev TTY.
- The daily rotating JSON file sink is opt-in (`STUDYTRACK_LOG_TO_FILE`).
"""

from __future__ import annotations

import json
import logging
import queue
import sys
import uuid
from contextvars import ContextVar, Token
from dataclasses import dataclass
from datetime import datetime, timezone
from logging import Logger
from logging.handlers import QueueHandler, QueueListener, TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, Optional

from studytrack.core.config.config import Config

_MISSING = "N/A"

_log_context: ContextVar[Dict[str, Any]] = ContextVar("studytrack_log_context", default={})


# ============================================================================
# Settings
# ============================================================================


@dataclass(frozen=True)
class LoggerConfig:
    """Formatting and sink settings derived from `Config`."""

    CONSOLE_FORMAT: str = "%(asctime)s | %(levelname)-8s | %(name)-36s | %(message)s"
    DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"

    DAILY_BASENAME: str = "studytrack.json.log"
    DAILY_BACKUP_COUNT: int = 2

    QUEUE_MAX_SIZE: int = 10_000

    @property
    def environment(self) -> str:
        return str(Config.ENVIRONMENT).lower()

    @property
    def log_level(self) -> int:
        level = logging.getLevelName(str(Config.LOG_LEVEL).upper())
        return level if isinstance(level, int) else logging.INFO

    @property
    def logs_dir(self) -> Path:
        return Path(Config.LOGS_DIR).resolve()

    @property
    def use_json(self) -> bool:
        if Config.LOG_JSON is None:
            return Config.is_production()
        return bool(Config.LOG_JSON)

    @property
    def use_colors(self) -> bool:
        if self.use_json:
            return False
        return Config.LOG_COLORS and sys.stdout.isatty()

    @property
    def to_file(self) -> bool:
        return bool(Config.LOG_TO_FILE)


LOGGER_CONFIG = LoggerConfig()


# ============================================================================
# Health
# ============================================================================


@dataclass
class LoggingMetrics:
    records_enqueued: int = 0
    records_dropped: int = 0


@dataclass(frozen=True)
class LoggingHealth:
    initialized: bool
    queue_size: int
    queue_max_size: int
    records_enqueued: int
    records_dropped: int


_metrics = LoggingMetrics()
_log_queue: Optional["queue.Queue[logging.LogRecord]"] = None
_listener: Optional[QueueListener] = None
_initialized = False


# ============================================================================
# Filters & Formatters
# ============================================================================


class ContextFilter(logging.Filter):
    """Copy the active LogContext onto each record."""

    FIELDS = ("participant_id", "session_id", "operation")

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        context = _log_context.get()

        for field in self.FIELDS:
            if not hasattr(record, field):
                setattr(record, field, context.get(field, _MISSING))

        record.correlation_id = context.get("correlation_id", _MISSING)
        if not hasattr(record, "component"):
            record.component = context.get("component") or record.name.split(".")[-1]
        return True


class ColoredFormatter(logging.Formatter):
    LEVEL_COLORS: Dict[str, str] = {
        "DEBUG": "\033[90m",
        "INFO": "\033[36m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[1;31m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        levelname = record.levelname
        color = self.LEVEL_COLORS.get(levelname)
        if color:
            record.levelname = f"{color}{levelname}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = levelname


class JSONFormatter(logging.Formatter):
    """One JSON object per line; caller `extra=` lands under "extra"."""

    _RESERVED = frozenset(
        logging.LogRecord("", 0, "", 0, "", None, None).__dict__.keys()
    ) | {"message", "asctime", "taskName"}

    CONTEXT_FIELDS = (
        "participant_id",
        "session_id",
        "operation",
        "component",
        "correlation_id",
    )

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
            "line": record.lineno,
        }

        for field in self.CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value not in (None, _MISSING):
                payload[field] = value

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in self._RESERVED
            and key not in self.CONTEXT_FIELDS
            and not key.startswith("_")
        }
        if extra:
            payload["extra"] = extra

        return json.dumps(payload, ensure_ascii=False, default=str)


# ============================================================================
# Queue plumbing
# ============================================================================


class StudyQueueHandler(QueueHandler):
    def enqueue(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        _metrics.records_enqueued += 1
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            _metrics.records_dropped += 1


def _console_handler() -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    if LOGGER_CONFIG.use_json:
        handler.setFormatter(JSONFormatter())
    else:
        formatter_cls = ColoredFormatter if LOGGER_CONFIG.use_colors else logging.Formatter
        handler.setFormatter(
            formatter_cls(fmt=LOGGER_CONFIG.CONSOLE_FORMAT, datefmt=LOGGER_CONFIG.DATE_FORMAT)
        )
    handler.setLevel(LOGGER_CONFIG.log_level)
    return handler


def _file_handler() -> logging.Handler:
    LOGGER_CONFIG.logs_dir.mkdir(parents=True, exist_ok=True)
    handler = TimedRotatingFileHandler(
        filename=str(LOGGER_CONFIG.logs_dir / LOGGER_CONFIG.DAILY_BASENAME),
        when="midnight",
        backupCount=LOGGER_CONFIG.DAILY_BACKUP_COUNT,
        encoding="utf-8",
        utc=True,
    )
    handler.setFormatter(JSONFormatter())
    handler.setLevel(LOGGER_CONFIG.log_level)
    return handler


# ============================================================================
# Lifecycle
# ============================================================================


def setup_logging() -> None:
    """Install the queue-backed handler stack on the root logger. Idempotent."""
    global _listener, _log_queue, _metrics, _initialized

    if _initialized:
        return

    _metrics = LoggingMetrics()
    sinks: List[logging.Handler] = [_console_handler()]
    if LOGGER_CONFIG.to_file:
        sinks.append(_file_handler())

    _log_queue = queue.Queue(LOGGER_CONFIG.QUEUE_MAX_SIZE)
    _listener = QueueListener(_log_queue, *sinks, respect_handler_level=True)
    _listener.start()

    queue_handler = StudyQueueHandler(_log_queue)
    queue_handler.addFilter(ContextFilter())

    root = logging.getLogger()
    root.setLevel(LOGGER_CONFIG.log_level)
    root.addHandler(queue_handler)

    for noisy in ("asyncio", "sqlalchemy.engine", "aiosqlite"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    _initialized = True
    logging.getLogger(__name__).info(
        "Logging initialized",
        extra={
            "environment": LOGGER_CONFIG.environment,
            "log_level": logging.getLevelName(LOGGER_CONFIG.log_level),
            "json": LOGGER_CONFIG.use_json,
            "file_sink": LOGGER_CONFIG.to_file,
        },
    )


def shutdown_logging() -> None:
    """Flush the queue and detach handlers installed by `setup_logging`."""
    global _listener, _log_queue, _initialized

    if not _initialized:
        return

    if _listener is not None:
        _listener.stop()
        for handler in _listener.handlers:
            handler.close()
        _listener = None

    root = logging.getLogger()
    for handler in list(root.handlers):
        if isinstance(handler, StudyQueueHandler):
            root.removeHandler(handler)
            handler.close()

    _log_queue = None
    _initialized = False


def get_logging_health() -> LoggingHealth:
    queue_size = _log_queue.qsize() if _log_queue is not None else 0
    queue_max = _log_queue.maxsize if _log_queue is not None else 0
    return LoggingHealth(
        initialized=_initialized,
        queue_size=queue_size,
        queue_max_size=queue_max,
        records_enqueued=_metrics.records_enqueued,
        records_dropped=_metrics.records_dropped,
    )


# ============================================================================
# Public API
# ============================================================================


def get_logger(name: str) -> Logger:
    return logging.getLogger(name)


def _new_correlation_id() -> str:
    return uuid.uuid4().hex[:8]


class LogContext:
    """
    Scoped log context, usable as a sync or async context manager.

    >>> async with LogContext(participant_id="p1", operation="start_session"):
    ...     logger.info("Session opened")
    """

    def __init__(
        self,
        participant_id: Optional[str] = None,
        session_id: Optional[str] = None,
        operation: Optional[str] = None,
        component: Optional[str] = None,
        correlation_id: Optional[str] = None,
        **extra: Any,
    ) -> None:
        context = dict(_log_context.get())
        updates = {
            "participant_id": participant_id,
            "session_id": session_id,
            "operation": operation,
            "component": component,
        }
        context.update({k: v for k, v in updates.items() if v is not None})
        context["correlation_id"] = (
            correlation_id or context.get("correlation_id") or _new_correlation_id()
        )
        context.update(extra)
        self.context = context
        self._token: Optional[Token[Dict[str, Any]]] = None

    def __enter__(self) -> "LogContext":
        self._token = _log_context.set(self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _log_context.reset(self._token)
            self._token = None

    async def __aenter__(self) -> "LogContext":
        return self.__enter__()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)


def set_log_context(**fields: Any) -> None:
    """Merge non-None fields into the current context without scoping."""
    current = dict(_log_context.get())
    current.update({k: v for k, v in fields.items() if v is not None})
    _log_context.set(current)


def get_log_context() -> Dict[str, Any]:
    return dict(_log_context.get())


def clear_log_context() -> None:
    _log_context.set({})
