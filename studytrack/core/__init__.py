"""
Core infrastructure layer for StudyTrack.

Purpose
-------
One import surface for the infrastructure the engine services sit on:

- Configuration (Config, ConfigManager)
- Database subsystem (DatabaseService)
- Logging (structured logging, logger factory)
- Infrastructure exceptions (StudyInfrastructureException hierarchy)

Non-Responsibilities
--------------------
- Business rules (see `studytrack.modules`)
- Side effects beyond re-exports; logging and the database are set up
  explicitly by the host application
"""

from __future__ import annotations

from studytrack.core.config import Config, ConfigManager
from studytrack.core.database import DatabaseService
from studytrack.core.exceptions import (
    ConfigurationError,
    ErrorSeverity,
    StoreUnavailableError,
    StudyInfrastructureException,
    VersionConflictError,
)
from studytrack.core.logging import get_logger, setup_logging

__all__ = [
    # Configuration
    "Config",
    "ConfigManager",
    # Database
    "DatabaseService",
    # Logging
    "setup_logging",
    "get_logger",
    # Infrastructure exceptions
    "StudyInfrastructureException",
    "ConfigurationError",
    "StoreUnavailableError",
    "VersionConflictError",
    "ErrorSeverity",
]
