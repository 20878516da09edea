"""
Static configuration management for StudyTrack.

Purpose
-------
Provides centralized static configuration loaded from environment variables
with sensible defaults, type validation, and bounds checking. This module
handles non-dynamic configuration that is set at process startup.

Responsibilities
----------------
- Load configuration from environment variables with .env support
- Provide type-safe access to all static configuration values
- Validate critical settings on startup
- Track which values came from the environment vs defaults

Non-Responsibilities
--------------------
- Engine tunables (handled by ConfigManager)
- Fixed study policy (see studytrack.core.constants)

Environment Variables
---------------------
All variables are read with the ``STUDYTRACK_`` prefix, e.g.
``STUDYTRACK_DATABASE_URL`` or ``STUDYTRACK_LOG_LEVEL``.
"""

import logging
import os
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

ENV_PREFIX = "STUDYTRACK_"


class Environment(Enum):
    """Deployment environment types."""

    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"

    @classmethod
    def from_string(cls, value: str) -> "Environment":
        """
        Parse environment string safely with fallback to development.

        Example
        -------
        >>> Environment.from_string("production") == Environment.PRODUCTION
        True
        """
        try:
            return cls(value.lower())
        except ValueError:
            # Structured logger is not initialized during bootstrap
            logging.warning(
                f"Unknown environment '{value}', defaulting to development"
            )
            return cls.DEVELOPMENT


class _ConfigLoadMetrics:
    """Tracks which configuration values came from env vs defaults."""

    def __init__(self):
        self.env_vars_loaded: Dict[str, bool] = {}
        self.validation_errors: Dict[str, str] = {}
        self.defaults_used: Dict[str, Any] = {}
        self.last_reload: Optional[str] = None

    def record_env_load(self, key: str, from_env: bool, default: Any):
        self.env_vars_loaded[key] = from_env
        if not from_env:
            self.defaults_used[key] = default

    def record_validation_error(self, key: str, error: str):
        self.validation_errors[key] = error

    def get_summary(self) -> Dict[str, Any]:
        return {
            "total_configs": len(self.env_vars_loaded),
            "from_environment": sum(1 for v in self.env_vars_loaded.values() if v),
            "from_defaults": sum(1 for v in self.env_vars_loaded.values() if not v),
            "validation_errors": len(self.validation_errors),
            "defaults_used": list(self.defaults_used.keys()),
            "last_reload": self.last_reload,
        }


class Config:
    """
    Centralized static configuration for the StudyTrack engine.

    Usage
    -----
    >>> db_url = Config.DATABASE_URL
    >>> if Config.is_production():
    ...     logger.info("Running in production mode")
    """

    _metrics: _ConfigLoadMetrics = _ConfigLoadMetrics()
    _validated: bool = False

    # =========================================================================
    # Environment
    # =========================================================================

    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    LOG_JSON: Optional[bool] = None
    LOG_COLORS: bool = True
    LOG_TO_FILE: bool = False

    PROJECT_ROOT = Path(__file__).resolve().parents[3]
    LOGS_DIR: Path = PROJECT_ROOT / "logs"

    # =========================================================================
    # Database
    # =========================================================================

    DATABASE_URL: str = ""
    DATABASE_ECHO: bool = False
    DATABASE_POOL_SIZE: int = 5
    DATABASE_MAX_OVERFLOW: int = 10
    DATABASE_POOL_RECYCLE: int = 1800
    DATABASE_POOL_TIMEOUT: int = 30

    # =========================================================================
    # Store retry (optimistic version conflicts)
    # =========================================================================

    STORE_RETRY_MAX_ATTEMPTS: int = 5
    STORE_RETRY_INITIAL_BACKOFF_MS: int = 10
    STORE_RETRY_MAX_BACKOFF_MS: int = 250
    STORE_RETRY_JITTER_MS: int = 10

    # =========================================================================
    # Helper Methods
    # =========================================================================

    @classmethod
    def _raw(cls, key: str) -> Optional[str]:
        return os.getenv(f"{ENV_PREFIX}{key}")

    @classmethod
    def _safe_int(
        cls,
        key: str,
        default: int,
        min_val: Optional[int] = None,
        max_val: Optional[int] = None,
    ) -> int:
        """
        Safely parse integer from environment with bounds validation.

        Out-of-range or malformed values log a warning and fall back to the
        default.
        """
        raw_value = cls._raw(key)
        if raw_value is None:
            cls._metrics.record_env_load(key, False, default)
            return default

        try:
            value = int(raw_value)
        except ValueError:
            error = f"{key}='{raw_value}' is not a valid integer, using default {default}"
            logging.warning(error)
            cls._metrics.record_validation_error(key, error)
            return default

        if min_val is not None and value < min_val:
            error = f"{key}={value} is below minimum {min_val}, using default {default}"
            logging.warning(error)
            cls._metrics.record_validation_error(key, error)
            return default

        if max_val is not None and value > max_val:
            error = f"{key}={value} exceeds maximum {max_val}, using default {default}"
            logging.warning(error)
            cls._metrics.record_validation_error(key, error)
            return default

        cls._metrics.record_env_load(key, True, default)
        return value

    @classmethod
    def _safe_bool(cls, key: str, default: Optional[bool]) -> Optional[bool]:
        """
        Safely parse boolean from environment.

        Recognizes: true/false, yes/no, 1/0, on/off (case-insensitive).
        """
        raw_value = cls._raw(key)
        if raw_value is None:
            cls._metrics.record_env_load(key, False, default)
            return default

        normalized = raw_value.lower().strip()
        if normalized in {"true", "yes", "1", "on"}:
            value = True
        elif normalized in {"false", "no", "0", "off"}:
            value = False
        else:
            error = f"{key}='{raw_value}' is not a valid boolean, using default {default}"
            logging.warning(error)
            cls._metrics.record_validation_error(key, error)
            return default

        cls._metrics.record_env_load(key, True, default)
        return value

    @classmethod
    def _safe_str(cls, key: str, default: str) -> str:
        raw_value = cls._raw(key)
        cls._metrics.record_env_load(key, raw_value is not None, default)
        return raw_value if raw_value is not None else default

    # =========================================================================
    # Configuration Loading
    # =========================================================================

    @classmethod
    def load(cls) -> None:
        """Load all configuration from environment variables with validation."""
        cls.ENVIRONMENT = Environment.from_string(
            cls._safe_str("ENVIRONMENT", "development")
        ).value
        cls.LOG_LEVEL = cls._safe_str("LOG_LEVEL", "INFO").upper()
        cls.LOG_JSON = cls._safe_bool("LOG_JSON", None)
        cls.LOG_COLORS = bool(cls._safe_bool("LOG_COLORS", True))
        cls.LOG_TO_FILE = bool(cls._safe_bool("LOG_TO_FILE", False))

        logs_dir = cls._raw("LOGS_DIR")
        if logs_dir:
            cls.LOGS_DIR = Path(logs_dir)

        cls.DATABASE_URL = cls._safe_str("DATABASE_URL", "")
        cls.DATABASE_ECHO = bool(cls._safe_bool("DATABASE_ECHO", False))
        cls.DATABASE_POOL_SIZE = cls._safe_int(
            "DATABASE_POOL_SIZE", 5, min_val=1, max_val=200
        )
        cls.DATABASE_MAX_OVERFLOW = cls._safe_int(
            "DATABASE_MAX_OVERFLOW", 10, min_val=0, max_val=200
        )
        cls.DATABASE_POOL_RECYCLE = cls._safe_int(
            "DATABASE_POOL_RECYCLE", 1800, min_val=60
        )
        cls.DATABASE_POOL_TIMEOUT = cls._safe_int(
            "DATABASE_POOL_TIMEOUT", 30, min_val=1, max_val=600
        )

        cls.STORE_RETRY_MAX_ATTEMPTS = cls._safe_int(
            "STORE_RETRY_MAX_ATTEMPTS", 5, min_val=1, max_val=50
        )
        cls.STORE_RETRY_INITIAL_BACKOFF_MS = cls._safe_int(
            "STORE_RETRY_INITIAL_BACKOFF_MS", 10, min_val=0, max_val=10_000
        )
        cls.STORE_RETRY_MAX_BACKOFF_MS = cls._safe_int(
            "STORE_RETRY_MAX_BACKOFF_MS", 250, min_val=0, max_val=60_000
        )
        cls.STORE_RETRY_JITTER_MS = cls._safe_int(
            "STORE_RETRY_JITTER_MS", 10, min_val=0, max_val=10_000
        )

        cls._metrics.last_reload = datetime.now(timezone.utc).isoformat()

    @classmethod
    def validate(cls) -> None:
        """
        Load and validate configuration once per process.

        Raises
        ------
        ValueError:
            In production, when DATABASE_URL is missing.
        """
        if cls._validated:
            return

        logger = logging.getLogger(__name__)
        cls.load()

        valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if cls.LOG_LEVEL not in valid_log_levels:
            logger.warning(f"Invalid LOG_LEVEL '{cls.LOG_LEVEL}', using INFO")
            cls.LOG_LEVEL = "INFO"

        if cls.is_production() and not cls.DATABASE_URL:
            raise ValueError(f"{ENV_PREFIX}DATABASE_URL is required in production")

        cls._validated = True

        summary = cls._metrics.get_summary()
        logger.debug(f"Configuration loaded: {summary}")
        if cls._metrics.validation_errors:
            logger.warning(
                f"Configuration warnings: {cls._metrics.validation_errors}"
            )

    # =========================================================================
    # Environment Checks
    # =========================================================================

    @classmethod
    def is_production(cls) -> bool:
        return cls.ENVIRONMENT == Environment.PRODUCTION.value

    @classmethod
    def get_config_summary(cls) -> Dict[str, Any]:
        """Non-sensitive configuration summary for debugging."""
        return {
            "environment": cls.ENVIRONMENT,
            "log_level": cls.LOG_LEVEL,
            "log_to_file": cls.LOG_TO_FILE,
            "database_url_set": bool(cls.DATABASE_URL),
            "database_pool_size": cls.DATABASE_POOL_SIZE,
            "store_retry_max_attempts": cls.STORE_RETRY_MAX_ATTEMPTS,
        }


Config.load()
