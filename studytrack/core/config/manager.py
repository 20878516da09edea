"""
ConfigManager: hierarchical, dot-notation access to engine tunables.

Purpose
-------
- Provide dot-notation access to tunable engine values
  (e.g. ``"gamification.max_hearts"``).
- Back configuration with YAML defaults shipped in ``studytrack/config/``.
- Allow in-process overrides (tests, admin tooling) without touching defaults.

Key Design Decisions
--------------------
- YAML is the single source for defaults; overrides live in memory only.
- Overrides are deep-merged on top of defaults at read time.
- Reads never raise; unknown keys return the supplied default.
- Fixed study policy (scoring table, day boundary) is NOT read from here.
"""

from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Any, Dict, List, MutableMapping, Optional

import yaml

# Plain stdlib logger: this module loads before the logging stack is set up.
logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path(__file__).resolve().parents[2] / "config"


class ConfigManagerError(RuntimeError):
    """Base error type for ConfigManager-related failures."""


class ConfigManager:
    """
    Engine tunables with YAML defaults and in-memory overrides.

    Usage
    -----
    >>> ConfigManager.initialize()
    >>> ConfigManager.get("gamification.max_hearts")
    20
    >>> ConfigManager.set("telemetry.enabled", False)
    """

    _defaults: Dict[str, Any] = {}
    _overrides: Dict[str, Any] = {}
    _initialized: bool = False
    _config_dir: Path = DEFAULT_CONFIG_DIR

    # =========================================================================
    # YAML LOADING & DEFAULTS
    # =========================================================================

    @staticmethod
    def _deep_merge_dict(
        target: MutableMapping[str, Any],
        source: MutableMapping[str, Any],
    ) -> None:
        """Recursively merge `source` into `target` (in-place)."""
        for key, value in source.items():
            if isinstance(value, dict) and isinstance(target.get(key), dict):
                ConfigManager._deep_merge_dict(target[key], value)
            else:
                target[key] = copy.deepcopy(value)

    @classmethod
    def _load_yaml_configs(cls, config_dir: Path) -> None:
        """Load and deep-merge every YAML file under `config_dir`."""
        if not config_dir.exists():
            logger.warning(
                "Config directory not found; using built-in defaults only",
                extra={"config_dir": str(config_dir)},
            )
            return

        yaml_files = sorted(config_dir.rglob("*.yaml")) + sorted(
            config_dir.rglob("*.yml")
        )
        loaded_count = 0

        for yaml_file in yaml_files:
            try:
                with yaml_file.open("r", encoding="utf-8") as handle:
                    data = yaml.safe_load(handle)
            except (OSError, yaml.YAMLError) as exc:
                logger.warning(
                    "Failed to load YAML config",
                    extra={
                        "file": str(yaml_file),
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                    },
                    exc_info=True,
                )
                continue

            if isinstance(data, dict):
                cls._deep_merge_dict(cls._defaults, data)
                loaded_count += 1
            elif data is not None:
                logger.warning(
                    "Ignoring non-dict YAML root object",
                    extra={"file": str(yaml_file), "root_type": type(data).__name__},
                )

        logger.debug(
            "YAML configs loaded",
            extra={
                "yaml_file_count": loaded_count,
                "top_level_keys": sorted(cls._defaults.keys()),
            },
        )

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    @classmethod
    def initialize(cls, config_dir: Optional[Path] = None) -> None:
        """Load YAML defaults. Idempotent unless `config_dir` changes."""
        target_dir = config_dir or cls._config_dir
        if cls._initialized and target_dir == cls._config_dir:
            return

        cls._defaults = {}
        cls._config_dir = target_dir
        cls._load_yaml_configs(target_dir)
        cls._initialized = True

    @classmethod
    def reset(cls) -> None:
        """Drop overrides and reload defaults on next access."""
        cls._overrides = {}
        cls._defaults = {}
        cls._initialized = False
        cls._config_dir = DEFAULT_CONFIG_DIR

    # =========================================================================
    # READS
    # =========================================================================

    @staticmethod
    def _traverse(source: Dict[str, Any], key: str) -> Any:
        value: Any = source
        for part in key.split("."):
            if not isinstance(value, dict) or part not in value:
                return None
            value = value[part]
        return value

    @classmethod
    def get(cls, key: str, default: Any = None) -> Any:
        """
        Retrieve a configuration value by dot-notation path.

        Overrides win over YAML defaults. Missing keys return `default`.

        Examples
        --------
        >>> ConfigManager.get("store.conflict_retry_attempts", 5)
        5
        """
        if not cls._initialized:
            cls.initialize()

        value = cls._traverse(cls._overrides, key)
        if value is None:
            value = cls._traverse(cls._defaults, key)
        return default if value is None else value

    @classmethod
    def get_all_keys(cls) -> List[str]:
        """Top-level keys across defaults and overrides."""
        if not cls._initialized:
            cls.initialize()
        return sorted(set(cls._defaults) | set(cls._overrides))

    # =========================================================================
    # WRITES
    # =========================================================================

    @classmethod
    def set(cls, key: str, value: Any) -> None:
        """Override a single dot-notation key in memory."""
        if not key:
            raise ConfigManagerError("Config key must be a non-empty string")

        parts = key.split(".")
        nested: Dict[str, Any] = {parts[-1]: value}
        for part in reversed(parts[:-1]):
            nested = {part: nested}

        cls._deep_merge_dict(cls._overrides, nested)
        logger.info(
            "Configuration override applied",
            extra={"config_key": key, "config_value": value},
        )
