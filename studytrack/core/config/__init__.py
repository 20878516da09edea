"""
Configuration subsystem for StudyTrack.

- **config.py**: static configuration from environment variables
- **manager.py**: engine tunables from YAML defaults with in-memory overrides

Usage
-----
>>> from studytrack.core.config import Config, ConfigManager
>>> Config.DATABASE_URL
>>> ConfigManager.get("gamification.max_hearts")
"""

from studytrack.core.config.config import Config, Environment
from studytrack.core.config.manager import ConfigManager, ConfigManagerError

__all__ = [
    "Config",
    "ConfigManager",
    "ConfigManagerError",
    "Environment",
]
