"""
Content access settings loader.

Loads tunables from config/content_access.yml. The path can be passed
explicitly or set through CONTENT_ACCESS_CONFIG.

Usage:
    from content_access.config.settings import get_access_settings

    settings = get_access_settings()
    ttl = settings.delegate_cache_ttl_seconds
"""

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "CONTENT_ACCESS_CONFIG"
CONFIG_FILENAME = "content_access.yml"


@dataclass(frozen=True)
class AccessSettings:
    """Resolved settings with defaults for every key."""
    period_timezone: str = "UTC"
    delegate_cache_ttl_seconds: int = 300
    delegate_cache_max_entries: int = 10000
    max_tracked_sessions: int = 50
    recent_activity_limit: int = 10
    statement_timeout_ms: int = 5000

    @classmethod
    def from_mapping(cls, raw: Dict[str, Any]) -> "AccessSettings":
        known = {f.name for f in fields(cls)}
        values = {}
        for key, value in (raw or {}).items():
            if key not in known:
                logger.warning("Ignoring unknown content access setting %s", key)
                continue
            values[key] = value
        settings = cls(**values)
        settings.validate()
        return settings

    def validate(self) -> None:
        for name in (
            "delegate_cache_ttl_seconds",
            "delegate_cache_max_entries",
            "max_tracked_sessions",
            "recent_activity_limit",
            "statement_timeout_ms",
        ):
            value = getattr(self, name)
            if not isinstance(value, int) or value <= 0:
                raise ValueError(f"{name} must be a positive integer, got {value!r}")


class AccessSettingsLoader:
    """
    Thread-safe singleton loader for config/content_access.yml.

    Falls back to built-in defaults when no file is found.
    """

    _instance: Optional["AccessSettingsLoader"] = None
    _lock = Lock()

    def __new__(cls, config_path: Optional[str] = None):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self, config_path: Optional[str] = None):
        if self._initialized:
            return

        self._config_path = config_path
        self._settings = AccessSettings()
        self._load_lock = Lock()

        self._load()
        self._initialized = True

    # ------------------------------------------------------------------
    # Config resolution
    # ------------------------------------------------------------------

    def _resolve_path(self) -> Optional[Path]:
        explicit = self._config_path or os.getenv(CONFIG_ENV_VAR)
        if explicit:
            path = Path(explicit)
            if not path.exists():
                raise FileNotFoundError(f"{path} not found")
            return path

        candidates = [
            # backend/config next to the package
            Path(__file__).parent.parent.parent / "config" / CONFIG_FILENAME,
            Path(os.getcwd()) / "config" / CONFIG_FILENAME,
            Path(os.getcwd()) / "backend" / "config" / CONFIG_FILENAME,
        ]
        for p in candidates:
            resolved = p.resolve()
            if resolved.exists():
                return resolved
        return None

    def _load(self) -> None:
        with self._load_lock:
            path = self._resolve_path()
            if path is None:
                logger.warning("%s not found, using default content access settings", CONFIG_FILENAME)
                self._settings = AccessSettings()
                return

            logger.info("Loading content access config from %s", path)
            with open(path, "r") as f:
                raw = yaml.safe_load(f) or {}
            self._settings = AccessSettings.from_mapping(raw)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def reload(self) -> None:
        """Re-read the YAML from disk."""
        self._load()

    @property
    def settings(self) -> AccessSettings:
        return self._settings


def get_access_settings(config_path: Optional[str] = None) -> AccessSettings:
    """Get settings from the singleton loader."""
    return AccessSettingsLoader(config_path).settings


def reset_access_settings() -> None:
    """Drop the singleton (tests and config reloads)."""
    with AccessSettingsLoader._lock:
        AccessSettingsLoader._instance = None
