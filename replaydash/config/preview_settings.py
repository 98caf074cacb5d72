"""
Preview settings configuration loader.

Loads backend connection and scheduling settings from
config/preview_settings.yml.

Consumers:
  - DashboardAPIClient: base URL and request timeouts
  - QueryTemplate: variable extraction quiescence window
  - PreviewScheduler: preview quiescence window
  - Persistence store: state database URL

Environment overrides (take precedence over the YAML):
  - REPLAYDASH_API_URL
  - REPLAYDASH_API_TIMEOUT_SECONDS
  - REPLAYDASH_STATE_DATABASE_URL

Usage:
    from replaydash.config.preview_settings import get_preview_settings_loader

    loader = get_preview_settings_loader()
    loader.get_preview_quiescence_seconds()  # 0.5
"""

import logging
import os
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

_DEFAULT_API_URL = "http://localhost:8000"
_DEFAULT_TIMEOUT_SECONDS = 30.0
_DEFAULT_CONNECT_TIMEOUT_SECONDS = 10.0
_DEFAULT_VARIABLE_EXTRACTION_QUIESCENCE_MS = 300
_DEFAULT_PREVIEW_QUIESCENCE_MS = 500
_DEFAULT_STATE_DATABASE_URL = "sqlite:///replaydash_state.db"


class PreviewSettingsLoader:
    """
    Thread-safe singleton loader for config/preview_settings.yml.

    Missing file or missing keys fall back to built-in defaults so the
    engine always starts.
    """

    _instance: Optional["PreviewSettingsLoader"] = None
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
        self._raw: Dict[str, Any] = {}
        self._load_lock = Lock()

        self._load()
        self._initialized = True

    def _resolve_path(self) -> Path:
        if self._config_path:
            return Path(self._config_path)

        candidates = [
            Path(__file__).parent.parent.parent / "config" / "preview_settings.yml",
            Path(os.getcwd()) / "config" / "preview_settings.yml",
        ]

        for p in candidates:
            resolved = p.resolve()
            if resolved.exists():
                return resolved

        raise FileNotFoundError(
            f"preview_settings.yml not found in: {[str(p) for p in candidates]}"
        )

    def _load(self) -> None:
        with self._load_lock:
            try:
                path = self._resolve_path()
                logger.info("Loading preview settings from %s", path)

                with open(path, "r") as f:
                    self._raw = yaml.safe_load(f) or {}

                logger.info(
                    "Loaded preview settings: sections=%s",
                    sorted(self._raw.keys()),
                )
            except FileNotFoundError:
                logger.warning(
                    "preview_settings.yml not found, using fallback defaults"
                )
                self._raw = {}

    def reload(self) -> None:
        """Re-read the YAML from disk."""
        self._load()

    def _section(self, name: str) -> Dict[str, Any]:
        return self._raw.get(name) or {}

    def get_api_base_url(self) -> str:
        env_url = os.getenv("REPLAYDASH_API_URL")
        if env_url:
            return env_url.rstrip("/")
        return str(self._section("api").get("base_url", _DEFAULT_API_URL)).rstrip("/")

    def get_api_timeout_seconds(self) -> float:
        env_timeout = os.getenv("REPLAYDASH_API_TIMEOUT_SECONDS")
        if env_timeout:
            return float(env_timeout)
        return float(self._section("api").get("timeout_seconds", _DEFAULT_TIMEOUT_SECONDS))

    def get_api_connect_timeout_seconds(self) -> float:
        return float(
            self._section("api").get("connect_timeout_seconds", _DEFAULT_CONNECT_TIMEOUT_SECONDS)
        )

    def get_variable_extraction_quiescence_seconds(self) -> float:
        """
        Return how long SQL text must be stable before variables are extracted.

        Returns:
            Seconds (e.g. 0.3)
        """
        ms = self._section("scheduling").get(
            "variable_extraction_quiescence_ms", _DEFAULT_VARIABLE_EXTRACTION_QUIESCENCE_MS
        )
        return float(ms) / 1000.0

    def get_preview_quiescence_seconds(self) -> float:
        """
        Return how long SQL text must be stable before a preview executes.

        Returns:
            Seconds (e.g. 0.5)
        """
        ms = self._section("scheduling").get(
            "preview_quiescence_ms", _DEFAULT_PREVIEW_QUIESCENCE_MS
        )
        return float(ms) / 1000.0

    def get_state_database_url(self) -> str:
        env_url = os.getenv("REPLAYDASH_STATE_DATABASE_URL")
        if env_url:
            return env_url
        return str(self._section("persistence").get("database_url", _DEFAULT_STATE_DATABASE_URL))

    def get_all(self) -> Dict[str, Any]:
        """Return the effective settings."""
        return {
            "api": {
                "base_url": self.get_api_base_url(),
                "timeout_seconds": self.get_api_timeout_seconds(),
                "connect_timeout_seconds": self.get_api_connect_timeout_seconds(),
            },
            "scheduling": {
                "variable_extraction_quiescence_seconds": self.get_variable_extraction_quiescence_seconds(),
                "preview_quiescence_seconds": self.get_preview_quiescence_seconds(),
            },
            "persistence": {
                "database_url": self.get_state_database_url(),
            },
        }


def get_preview_settings_loader(
    config_path: Optional[str] = None,
) -> PreviewSettingsLoader:
    """Return the singleton PreviewSettingsLoader."""
    return PreviewSettingsLoader(config_path)


def reset_preview_settings_loader() -> None:
    """Reset singleton (for tests only)."""
    PreviewSettingsLoader._instance = None
