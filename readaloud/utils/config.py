"""
Configuration loader for the read-aloud article reader.
"""

import copy
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


class Config:
    """Configuration manager for extraction, speech and highlighting."""

    _instance: Optional["Config"] = None
    _config: Dict[str, Any] = {}

    def __new__(cls) -> "Config":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        if not self._config:
            self._load_config()

    def _get_project_root(self) -> Path:
        """Get the project root directory."""
        # Navigate up from readaloud/utils to project root
        current = Path(__file__).resolve()
        return current.parent.parent.parent

    def _get_config_path(self) -> Path:
        override = os.environ.get("READALOUD_CONFIG")
        if override:
            return Path(override)
        return self._get_project_root() / "config" / "settings.yaml"

    def _load_config(self, config_path: Optional[Path] = None) -> None:
        """Load configuration from YAML file, layered over the defaults."""
        config_path = Path(config_path) if config_path else self._get_config_path()
        merged = self._get_defaults()

        if config_path.exists():
            with open(config_path, "r", encoding="utf-8") as f:
                loaded = yaml.safe_load(f) or {}
            if not isinstance(loaded, dict):
                raise ValueError(f"Config file must contain a mapping: {config_path}")
            _deep_merge(merged, loaded)

        self._config = merged

    def reload(self, config_path: Optional[Path] = None) -> None:
        """Re-read the configuration (optionally from an explicit file)."""
        self._load_config(config_path)

    def _get_defaults(self) -> Dict[str, Any]:
        """Return default configuration."""
        return {
            "speech": {
                "engine": "pyttsx3",
                "voice": None,
                "rate": 0.9,
                "pitch": 1.0,
                "volume": 1.0,
                "granularity": "word",
                "policy": "unit",
                "use_boundary_events": True,
                "watchdog_seconds": 0,
            },
            "estimator": {
                "words_per_minute": 150,
                "tick_interval": 0.2,
            },
            "highlight": {
                "top_margin": 100,
                "bottom_margin": 150,
                "console_top_rows": 2,
                "console_bottom_rows": 3,
            },
            "extractor": {
                "timeout": 15,
                "user_agent": (
                    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
                    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
                ),
                "excerpt_length": 200,
            },
        }

    def get(self, *keys: str, default: Any = None) -> Any:
        """
        Get a configuration value using dot notation.

        Example:
            config.get("speech", "rate") -> 0.9
        """
        value = self._config
        for key in keys:
            if isinstance(value, dict):
                value = value.get(key)
            else:
                return default
            if value is None:
                return default
        return value

    @property
    def project_root(self) -> Path:
        """Get the project root directory."""
        return self._get_project_root()

    @property
    def speech_engine(self) -> str:
        """Name of the speech engine adapter to use."""
        override = os.environ.get("READALOUD_ENGINE")
        if override:
            return override.lower()
        return str(self.get("speech", "engine", default="pyttsx3")).lower()

    @property
    def voice(self) -> Optional[str]:
        """Get the preferred voice (None = system default)."""
        return self.get("speech", "voice")

    @property
    def speech_rate(self) -> float:
        """Get the speech rate multiplier."""
        return float(self.get("speech", "rate", default=0.9))

    @property
    def speech_pitch(self) -> float:
        return float(self.get("speech", "pitch", default=1.0))

    @property
    def speech_volume(self) -> float:
        return float(self.get("speech", "volume", default=1.0))

    @property
    def granularity(self) -> str:
        """Get the default segmentation granularity (word or sentence)."""
        return str(self.get("speech", "granularity", default="word")).lower()

    @property
    def policy(self) -> str:
        """Get the default driving policy (unit or whole)."""
        return str(self.get("speech", "policy", default="unit")).lower()

    @property
    def words_per_minute(self) -> float:
        return float(self.get("estimator", "words_per_minute", default=150))

    @property
    def tick_interval(self) -> float:
        return float(self.get("estimator", "tick_interval", default=0.2))


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Merge ``override`` into ``base`` in place, recursing into mappings."""
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        else:
            base[key] = copy.deepcopy(value)
    return base


# Singleton instance
config = Config()
