"""Configuration management for StillFresh."""

import tomllib
from dataclasses import dataclass, field
from datetime import timedelta, tzinfo
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo

from .models import StorageMode


@dataclass
class DisplayConfig:
    """Dashboard display configuration."""

    timezone: str | None = None
    weeks_back: int = 8
    expiring_days_ahead: int = 2

    def zone(self) -> tzinfo | None:
        """Configured zone, or None to use the system local zone."""
        return ZoneInfo(self.timezone) if self.timezone else None


@dataclass
class UndoConfig:
    """Undo snackbar configuration."""

    window_seconds: float = 5.0

    @property
    def window(self) -> timedelta:
        return timedelta(seconds=self.window_seconds)


@dataclass
class IngestionConfig:
    """Classifier mapping configuration."""

    default_storage: StorageMode = StorageMode.FRIDGE


@dataclass
class Config:
    """Complete application configuration."""

    display: DisplayConfig = field(default_factory=DisplayConfig)
    undo: UndoConfig = field(default_factory=UndoConfig)
    ingestion: IngestionConfig = field(default_factory=IngestionConfig)


class ConfigManager:
    """Manages application configuration from TOML files."""

    def __init__(self, config_path: Path | None = None):
        """Initialize configuration manager.

        Args:
            config_path: Optional explicit path to config file.
                        If not provided, searches standard locations.
        """
        self.config_path = config_path or self._find_config()
        self._config = self._load_config()

    @property
    def display(self) -> DisplayConfig:
        return self._config.display

    @property
    def undo(self) -> UndoConfig:
        return self._config.undo

    @property
    def ingestion(self) -> IngestionConfig:
        return self._config.ingestion

    def _find_config(self) -> Path:
        """Find config file in standard locations."""
        locations = [
            Path.cwd() / "config.toml",
            Path.home() / ".config" / "still-fresh" / "config.toml",
            Path.home() / ".still-fresh" / "config.toml",
        ]

        for loc in locations:
            if loc.exists():
                return loc

        return Path.home() / ".config" / "still-fresh" / "config.toml"

    def _load_config(self) -> Config:
        """Load configuration from TOML file.

        Raises:
            ValueError: If default_storage is not a storage mode
            ZoneInfoNotFoundError: If timezone is not a known IANA zone
        """
        if not self.config_path.exists():
            return Config()

        with open(self.config_path, "rb") as f:
            data = tomllib.load(f)

        display = data.get("display", {})
        undo = data.get("undo", {})
        ingestion = data.get("ingestion", {})

        config = Config(
            display=DisplayConfig(
                timezone=display.get("timezone"),
                weeks_back=int(display.get("weeks_back", 8)),
                expiring_days_ahead=int(display.get("expiring_days_ahead", 2)),
            ),
            undo=UndoConfig(window_seconds=float(undo.get("window_seconds", 5.0))),
            ingestion=IngestionConfig(
                default_storage=StorageMode(ingestion.get("default_storage", "fridge")),
            ),
        )
        # Fail on an unknown zone at load time, not on first use.
        config.display.zone()
        return config

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get config value by dot-notation path.

        Args:
            key_path: Dot-separated path like 'display.weeks_back'
            default: Default value if path not found

        Returns:
            Configuration value or default
        """
        value: Any = self._config

        for key in key_path.split("."):
            if hasattr(value, key):
                value = getattr(value, key)
            elif isinstance(value, dict):
                value = value.get(key)
                if value is None:
                    return default
            else:
                return default

        return value if value is not None else default
