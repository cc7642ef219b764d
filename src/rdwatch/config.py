"""User settings for rdwatch."""

import json
import logging
import os
from pathlib import Path
from typing import Any, Literal, get_args

from pydantic import BaseModel, Field, ValidationError, field_validator

log = logging.getLogger(__name__)

APP_NAME = "rdwatch"

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
LOG_LEVELS: tuple[str, ...] = get_args(LogLevel)


def config_dir() -> Path:
    base = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(base) / APP_NAME


def state_dir() -> Path:
    base = os.environ.get("XDG_STATE_HOME") or str(Path.home() / ".local" / "state")
    return Path(base) / APP_NAME


def settings_path() -> Path:
    return config_dir() / "settings.json"


def log_path() -> Path:
    return state_dir() / "rdwatch.log"


class Settings(BaseModel):
    """Toggles for the UI sections plus observer tuning."""

    executable: str = "rustdesk"
    service_unit: str = "rustdesk"
    poll_interval: float = Field(default=1.0, ge=0.1)
    command_timeout: float = Field(default=2.0, gt=0)
    show_icon: Literal["always", "when-running"] = "always"
    connection_manager: bool = True
    sessions: bool = True
    service: bool = True
    log_level: LogLevel = "INFO"

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_log_level(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value


class SettingsStore:
    """Loads and saves Settings as JSON."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or settings_path()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Settings:
        """Load settings, writing defaults if the file is missing or invalid."""
        if not self._path.exists():
            settings = Settings()
            self.save(settings)
            return settings

        try:
            data: Any = json.loads(self._path.read_text(encoding="utf-8"))
            return Settings.model_validate(data)
        except (OSError, ValueError, ValidationError) as exc:
            log.warning("Invalid settings in %s, using defaults: %s", self._path, exc)
            return Settings()

    def save(self, settings: Settings) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(settings.model_dump_json(indent=2), encoding="utf-8")
        except OSError as exc:
            log.warning("Could not write settings to %s: %s", self._path, exc)
