import json
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from timeblock_pro.utils.paths import get_default_data_dir, get_default_log_dir
from timeblock_pro.utils.time import time_to_minutes


class Settings(BaseSettings):
    """Application-wide settings managed via .env and config.json."""

    app_name: str = "TimeBlock Pro"
    debug: bool = Field(default=False, description="Master toggle for verbose logging")

    # Paths
    data_dir: Path = Field(default_factory=get_default_data_dir)
    log_dir: Path = Field(default_factory=get_default_log_dir)

    def model_post_init(self, __context):
        self.data_dir = self.data_dir.resolve()
        self.log_dir = self.log_dir.resolve()

    @property
    def data_file(self) -> Path:
        return self.data_dir / "data.json"

    @property
    def backup_file(self) -> Path:
        return self.data_dir / "backup.json"

    @property
    def state_file(self) -> Path:
        return self.data_dir / "state.json"

    # Notifications
    audio_notifications: bool = True
    notify_start_summary: str = "{name} started"
    notify_start_body: str = "Block runs until {end_time}."
    notify_end_summary: str = "{name} ended"
    notify_end_body: str = "Block finished at {end_time}."

    # Timer & monitor
    default_focus_minutes: int = Field(default=25, ge=1)
    coarse_poll_seconds: float = Field(default=30.0, gt=0)
    transition_gap_seconds: float = Field(default=0.5, ge=0)

    # Calendar
    week_start_day: int = Field(default=0, ge=0, le=6)
    time_range_start: str = "07:00"
    time_range_end: str = "23:00"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("time_range_start", "time_range_end")
    @classmethod
    def _check_time(cls, value: str) -> str:
        time_to_minutes(value)
        return value

    def save(self):
        """Saves current settings to config.json in data_dir."""
        config_path = self.data_dir / "config.json"
        self.data_dir.mkdir(parents=True, exist_ok=True)
        data = self.model_dump(mode="json")
        with open(config_path, "w") as f:
            json.dump(data, f, indent=4)


_last_settings_mtime: float | None = None
_cached_settings: Settings | None = None


def load_settings() -> Settings:
    """Loads settings, merging with config.json if it exists."""
    global _last_settings_mtime, _cached_settings

    initial = Settings()
    config_path = initial.data_dir / "config.json"

    if not config_path.exists():
        _last_settings_mtime = None
        _cached_settings = initial
        return initial

    current_mtime = config_path.stat().st_mtime
    if _last_settings_mtime == current_mtime and _cached_settings is not None:
        return _cached_settings

    try:
        with open(config_path) as f:
            config_data = json.load(f)
        _cached_settings = Settings(**{**initial.model_dump(), **config_data})
        _last_settings_mtime = current_mtime
        return _cached_settings
    except Exception:
        _cached_settings = initial
        return initial


# The single source of truth for the app
settings = load_settings()
