"""
Configuration management using Pydantic models loaded from YAML.
"""

from datetime import time
from pathlib import Path
from typing import Tuple

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.exceptions import ConfigurationError
from .domain.models import Slot
from .domain.slot_grid import generate_slots


def _parse_clock(value: str) -> time:
    try:
        hour, minute = (int(part) for part in str(value).split(":", 1))
        return time(hour=hour, minute=minute)
    except ValueError as exc:
        raise ValueError(f"Expected HH:MM, got {value!r}") from exc


class GridConfig(BaseModel):
    """The studio's daily slot grid."""
    start_time: str = "09:00"
    end_time: str = "20:00"
    step_minutes: int = 30

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def validate_clock(cls, v) -> str:
        """Validate HH:MM clock values; ``24:00`` is allowed as a closing time."""
        if isinstance(v, int) and not isinstance(v, bool):
            # YAML 1.1 reads unquoted 20:00 as the sexagesimal int 1200
            v = f"{v // 60:02d}:{v % 60:02d}"
        if v == "24:00":
            return v
        parsed = _parse_clock(v)
        return f"{parsed.hour:02d}:{parsed.minute:02d}"

    @field_validator("step_minutes")
    @classmethod
    def validate_step(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("step_minutes must be greater than zero")
        return value

    @model_validator(mode="after")
    def validate_window(self) -> "GridConfig":
        """Ensure the grid opens before it closes and divides evenly."""
        try:
            self.build()
        except ConfigurationError as exc:
            raise ValueError(str(exc)) from exc
        return self

    @staticmethod
    def _minutes(value: str) -> int:
        if value == "24:00":
            return 24 * 60
        parsed = _parse_clock(value)
        return parsed.hour * 60 + parsed.minute

    @property
    def start_minute(self) -> int:
        return self._minutes(self.start_time)

    @property
    def end_minute(self) -> int:
        return self._minutes(self.end_time)

    def build(self) -> Tuple[Slot, ...]:
        """Generate the slot grid; raises ConfigurationError when invalid."""
        return generate_slots(self.start_minute, self.end_minute, self.step_minutes)


class RetryConfig(BaseModel):
    """Backoff for transient store failures."""
    attempts: int = 3
    base_delay_seconds: float = 0.2

    @field_validator("attempts")
    @classmethod
    def validate_attempts(cls, value: int) -> int:
        if value < 1:
            raise ValueError("attempts must be at least 1")
        return value

    @field_validator("base_delay_seconds")
    @classmethod
    def validate_delay(cls, value: float) -> float:
        if value < 0:
            raise ValueError("base_delay_seconds cannot be negative")
        return value


class AppConfig(BaseModel):
    """Application configuration."""
    studio_name: str = "Studio"
    timezone: str = "Asia/Manila"
    grid: GridConfig = Field(default_factory=GridConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    store_path: Path = Path("studiobook.json")
    reference_prefix: str = "IOS"
    log_level: str = "INFO"

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        try:
            pendulum.timezone(value)
        except (KeyError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("reference_prefix")
    @classmethod
    def validate_prefix(cls, value: str) -> str:
        value = value.strip().upper()
        if not value.isalnum():
            raise ValueError("reference_prefix must be alphanumeric")
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        value = value.upper()
        if value not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {value}")
        return value

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        config = cls(**data)
        if not config.store_path.is_absolute():
            config.store_path = config_path.parent / config.store_path
        return config


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of the package)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
