"""Configuration loading.

Settings come from a TOML file:

    frequency = 20.0      # Hz
    duration = 15         # seconds per tone
    interval = 540        # seconds between tones
    fade_duration = 1.0   # seconds
    volume = 0.05         # 0.0 - 1.0
    device = ""           # output device name substring, empty = default

Lookup order: explicit path, NODOZE_CONFIG, then
$XDG_CONFIG_HOME/nodoze/config.toml (~/.config/nodoze/config.toml).
A missing, unreadable or invalid file falls back to the defaults.

Environment variables:
- NODOZE_CONFIG: Config file path
- NODOZE_DEVICE: Output device name, overrides the file
"""

import logging
import math
import os
import tomllib
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Optional

log = logging.getLogger(__name__)

APP_NAME = "nodoze"
CONFIG_FILENAME = "config.toml"


class ConfigError(ValueError):
    """Invalid configuration value."""


@dataclass
class Config:
    """Tone and scheduling settings."""
    frequency: float = 20.0
    duration: int = 15
    interval: int = 540
    fade_duration: float = 1.0
    volume: float = 0.05
    device: str = ""
    sample_format: str = ""

    def validate(self) -> None:
        """Check value ranges.

        Raises:
            ConfigError: If a value is out of range
        """
        for name in ("frequency", "duration", "interval", "fade_duration", "volume"):
            if not math.isfinite(getattr(self, name)):
                raise ConfigError(f"{name} must be finite, got {getattr(self, name)}")
        if self.frequency <= 0:
            raise ConfigError(f"frequency must be positive, got {self.frequency}")
        if self.duration <= 0:
            raise ConfigError(f"duration must be positive, got {self.duration}")
        if self.interval <= 0:
            raise ConfigError(f"interval must be positive, got {self.interval}")
        if self.fade_duration < 0:
            raise ConfigError(f"fade_duration must not be negative, got {self.fade_duration}")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Config":
        """Build a Config from parsed TOML.

        Unknown keys are ignored with a warning.

        Raises:
            ConfigError: If a value has the wrong type or range
        """
        types = {f.name: f.type for f in fields(cls)}
        values = {}
        for key, value in data.items():
            if key not in types:
                log.warning("Ignoring unknown config key: %s", key)
                continue
            values[key] = _coerce(key, value, types[key])

        config = cls(**values)
        config.validate()
        return config

    @staticmethod
    def config_path() -> Path:
        """Default config file location."""
        base = os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config"
        return Path(base) / APP_NAME / CONFIG_FILENAME


def _coerce(key: str, value: Any, kind) -> Any:
    """Coerce a TOML value to the field type, rejecting lossy conversions."""
    if kind in (str, "str"):
        if not isinstance(value, str):
            raise ConfigError(f"{key} must be a string, got {value!r}")
        return value
    # bool is an int subclass in Python but never a valid number here
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{key} must be a number, got {value!r}")
    if not math.isfinite(value):
        raise ConfigError(f"{key} must be finite, got {value!r}")
    if kind in (int, "int"):
        if isinstance(value, float) and not value.is_integer():
            raise ConfigError(f"{key} must be a whole number of seconds, got {value!r}")
        return int(value)
    return float(value)


def _read_file(path: Path) -> Config:
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
        config = Config.from_dict(data)
    except (OSError, tomllib.TOMLDecodeError, ConfigError) as e:
        log.warning("Failed to load config %s: %s", path, e)
        return Config()

    log.info("Loaded config from %s", path)
    return config


def load_config(path: Optional[str] = None) -> Config:
    """Load configuration.

    Args:
        path: Explicit config file, or None to search the default locations

    Returns:
        Loaded configuration, or defaults if no usable file was found
    """
    path = path or os.environ.get("NODOZE_CONFIG")
    if path:
        config = _read_file(Path(path).expanduser())
    else:
        default_path = Config.config_path()
        if default_path.exists():
            config = _read_file(default_path)
        else:
            log.info("No config file found, using defaults")
            config = Config()

    device = os.environ.get("NODOZE_DEVICE")
    if device is not None:
        config.device = device

    return config
