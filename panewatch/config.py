"""Configuration loading and constants for panewatch.

Resolution order, later wins:
    1. defaults below
    2. config.yaml in the config directory
    3. PANEWATCH_* environment variables
    4. command-line flags (AppConfig.merge_cli)
"""

import argparse
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .command import DEFAULT_MAX_HISTORY, MIN_INTERVAL
from .display import DisplayType
from .exceptions import ConfigError

APP_NAME = "panewatch"
ENV_PREFIX = "PANEWATCH_"

DEFAULT_INTERVAL_SECS = 5
LOG_LEVELS = ["error", "warning", "info", "debug"]

# Keys accepted in config.yaml and as PANEWATCH_<KEY> environment variables
BOOL_KEYS = {"beep", "err_exit", "chg_exit", "wrap", "zen"}
KNOWN_KEYS = BOOL_KEYS | {
    "interval",
    "max_history",
    "display",
    "sessions_dir",
    "logs_dir",
    "log_level",
}


def get_config_dir() -> Path:
    """Get the panewatch config directory.

    Can be overridden via PANEWATCH_CONFIG_DIR environment variable (used by tests).
    """
    env_override = os.environ.get("PANEWATCH_CONFIG_DIR")
    if env_override:
        return Path(env_override)
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / APP_NAME
    return Path.home() / ".config" / APP_NAME


def get_config_path() -> Path:
    """Get path to config.yaml."""
    return get_config_dir() / "config.yaml"


def get_data_dir() -> Path:
    """Get the data directory for sessions and logs."""
    xdg = os.environ.get("XDG_DATA_HOME")
    if xdg:
        return Path(xdg) / APP_NAME
    return Path.home() / ".local" / "share" / APP_NAME


def get_default_sessions_dir() -> Path:
    return get_data_dir() / "sessions"


def get_default_logs_dir() -> Path:
    return get_data_dir() / "logs"


def parse_duration(value: Any) -> float:
    """Parse an interval given as seconds: 5, 0.5, "5", "5s", "0.5s".

    Raises:
        ConfigError: If the value is not a positive number of seconds.
    """
    if isinstance(value, bool):
        raise ConfigError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        text = str(value).strip()
        if text.endswith("s"):
            text = text[:-1]
        try:
            seconds = float(text)
        except ValueError:
            raise ConfigError(f'Expected a duration like "5s", got {value!r}') from None
    if seconds < MIN_INTERVAL:
        raise ConfigError(f"Interval must be at least {MIN_INTERVAL}s, got {value!r}")
    return seconds


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off", ""):
        return False
    raise ConfigError(f"Expected a boolean, got {value!r}")


@dataclass
class AppConfig:
    """Effective runtime configuration."""

    interval: float = float(DEFAULT_INTERVAL_SECS)
    beep: bool = False
    err_exit: bool = False
    chg_exit: bool = False
    wrap: bool = True
    max_history: int = DEFAULT_MAX_HISTORY
    zen: bool = False
    display: DisplayType = DisplayType.RAW_TEXT
    sessions_dir: Path = field(default_factory=get_default_sessions_dir)
    logs_dir: Path = field(default_factory=get_default_logs_dir)
    log_level: str | None = None

    @classmethod
    def load(cls, config_path: Path | None = None, environ: dict[str, str] | None = None) -> "AppConfig":
        """Load defaults, then the config file, then environment overrides.

        Raises:
            ConfigError: If the file or an override is malformed.
        """
        config = cls()
        config_path = config_path or get_config_path()

        if config_path.exists():
            try:
                with open(config_path) as f:
                    data = yaml.safe_load(f) or {}
            except (yaml.YAMLError, OSError) as e:
                raise ConfigError(f"Failed to read {config_path}: {e}") from e
            if not isinstance(data, dict):
                raise ConfigError(f"{config_path} must contain a mapping")
            config.apply(data)

        environ = os.environ if environ is None else environ
        overrides = {
            key[len(ENV_PREFIX):].lower(): value
            for key, value in environ.items()
            if key.startswith(ENV_PREFIX) and key[len(ENV_PREFIX):].lower() in KNOWN_KEYS
        }
        config.apply(overrides)
        return config

    def apply(self, data: dict[str, Any]) -> None:
        """Apply a mapping of config keys. Unknown keys are rejected."""
        unknown = set(data) - KNOWN_KEYS
        if unknown:
            raise ConfigError(f"Unknown config keys: {', '.join(sorted(unknown))}")

        for key, value in data.items():
            if key in BOOL_KEYS:
                setattr(self, key, parse_bool(value))
            elif key == "interval":
                self.interval = parse_duration(value)
            elif key == "max_history":
                try:
                    self.max_history = int(value)
                except (TypeError, ValueError):
                    raise ConfigError(f"max_history must be an integer, got {value!r}") from None
                if self.max_history < 1:
                    raise ConfigError("max_history must be at least 1")
            elif key == "display":
                try:
                    self.display = DisplayType.parse(str(value))
                except ValueError as e:
                    raise ConfigError(str(e)) from None
            elif key in ("sessions_dir", "logs_dir"):
                setattr(self, key, Path(str(value)).expanduser())
            elif key == "log_level":
                level = str(value).lower()
                if level not in LOG_LEVELS:
                    raise ConfigError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
                self.log_level = level

    def merge_cli(self, args: argparse.Namespace) -> None:
        """Overlay command-line flags. Flags that were not given leave config alone."""
        if args.beep:
            self.beep = True
        if args.err_exit:
            self.err_exit = True
        if args.chg_exit:
            self.chg_exit = True
        if args.zen:
            self.zen = True
        if args.no_wrap:
            self.wrap = False
        if args.max_history is not None:
            self.max_history = max(args.max_history, 1)
        if args.interval is not None:
            self.interval = parse_duration(args.interval)
        if args.display is not None:
            self.display = args.display
        if args.verbose:
            self.log_level = LOG_LEVELS[min(args.verbose, len(LOG_LEVELS) - 1)]

    def __str__(self) -> str:
        lines = [
            "Configuration loaded successfully:",
            f"  Interval: {self.interval}s",
            f"  Beep: {self.beep}",
            f"  Exit on Error: {self.err_exit}",
            f"  Exit on Change: {self.chg_exit}",
            f"  Wrap: {self.wrap}",
            f"  Max History: {self.max_history}",
            f"  Zen: {self.zen}",
            f"  Display: {self.display.value}",
            f"  Log Level: {self.log_level or 'N/A'}",
            f"  Logs Directory: {self.logs_dir}",
            f"  Sessions Directory: {self.sessions_dir}",
        ]
        return "\n".join(lines)
