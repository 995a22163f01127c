# src/outlinectl/config.py

"""
Store configuration (`.outline/config.yml`).

The file is optional. Missing keys fall back to defaults, unknown keys
are ignored, and values of the wrong type raise ConfigError.
"""

import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Final

import yaml


DEFAULT_INDENT_WIDTH: Final[int] = 24
DEFAULT_UNDO_LIMIT: Final[int] = 200

_LOG_LEVELS: Final[tuple[str, ...]] = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True, slots=True)
class ConfigError(Exception):
    """
    Raised when config.yml exists but cannot be used.
    """

    path: str
    message: str

    def __str__(self) -> str:
        return f"{self.path}: {self.message}"


@dataclass(frozen=True, slots=True)
class Config:
    indent_width: int = DEFAULT_INDENT_WIDTH
    undo_limit: int = DEFAULT_UNDO_LIMIT
    log_level: str = "WARNING"
    color: bool = True

    @property
    def log_level_value(self) -> int:
        return getattr(logging, self.log_level)


# ---------------------------------------------------------------------
# Load / dump
# ---------------------------------------------------------------------

def load_config(path: Path) -> Config:
    """
    Read config.yml; return defaults if the file does not exist.
    """
    if not path.exists():
        return Config()

    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(str(path), f"Cannot read file: {e}") from e

    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise ConfigError(str(path), f"Invalid YAML: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(str(path), "YAML root must be a mapping/dictionary")

    defaults = Config()
    return Config(
        indent_width=_int_field(str(path), data, "indent_width", default=defaults.indent_width, minimum=1),
        undo_limit=_int_field(str(path), data, "undo_limit", default=defaults.undo_limit, minimum=0),
        log_level=_level_field(str(path), data, default=defaults.log_level),
        color=_bool_field(str(path), data, "color", default=defaults.color),
    )


def render_config(config: Config) -> str:
    return yaml.safe_dump(asdict(config), sort_keys=False, allow_unicode=True)


def write_default_config(path: Path) -> bool:
    """
    Write a default config.yml unless one already exists.

    Returns True when a file was written.
    """
    if path.exists():
        return False
    path.write_text(render_config(Config()), encoding="utf-8")
    return True


# ---------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------

def _int_field(path: str, data: dict[str, Any], key: str, *, default: int, minimum: int) -> int:
    if key not in data or data[key] is None:
        return default

    value = data[key]
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(path, f"YAML key '{key}' must be an integer")
    if value < minimum:
        raise ConfigError(path, f"YAML key '{key}' must be >= {minimum}")
    return value


def _bool_field(path: str, data: dict[str, Any], key: str, *, default: bool) -> bool:
    if key not in data or data[key] is None:
        return default

    value = data[key]
    if not isinstance(value, bool):
        raise ConfigError(path, f"YAML key '{key}' must be true or false")
    return value


def _level_field(path: str, data: dict[str, Any], *, default: str) -> str:
    if "log_level" not in data or data["log_level"] is None:
        return default

    value = data["log_level"]
    if not isinstance(value, str) or value.strip().upper() not in _LOG_LEVELS:
        raise ConfigError(path, f"YAML key 'log_level' must be one of: {', '.join(_LOG_LEVELS)}")
    return value.strip().upper()
