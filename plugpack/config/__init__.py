"""
plugpack Configuration - TOML-based settings and plugin lists.

This module provides:
- The ``[plugpack]`` settings schema and its typed view, PackConfig
- Loading and validation of the configuration file
- Generation of a commented default configuration
- The ``[[plugins]]`` plugin list read by the pm CLI

Example usage:
    from plugpack.config import load_config

    cfg = load_config(Path("config/plugpack.toml"))
    print(cfg.parallel_limit)
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from plugpack.config.schema import ConfigField, ValidationError, validate_config
from plugpack.config.toml_handler import (
    TOMLError,
    generate_toml_from_schema,
    read_toml,
    write_toml,
)

SECTION = "plugpack"

# Default config file path
DEFAULT_CONFIG_FILE = Path("config/plugpack.toml")

SCHEMA: dict[str, ConfigField] = {
    "parallel_limit": ConfigField(int, 4, "Maximum concurrent remote fetches", min=1),
    "clear_queue_after_install": ConfigField(
        bool, True, "Drain registered sources after each install (false keeps them for re-install)"
    ),
    "default_host": ConfigField(str, "https://github.com/", "Host prefix for owner/repo sources", min=1),
    "debounce_ms": ConfigField(int, 10, "Delay before an event-gated setup runs", min=0),
    "enter_event": ConfigField(str, "enter", "Event exempt from the transient buffer filter", min=1),
    "transient_prefixes": ConfigField(
        list, ["oil://"], "Buffer name prefixes whose events never trigger setup", item_type=str
    ),
    "fallback_branches": ConfigField(
        list, ["main", "master"], "Remote branches tried last when checking for updates", item_type=str
    ),
    "remote": ConfigField(str, "origin", "Remote name used for fetches and updates", min=1),
    "install_root": ConfigField(str, "pack/plugins", "Directory plugins are cloned into", min=1),
}


class ConfigError(Exception):
    """Raised when the configuration file is unreadable or invalid."""

    pass


@dataclass
class PackConfig:
    """Validated settings for one Pack context."""

    parallel_limit: int = 4
    clear_queue_after_install: bool = True
    default_host: str = "https://github.com/"
    debounce_ms: int = 10
    enter_event: str = "enter"
    transient_prefixes: list[str] = field(default_factory=lambda: ["oil://"])
    fallback_branches: list[str] = field(default_factory=lambda: ["main", "master"])
    remote: str = "origin"
    install_root: str = "pack/plugins"

    def __post_init__(self):
        try:
            validate_config(self.to_dict(), SCHEMA)
        except ValidationError as e:
            raise ConfigError(str(e)) from e

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PackConfig":
        """
        Build a config from a ``[plugpack]`` table.

        Raises:
            ConfigError: On unknown keys or invalid values
        """
        try:
            values = validate_config(data, SCHEMA)
        except ValidationError as e:
            raise ConfigError(str(e)) from e
        return cls(**{k: list(v) if isinstance(v, list) else v for k, v in values.items()})

    def to_dict(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in SCHEMA}


def _read(path: Path) -> dict[str, Any]:
    try:
        return read_toml(path)
    except TOMLError as e:
        raise ConfigError(str(e)) from e


def load_config(path: Path | None = None) -> PackConfig:
    """
    Load settings from a TOML file.

    A missing file or section yields the defaults.

    Raises:
        ConfigError: If the file is unreadable or the section is invalid
    """
    path = path or DEFAULT_CONFIG_FILE
    if not path.exists():
        return PackConfig()

    section = _read(path).get(SECTION, {})
    if not isinstance(section, dict):
        raise ConfigError(f"'{SECTION}' in {path} must be a table")
    return PackConfig.from_dict(section)


def load_plugin_sources(path: Path | None = None) -> list[dict[str, Any]]:
    """
    Read the ``[[plugins]]`` array from a TOML file.

    Raises:
        ConfigError: If the file is unreadable or 'plugins' is not an array of tables
    """
    path = path or DEFAULT_CONFIG_FILE
    if not path.exists():
        return []

    plugins = _read(path).get("plugins", [])
    if not isinstance(plugins, list) or not all(isinstance(p, dict) for p in plugins):
        raise ConfigError(f"'plugins' in {path} must be an array of tables")
    return plugins


def write_default_config(path: Path | None = None) -> Path:
    """
    Write a commented configuration file with default values.

    Raises:
        ConfigError: If the file cannot be written
    """
    path = path or DEFAULT_CONFIG_FILE
    try:
        write_toml(path, generate_toml_from_schema(SECTION, SCHEMA))
    except TOMLError as e:
        raise ConfigError(str(e)) from e
    return path


__all__ = [
    "SCHEMA",
    "ConfigError",
    "PackConfig",
    "load_config",
    "load_plugin_sources",
    "write_default_config",
]
